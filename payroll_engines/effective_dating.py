"""
Module: payroll_engines.effective_dating
Responsibility:
    Pure planning for effective-dated version chains.  Given the existing
    ranges of a structure name and a proposed new range, decide which
    open-ended version must be closed and reject any overlap or hole
    before anything is written.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The structure version
    service loads the spans, calls ``plan_supersession`` and applies the
    resulting plan inside one transaction.

Invariants enforced:
    - At any instant at most one span covers the date.
    - Once a successor exists the chain has no holes.
    - At most one span is open-ended.

Failure modes:
    - OverlappingRangeError naming the conflicting version and its range.
    - NonContiguousRangeError naming the neighbour and the hole.

Audit relevance:
    The closures in a SupersessionPlan are exactly the before/after values
    the service writes to the audit trail.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from payroll_kernel.domain.values import DateRange
from payroll_kernel.exceptions import NonContiguousRangeError, OverlappingRangeError


@dataclass(frozen=True)
class VersionSpan:
    """One version's identity and effective range."""

    version_id: UUID
    range: DateRange


@dataclass(frozen=True)
class SupersessionPlan:
    """What applying a new range to a chain changes."""

    new_range: DateRange
    closures: tuple[VersionSpan, ...]
    predecessor: VersionSpan | None
    successor: VersionSpan | None

    @property
    def closes_open_version(self) -> bool:
        return bool(self.closures)


def _sorted(spans: Iterable[VersionSpan]) -> list[VersionSpan]:
    return sorted(spans, key=lambda s: s.range.effective_from)


def find_covering(spans: Iterable[VersionSpan], as_of: date) -> VersionSpan | None:
    """The span whose range contains ``as_of``, if any."""
    for span in spans:
        if span.range.contains(as_of):
            return span
    return None


def check_partition(spans: Sequence[VersionSpan]) -> None:
    """
    Verify that ``spans`` partition their covered timeline.

    Raises:
        OverlappingRangeError: two spans overlap (this covers two open spans).
        NonContiguousRangeError: a hole exists between consecutive spans.
    """
    ordered = _sorted(spans)
    for earlier, later in zip(ordered, ordered[1:]):
        if earlier.range.overlaps(later.range):
            raise OverlappingRangeError(
                str(earlier.version_id),
                *earlier.range.describe(),
                *later.range.describe(),
            )
        if earlier.range.effective_to < later.range.effective_from:
            raise NonContiguousRangeError(
                str(earlier.version_id),
                str(earlier.range.effective_to),
                str(later.range.effective_from),
            )


def plan_supersession(
    existing: Sequence[VersionSpan],
    new_range: DateRange,
) -> SupersessionPlan:
    """
    Plan inserting ``new_range`` into a chain of existing versions.

    The open-ended version that starts before ``new_range`` is closed at
    ``new_range.effective_from``.  Every other existing range is left as is
    and must neither overlap the new range nor leave a hole next to it.
    """
    closures: list[VersionSpan] = []
    adjusted: list[VersionSpan] = []
    for span in existing:
        if span.range.is_open and span.range.effective_from < new_range.effective_from:
            closed = VersionSpan(span.version_id, span.range.closed_at(new_range.effective_from))
            closures.append(closed)
            adjusted.append(closed)
        else:
            adjusted.append(span)

    for original, span in zip(existing, adjusted):
        if span.range.overlaps(new_range):
            raise OverlappingRangeError(
                str(original.version_id),
                *original.range.describe(),
                *new_range.describe(),
            )

    predecessor = None
    successor = None
    for span in _sorted(adjusted):
        if span.range.effective_from < new_range.effective_from:
            predecessor = span
        elif successor is None:
            successor = span

    if predecessor is not None and predecessor.range.effective_to < new_range.effective_from:
        raise NonContiguousRangeError(
            str(predecessor.version_id),
            str(predecessor.range.effective_to),
            str(new_range.effective_from),
        )
    if successor is not None and new_range.effective_to < successor.range.effective_from:
        raise NonContiguousRangeError(
            str(successor.version_id),
            str(new_range.effective_to),
            str(successor.range.effective_from),
        )

    return SupersessionPlan(
        new_range=new_range,
        closures=tuple(closures),
        predecessor=predecessor,
        successor=successor,
    )
