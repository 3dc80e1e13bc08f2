"""
Value objects shared by the payroll engines and modules.

Responsibility:
    Immutable date-range, payroll-period and attendance values.  Every
    effective-dated comparison in the system goes through ``DateRange`` so
    the half-open convention is defined exactly once.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - DateRange is half-open: ``effective_from`` inclusive, ``effective_to``
      exclusive, ``None`` meaning open-ended.
    - A DateRange with ``effective_to <= effective_from`` cannot be built.
    - AttendanceFacts never report more present days than working days.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from payroll_kernel.exceptions import (
    InvalidAttendanceError,
    InvalidPeriodError,
    InvertedRangeError,
)

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True)
class DateRange:
    """Half-open effective range ``[effective_from, effective_to)``."""

    effective_from: date
    effective_to: date | None = None

    def __post_init__(self) -> None:
        if self.effective_to is not None and self.effective_to <= self.effective_from:
            raise InvertedRangeError(
                str(self.effective_from), str(self.effective_to)
            )

    @property
    def is_open(self) -> bool:
        return self.effective_to is None

    def contains(self, as_of: date) -> bool:
        if as_of < self.effective_from:
            return False
        return self.effective_to is None or as_of < self.effective_to

    def overlaps(self, other: DateRange) -> bool:
        starts_before_other_ends = (
            other.effective_to is None or self.effective_from < other.effective_to
        )
        other_starts_before_self_ends = (
            self.effective_to is None or other.effective_from < self.effective_to
        )
        return starts_before_other_ends and other_starts_before_self_ends

    def closed_at(self, effective_to: date) -> DateRange:
        """Copy of this range ending at ``effective_to``."""
        return DateRange(self.effective_from, effective_to)

    def describe(self) -> tuple[str, str | None]:
        return (
            str(self.effective_from),
            str(self.effective_to) if self.effective_to is not None else None,
        )

    def __str__(self) -> str:
        return f"[{self.effective_from}, {self.effective_to or 'open'})"


@dataclass(frozen=True, order=True)
class PayrollPeriod:
    """A calendar month payroll is run for."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12 or not 1900 <= self.year <= 9999:
            raise InvalidPeriodError(f"{self.year:04d}-{self.month:02d}")

    @classmethod
    def parse(cls, value: str) -> PayrollPeriod:
        """Parse ``YYYY-MM``."""
        match = _PERIOD_RE.match(value.strip()) if isinstance(value, str) else None
        if match is None:
            raise InvalidPeriodError(str(value))
        return cls(int(match.group(1)), int(match.group(2)))

    @property
    def code(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    def weekday_count(self) -> int:
        """Monday-to-Friday days in the month."""
        day = self.first_day
        count = 0
        while day <= self.last_day:
            if day.weekday() < 5:
                count += 1
            day += timedelta(days=1)
        return count

    def __str__(self) -> str:
        return self.code


@dataclass(frozen=True)
class AttendanceFacts:
    """
    Already-reconciled attendance for one employee and period.

    Days are Decimal so half days can be represented.
    """

    working_days: Decimal
    present_days: Decimal
    absent_days: Decimal = Decimal("0")
    lop_days: Decimal = Decimal("0")
    overtime_hours: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        for name in ("working_days", "present_days", "absent_days", "lop_days", "overtime_hours"):
            value = getattr(self, name)
            if not isinstance(value, Decimal):
                object.__setattr__(self, name, Decimal(str(value)))
            if getattr(self, name) < 0:
                raise InvalidAttendanceError(f"{name} cannot be negative")
        if self.working_days <= 0:
            raise InvalidAttendanceError("working_days must be positive")
        if self.present_days > self.working_days:
            raise InvalidAttendanceError(
                f"present_days {self.present_days} exceeds working_days {self.working_days}"
            )

    @classmethod
    def full_attendance(cls, working_days: int | Decimal) -> AttendanceFacts:
        days = Decimal(working_days)
        return cls(working_days=days, present_days=days)

    @property
    def attendance_ratio(self) -> Decimal:
        """``present_days / working_days``; LOP days are already excluded from present days."""
        return self.present_days / self.working_days
