"""
AuditorService -- tamper-evident audit trail and hash chain maintenance.

Responsibility:
    The audit sink for the payroll packages.  Every structure version,
    assignment change, run transition and record adjustment is written as
    an append-only, hash-chained ``AuditEvent`` carrying actor, action,
    resource and before/after values.

Architecture position:
    Kernel > Services.  Called by module services through
    ``payroll_modules._audit_helpers.record_audit``, which wraps each write
    in a savepoint so an audit failure never rolls back the mutation.

Invariants enforced:
    - ``hash = H(entity_type | entity_id | action | payload_hash | prev_hash)``.
    - Sequence numbers come from SequenceService, never ``max(seq) + 1``.

Failure modes:
    - AuditChainBrokenError from ``validate_chain()`` when a stored hash or
      link does not match its recomputed value.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.exceptions import AuditChainBrokenError
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.audit_event import AuditAction, AuditEvent
from payroll_kernel.services.base import BaseService
from payroll_kernel.services.sequence_service import SequenceService
from payroll_kernel.utils.hashing import hash_audit_event, hash_payload, jsonable

logger = get_logger("services.auditor")


class AuditSink(Protocol):
    """What module services need from an audit writer."""

    def record_change(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        *,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
    ) -> Any: ...


@dataclass(frozen=True)
class AuditTraceEntry:
    """A single entry in an audit trace."""

    seq: int
    action: AuditAction
    occurred_at: datetime
    actor_id: UUID
    before: dict[str, Any] | None
    after: dict[str, Any] | None
    payload: dict[str, Any]
    hash: str


@dataclass(frozen=True)
class AuditTrace:
    """All audit events for one entity, oldest first."""

    entity_type: str
    entity_id: UUID
    entries: tuple[AuditTraceEntry, ...]

    @property
    def is_empty(self) -> bool:
        return len(self.entries) == 0

    @property
    def actions(self) -> tuple[AuditAction, ...]:
        return tuple(e.action for e in self.entries)

    @property
    def last_action(self) -> AuditAction | None:
        return self.entries[-1].action if self.entries else None


class AuditorService(BaseService):
    """
    Creates and validates hash-chained audit events.

    Non-goals:
        - Does NOT commit; the calling module service owns the transaction.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        last_event = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq.desc()).limit(1)
        ).scalar_one_or_none()
        return last_event.hash if last_event else None

    def _create_audit_event(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        seq = self._sequence_service.next_value(SequenceService.AUDIT_EVENT)
        prev_hash = self._get_last_hash()

        payload_data = jsonable(payload or {})
        computed_payload_hash = hash_payload(payload_data)

        event_hash = hash_audit_event(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action.value,
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
        )

        audit_event = AuditEvent(
            seq=seq,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            payload=payload_data,
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
            hash=event_hash,
        )
        self._session.add(audit_event)
        self._session.flush()

        logger.info(
            "audit_event_created",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
                "seq": seq,
            },
        )
        return audit_event

    def record_change(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        *,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """
        Record one audited change.

        ``before`` and ``after`` hold the resource's relevant fields on
        either side of the change; ``context`` carries anything else
        (reason, period, affected counts).
        """
        payload: dict[str, Any] = dict(context or {})
        payload["before"] = before
        payload["after"] = after
        return self._create_audit_event(entity_type, entity_id, action, actor_id, payload)

    # Chain validation

    def validate_chain(self) -> bool:
        """
        Recompute every hash and link.

        Raises:
            AuditChainBrokenError: at the first event that does not match.
        """
        events = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq)
        ).scalars().all()

        prev_hash: str | None = None
        for event in events:
            if event.prev_hash != prev_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"audit_event_id": str(event.id), "seq": event.seq},
                )
                raise AuditChainBrokenError(
                    str(event.id), prev_hash or "None", event.prev_hash or "None"
                )

            expected_hash = hash_audit_event(
                entity_type=event.entity_type,
                entity_id=str(event.entity_id),
                action=event.action,
                payload_hash=hash_payload(event.payload or {}),
                prev_hash=event.prev_hash,
            )
            if event.hash != expected_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"audit_event_id": str(event.id), "seq": event.seq},
                )
                raise AuditChainBrokenError(str(event.id), expected_hash, event.hash)
            prev_hash = event.hash

        logger.info("audit_chain_valid", extra={"event_count": len(events)})
        return True

    # Queries

    def get_trace(self, entity_type: str, entity_id: UUID) -> AuditTrace:
        """All audit events for an entity in chronological order."""
        events = self._session.execute(
            select(AuditEvent)
            .where(
                AuditEvent.entity_type == entity_type,
                AuditEvent.entity_id == entity_id,
            )
            .order_by(AuditEvent.seq)
        ).scalars().all()

        return AuditTrace(
            entity_type=entity_type,
            entity_id=entity_id,
            entries=tuple(
                AuditTraceEntry(
                    seq=event.seq,
                    action=AuditAction(event.action),
                    occurred_at=event.occurred_at,
                    actor_id=event.actor_id,
                    before=event.before,
                    after=event.after,
                    payload=event.payload or {},
                    hash=event.hash,
                )
                for event in events
            ),
        )
