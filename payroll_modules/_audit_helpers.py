"""
Shared audit helper for module services.

Every audited mutation calls ``record_audit`` after flushing its own
writes.  The audit write runs inside a savepoint: if it fails, only the
savepoint is rolled back and ``audit_write_failed`` is logged, so the
mutation itself still commits.

Architecture: Modules layer. Imports only from payroll_kernel.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.audit_event import AuditAction
from payroll_kernel.services.auditor_service import AuditSink

logger = get_logger("modules.audit")


def record_audit(
    session: Session,
    auditor: AuditSink,
    entity_type: str,
    entity_id: UUID,
    action: AuditAction,
    actor_id: UUID,
    *,
    before: dict[str, Any] | None = None,
    after: dict[str, Any] | None = None,
    context: dict[str, Any] | None = None,
) -> bool:
    """Write one audit entry best-effort.  Returns False if the write failed."""
    savepoint = session.begin_nested()
    try:
        auditor.record_change(
            entity_type,
            entity_id,
            action,
            actor_id,
            before=before,
            after=after,
            context=context,
        )
        savepoint.commit()
        return True
    except Exception:
        savepoint.rollback()
        logger.warning(
            "audit_write_failed",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
            },
            exc_info=True,
        )
        return False
