"""
Module: payroll_kernel.models.audit_event
Responsibility: ORM model for hash-chained audit events, and the enumeration
    of auditable payroll actions.
Architecture position: Kernel > Models.  Written only by AuditorService.

Invariants enforced:
    - Append-only: rows are never updated or deleted by application code.
    - ``hash = H(entity_type | entity_id | action | payload_hash | prev_hash)``
      links every event to its predecessor.
    - ``seq`` is unique and allocated from the locked counter row.

Audit relevance:
    Every structure version, assignment change, run transition and record
    adjustment is traceable here with its before/after values in ``payload``.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Auditable payroll actions."""

    # Catalog
    PAY_COMPONENT_CREATED = "pay_component_created"
    SALARY_GRADE_CREATED = "salary_grade_created"

    # Structure versions
    STRUCTURE_VERSION_CREATED = "structure_version_created"
    STRUCTURE_VERSION_SUPERSEDED = "structure_version_superseded"
    STRUCTURE_VERSIONS_ARCHIVED = "structure_versions_archived"

    # Assignments
    ASSIGNMENT_CREATED = "assignment_created"
    ASSIGNMENT_CLOSED = "assignment_closed"

    # Payroll runs
    PAYROLL_RUN_CREATED = "payroll_run_created"
    PAYROLL_RUN_CALCULATED = "payroll_run_calculated"
    PAYROLL_RUN_FAILED = "payroll_run_failed"
    PAYROLL_RUN_APPROVED = "payroll_run_approved"
    PAYROLL_RUN_REJECTED = "payroll_run_rejected"
    PAYROLL_RUN_RETRIED = "payroll_run_retried"
    PAYROLL_RECORD_ADJUSTED = "payroll_record_adjusted"


class AuditEvent(Base):
    """
    Audit event with hash chain for tamper evidence.

    Guarantees:
        - seq is unique and monotonically increasing.
        - prev_hash is None only for the genesis event.

    Non-goals:
        - Hash correctness is computed by AuditorService, not at INSERT.
    """

    __tablename__ = "audit_events"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_action", "action"),
        Index("idx_audit_occurred", "occurred_at"),
    )

    seq: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        unique=True,
    )

    # e.g. "SalaryStructure", "EmployeeAssignment", "PayrollRun", "PayrollRecord"
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)

    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    action: Mapped[str] = mapped_column(String(50), nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # {"before": ..., "after": ..., plus action-specific context}
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEvent {self.action} on {self.entity_type}:{self.entity_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None

    @property
    def before(self) -> dict | None:
        return (self.payload or {}).get("before")

    @property
    def after(self) -> dict | None:
        return (self.payload or {}).get("after")
