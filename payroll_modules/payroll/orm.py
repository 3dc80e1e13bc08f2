"""
Payroll ORM Persistence Models (``payroll_modules.payroll.orm``).

Responsibility:
    SQLAlchemy ORM models that persist payroll runs, per-employee records
    and adjustments defined in ``payroll_modules.payroll.models``.

Architecture position:
    **Modules layer** -- persistence companions to the pure DTO models.
    Inherits from ``TrackedBase`` (kernel DB base) which provides:
    id (UUID PK, auto-generated), created_at, updated_at,
    created_by_id (NOT NULL UUID), updated_by_id (nullable UUID).

Invariants enforced:
    - At most one run per period (uq_payroll_run_period).
    - At most one record per (run, employee) (uq_payroll_record_run_employee).
    - All monetary fields use Decimal (ExactDecimal) -- NEVER float.
    - Line items are stored as JSON with amounts as strings.

Audit relevance:
    Adjustments keep the totals they moved.  Records removed by a retry
    leave their adjustments behind with ``record_id`` cleared.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase

# ---------------------------------------------------------------------------
# PayrollRunModel
# ---------------------------------------------------------------------------

class PayrollRunModel(TrackedBase):
    """
    ORM model for ``PayrollRun``.

    Contract:
        ``status`` moves only along ``PAYROLL_RUN_WORKFLOW``.  A retry reuses
        the row and increments ``attempt``.
    """

    __tablename__ = "payroll_runs"

    run_number: Mapped[str] = mapped_column(String(50), nullable=False)
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    total_gross: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_net: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    employee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("period", name="uq_payroll_run_period"),
        UniqueConstraint("run_number", name="uq_payroll_run_number"),
        Index("idx_payroll_run_status", "status"),
    )

    def to_dto(self):
        from payroll_modules.payroll.models import PayrollRun, PayrollRunStatus
        return PayrollRun(
            id=self.id,
            run_number=self.run_number,
            period=self.period,
            status=PayrollRunStatus(self.status),
            total_gross=self.total_gross,
            total_deductions=self.total_deductions,
            total_net=self.total_net,
            employee_count=self.employee_count,
            failed_count=self.failed_count,
            attempt=self.attempt,
            failure_reason=self.failure_reason,
            rejection_reason=self.rejection_reason,
            processed_at=self.processed_at,
            approved_by_id=self.approved_by_id,
            approved_at=self.approved_at,
        )

    def __repr__(self) -> str:
        return f"<PayrollRunModel {self.run_number} {self.period} [{self.status}]>"


# ---------------------------------------------------------------------------
# PayrollRecordModel
# ---------------------------------------------------------------------------

class PayrollRecordModel(TrackedBase):
    """ORM model for ``PayrollRecord`` -- one employee within a run."""

    __tablename__ = "payroll_records"

    run_id: Mapped[UUID] = mapped_column(ForeignKey("payroll_runs.id"), nullable=False)
    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    assignment_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee_assignments.id"), nullable=False,
    )
    structure_id: Mapped[UUID] = mapped_column(
        ForeignKey("salary_structures.id"), nullable=False,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    basic: Mapped[Decimal] = mapped_column(nullable=False)
    total_earnings: Mapped[Decimal] = mapped_column(nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False)
    gross: Mapped[Decimal] = mapped_column(nullable=False)
    net: Mapped[Decimal] = mapped_column(nullable=False)
    earnings: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    deductions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    working_days: Mapped[Decimal] = mapped_column(nullable=False)
    present_days: Mapped[Decimal] = mapped_column(nullable=False)
    absent_days: Mapped[Decimal] = mapped_column(nullable=False)
    lop_days: Mapped[Decimal] = mapped_column(nullable=False)
    lop_amount: Mapped[Decimal] = mapped_column(nullable=False)
    overtime_hours: Mapped[Decimal] = mapped_column(nullable=False)
    overtime_amount: Mapped[Decimal] = mapped_column(nullable=False)

    pf: Mapped[Decimal] = mapped_column(nullable=False)
    esi: Mapped[Decimal] = mapped_column(nullable=False)
    tds: Mapped[Decimal] = mapped_column(nullable=False)
    pt: Mapped[Decimal] = mapped_column(nullable=False)

    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("run_id", "employee_id", name="uq_payroll_record_run_employee"),
        Index("idx_payroll_record_employee", "employee_id"),
    )

    def to_dto(self):
        from payroll_modules.payroll.models import PayrollRecord, RecordStatus
        return PayrollRecord(
            id=self.id,
            run_id=self.run_id,
            employee_id=self.employee_id,
            assignment_id=self.assignment_id,
            structure_id=self.structure_id,
            status=RecordStatus(self.status),
            basic=self.basic,
            total_earnings=self.total_earnings,
            total_deductions=self.total_deductions,
            gross=self.gross,
            net=self.net,
            earnings=tuple(dict(line) for line in self.earnings or ()),
            deductions=tuple(dict(line) for line in self.deductions or ()),
            working_days=self.working_days,
            present_days=self.present_days,
            absent_days=self.absent_days,
            lop_days=self.lop_days,
            lop_amount=self.lop_amount,
            overtime_hours=self.overtime_hours,
            overtime_amount=self.overtime_amount,
            pf=self.pf,
            esi=self.esi,
            tds=self.tds,
            pt=self.pt,
            approved_by_id=self.approved_by_id,
            approved_at=self.approved_at,
        )

    def __repr__(self) -> str:
        return f"<PayrollRecordModel {self.employee_id} net={self.net} [{self.status}]>"


# ---------------------------------------------------------------------------
# PayrollAdjustmentModel
# ---------------------------------------------------------------------------

class PayrollAdjustmentModel(TrackedBase):
    """ORM model for ``PayrollAdjustment``."""

    __tablename__ = "payroll_adjustments"

    run_id: Mapped[UUID] = mapped_column(ForeignKey("payroll_runs.id"), nullable=False)
    record_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_records.id"), nullable=True,
    )
    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    adjustment_type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    gross_before: Mapped[Decimal] = mapped_column(nullable=False)
    gross_after: Mapped[Decimal] = mapped_column(nullable=False)
    deductions_before: Mapped[Decimal] = mapped_column(nullable=False)
    deductions_after: Mapped[Decimal] = mapped_column(nullable=False)
    net_before: Mapped[Decimal] = mapped_column(nullable=False)
    net_after: Mapped[Decimal] = mapped_column(nullable=False)

    __table_args__ = (
        Index("idx_payroll_adjustment_run", "run_id"),
    )

    def to_dto(self):
        from payroll_modules.payroll.models import AdjustmentType, PayrollAdjustment
        return PayrollAdjustment(
            id=self.id,
            run_id=self.run_id,
            record_id=self.record_id,
            employee_id=self.employee_id,
            adjustment_type=AdjustmentType(self.adjustment_type),
            amount=self.amount,
            reason=self.reason,
            gross_before=self.gross_before,
            gross_after=self.gross_after,
            deductions_before=self.deductions_before,
            deductions_after=self.deductions_after,
            net_before=self.net_before,
            net_after=self.net_after,
            created_by_id=self.created_by_id,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<PayrollAdjustmentModel {self.adjustment_type} {self.amount}>"
