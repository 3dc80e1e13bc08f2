"""
Payroll Domain Models (``payroll_modules.payroll.models``).

Responsibility
--------------
Frozen dataclass value objects for payroll runs, per-employee records,
adjustments and the discriminated results of bulk calculation.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
``PayrollCalculationService`` and ``PayrollRunService``.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``net == gross - total_deductions`` on every record, before and after
  adjustments.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Union
from uuid import UUID

from payroll_engines.payroll_calculator import PayrollBreakdown
from payroll_kernel.domain.values import PayrollPeriod

ZERO = Decimal("0")


class PayrollRunStatus(str, Enum):
    DRAFT = "DRAFT"
    COMPLETED = "COMPLETED"
    APPROVED = "APPROVED"
    FAILED = "FAILED"


class RecordStatus(str, Enum):
    DRAFT = "DRAFT"
    CALCULATED = "CALCULATED"
    APPROVED = "APPROVED"


class AdjustmentType(str, Enum):
    """How an adjustment moves a record's totals."""

    BONUS = "BONUS"            # adds to earnings, gross and net
    DEDUCTION = "DEDUCTION"    # adds to deductions, subtracts from net
    CORRECTION = "CORRECTION"  # replaces net; gross absorbs the difference
    ALLOWANCE = "ALLOWANCE"    # like BONUS, standalone adjustments only


APPROVAL_ADJUSTMENT_TYPES = frozenset({
    AdjustmentType.BONUS,
    AdjustmentType.DEDUCTION,
    AdjustmentType.CORRECTION,
})


@dataclass(frozen=True)
class Adjustment:
    """A requested change to one record's net pay."""

    record_id: UUID
    adjustment_type: AdjustmentType
    amount: Decimal
    reason: str | None = None


@dataclass(frozen=True)
class PayrollAdjustment:
    """A persisted adjustment with the totals it moved."""

    id: UUID
    run_id: UUID
    record_id: UUID | None
    employee_id: UUID
    adjustment_type: AdjustmentType
    amount: Decimal
    reason: str | None
    gross_before: Decimal
    gross_after: Decimal
    deductions_before: Decimal
    deductions_after: Decimal
    net_before: Decimal
    net_after: Decimal
    created_by_id: UUID
    created_at: datetime | None = None


@dataclass(frozen=True)
class PayrollRun:
    """One payroll batch for a period."""

    id: UUID
    run_number: str
    period: str
    status: PayrollRunStatus
    total_gross: Decimal = ZERO
    total_deductions: Decimal = ZERO
    total_net: Decimal = ZERO
    employee_count: int = 0
    failed_count: int = 0
    attempt: int = 1
    failure_reason: str | None = None
    rejection_reason: str | None = None
    processed_at: datetime | None = None
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None

    @property
    def payroll_period(self) -> PayrollPeriod:
        return PayrollPeriod.parse(self.period)


@dataclass(frozen=True)
class PayrollRecord:
    """One employee's result within a run."""

    id: UUID
    run_id: UUID
    employee_id: UUID
    assignment_id: UUID
    structure_id: UUID
    status: RecordStatus
    basic: Decimal
    total_earnings: Decimal
    total_deductions: Decimal
    gross: Decimal
    net: Decimal
    earnings: tuple[dict[str, Any], ...] = field(default_factory=tuple)
    deductions: tuple[dict[str, Any], ...] = field(default_factory=tuple)
    working_days: Decimal = ZERO
    present_days: Decimal = ZERO
    absent_days: Decimal = ZERO
    lop_days: Decimal = ZERO
    lop_amount: Decimal = ZERO
    overtime_hours: Decimal = ZERO
    overtime_amount: Decimal = ZERO
    pf: Decimal = ZERO
    esi: Decimal = ZERO
    tds: Decimal = ZERO
    pt: Decimal = ZERO
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None

    @property
    def is_balanced(self) -> bool:
        return self.net == self.gross - self.total_deductions


@dataclass(frozen=True)
class EmployeeCalculation:
    """Successful calculation for one employee."""

    employee_id: UUID
    period: PayrollPeriod
    assignment_id: UUID
    structure_id: UUID
    breakdown: PayrollBreakdown
    ok: bool = True


@dataclass(frozen=True)
class EmployeeCalculationFailure:
    """A domain error stopped one employee; the rest of the cohort continues."""

    employee_id: UUID
    error_code: str
    message: str
    ok: bool = False


CalculationResult = Union[EmployeeCalculation, EmployeeCalculationFailure]


@dataclass(frozen=True)
class RunCreationResult:
    run: PayrollRun
    failures: tuple[EmployeeCalculationFailure, ...] = ()

    @property
    def succeeded(self) -> bool:
        """Run completed and every employee in the cohort was calculated."""
        return self.run.status == PayrollRunStatus.COMPLETED and not self.failures
