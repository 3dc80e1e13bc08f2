"""
Payroll Module (``payroll_modules.payroll``).

Responsibility
--------------
Per-employee payroll calculation and payroll runs: one run per period,
one record per employee, approval with adjustments, rejection and retry.

Architecture position
---------------------
**Modules layer** -- DTOs, ORM models, the run workflow and
transaction-owning services.  The arithmetic lives in
``payroll_engines.payroll_calculator``.

Invariants enforced
-------------------
* At most one run per period.
* ``net == gross - total_deductions`` on every record.
* Run totals are the sums over the run's records.
"""

from payroll_modules.payroll.calculation_service import PayrollCalculationService
from payroll_modules.payroll.models import (
    Adjustment,
    AdjustmentType,
    CalculationResult,
    EmployeeCalculation,
    EmployeeCalculationFailure,
    PayrollAdjustment,
    PayrollRecord,
    PayrollRun,
    PayrollRunStatus,
    RecordStatus,
    RunCreationResult,
)
from payroll_modules.payroll.run_service import PayrollRunService
from payroll_modules.payroll.sources import (
    AssignmentEmployeeDirectory,
    AttendanceSource,
    EmployeeDirectory,
    FullAttendanceSource,
    StaticAttendanceSource,
    StaticEmployeeDirectory,
)
from payroll_modules.payroll.workflows import PAYROLL_RUN_WORKFLOW

__all__ = [
    "PAYROLL_RUN_WORKFLOW",
    "Adjustment",
    "AdjustmentType",
    "AssignmentEmployeeDirectory",
    "AttendanceSource",
    "CalculationResult",
    "EmployeeCalculation",
    "EmployeeCalculationFailure",
    "EmployeeDirectory",
    "FullAttendanceSource",
    "PayrollAdjustment",
    "PayrollCalculationService",
    "PayrollRecord",
    "PayrollRun",
    "PayrollRunService",
    "PayrollRunStatus",
    "RecordStatus",
    "RunCreationResult",
    "StaticAttendanceSource",
    "StaticEmployeeDirectory",
]
