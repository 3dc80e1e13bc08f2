"""
Payroll Calculation Service (``payroll_modules.payroll.calculation_service``).

Responsibility
--------------
Computes one employee's payroll for a period: resolves the assignment
active on the period's last day, builds the evaluation plan of its
structure version and hands both to the pure calculator together with
attendance and the configured statutory rules.

Architecture position
---------------------
**Modules layer** -- read-only orchestration over the compensation
services and ``payroll_engines.payroll_calculator``.  Never commits.

Invariants enforced
-------------------
* Statutory deductions appear once each, in PF, ESI, TDS, PT order.
* ``net == gross - total_deductions`` on every breakdown.

Failure modes
-------------
* ``calculate`` raises the ``PayrollKernelError`` that stopped the
  employee (``AssignmentNotFoundError``, ``FormulaError``,
  ``InvalidAttendanceError``, ...).
* ``calculate_bulk`` turns those into ``EmployeeCalculationFailure``
  entries; any other exception is systemic and propagates.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from payroll_config import PayrollConfig, get_active_config
from payroll_engines.component_resolver import EvaluationPlan, build_plan
from payroll_engines.payroll_calculator import calculate_breakdown
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.values import AttendanceFacts, PayrollPeriod
from payroll_kernel.exceptions import PayrollKernelError
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_modules.compensation.assignment_service import EmployeeAssignmentService
from payroll_modules.compensation.structure_service import StructureVersionService
from payroll_modules.payroll.helpers import build_statutory_rules, calculator_settings
from payroll_modules.payroll.models import (
    CalculationResult,
    EmployeeCalculation,
    EmployeeCalculationFailure,
)
from payroll_modules.payroll.sources import AttendanceSource, FullAttendanceSource

logger = get_logger("modules.payroll.calculation")


def _as_period(period: PayrollPeriod | str) -> PayrollPeriod:
    if isinstance(period, PayrollPeriod):
        return period
    return PayrollPeriod.parse(period)


class PayrollCalculationService:
    """Per-employee payroll calculation."""

    def __init__(
        self,
        session: Session,
        attendance_source: AttendanceSource | None = None,
        config: PayrollConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._attendance = attendance_source or FullAttendanceSource()
        self._assignments = EmployeeAssignmentService(session, self._clock)
        self._structures = StructureVersionService(session, self._clock)
        self._rules = build_statutory_rules(self._config.statutory)
        self._settings = calculator_settings(self._config)

    @property
    def config(self) -> PayrollConfig:
        return self._config

    def calculate(
        self,
        employee_id: UUID,
        period: PayrollPeriod | str,
        attendance: AttendanceFacts | None = None,
    ) -> EmployeeCalculation:
        """Compute one employee's breakdown for ``period``."""
        return self._calculate(employee_id, _as_period(period), attendance, plans={})

    def calculate_bulk(
        self,
        employee_ids: Sequence[UUID],
        period: PayrollPeriod | str,
        attendance: Mapping[UUID, AttendanceFacts] | None = None,
    ) -> list[CalculationResult]:
        """
        Calculate every employee in ``employee_ids``, in order.

        One employee's domain error becomes a failure entry and the rest
        continue.  Plans are built once per structure version.
        """
        period = _as_period(period)
        attendance = attendance or {}
        plans: dict[UUID, EvaluationPlan] = {}
        results: list[CalculationResult] = []

        for employee_id in employee_ids:
            try:
                results.append(self._calculate(
                    employee_id, period, attendance.get(employee_id), plans,
                ))
            except PayrollKernelError as exc:
                logger.warning("payroll_employee_calculation_failed", extra={
                    "employee_id": str(employee_id),
                    "period": period.code,
                    "error_code": exc.code,
                    "error": str(exc),
                })
                results.append(EmployeeCalculationFailure(
                    employee_id=employee_id,
                    error_code=exc.code,
                    message=str(exc),
                ))

        failed = sum(1 for r in results if not r.ok)
        logger.info("payroll_bulk_calculation_completed", extra={
            "period": period.code,
            "employee_count": len(results),
            "failed_count": failed,
        })
        return results

    def _calculate(
        self,
        employee_id: UUID,
        period: PayrollPeriod,
        attendance: AttendanceFacts | None,
        plans: dict[UUID, EvaluationPlan],
    ) -> EmployeeCalculation:
        with LogContext.bind(employee_id=employee_id, period=period.code):
            assignment = self._assignments.resolve_active(employee_id, period.last_day)
            plan = plans.get(assignment.structure_id)
            if plan is None:
                structure = self._structures.get_version(assignment.structure_id)
                plan = build_plan(structure.definitions())
                plans[assignment.structure_id] = plan

            if attendance is None:
                attendance = self._attendance.get_attendance(employee_id, period)

            breakdown = calculate_breakdown(
                plan,
                ctc=self._config.monthly_ctc(assignment.ctc),
                attendance=attendance,
                overrides=assignment.override_map,
                statutory_rules=self._rules,
                settings=self._settings,
            )

            logger.debug("payroll_employee_calculated", extra={
                "assignment_id": str(assignment.id),
                "structure_id": str(assignment.structure_id),
                "gross": str(breakdown.gross),
                "net": str(breakdown.net),
            })
            return EmployeeCalculation(
                employee_id=employee_id,
                period=period,
                assignment_id=assignment.id,
                structure_id=assignment.structure_id,
                breakdown=breakdown,
            )
