"""
Payroll Run Service (``payroll_modules.payroll.run_service``).

Responsibility
--------------
Orchestrates payroll runs: creates one run per period, calculates the
cohort into per-employee records, and drives the run through approval,
rejection, standalone record adjustments and retry.

Architecture position
---------------------
**Modules layer** -- transaction owner.  Run creation commits the DRAFT
run before calculating so a systemic failure can leave it ``FAILED``;
approve, reject, adjust and retry are each one transaction.

Invariants enforced
-------------------
* At most one run per period (unique constraint; an ``IntegrityError``
  on insert is reported as ``DuplicatePeriodError``).
* Status moves only along ``PAYROLL_RUN_WORKFLOW``.
* ``net == gross - total_deductions`` on every record after every
  adjustment, and run totals are always recomputed from the records.

Failure modes
-------------
* ``DuplicatePeriodError`` -- the period already has a run.
* ``NoEmployeesToProcessError`` -- empty cohort.
* ``InvalidRunStateError`` -- action not allowed from the current status.
* ``InvalidAdjustmentError`` -- negative amount or disallowed type.
* ``PayrollRunNotFoundError`` / ``PayrollRecordNotFoundError``.
* Per-employee domain errors are returned as
  ``EmployeeCalculationFailure`` values, never raised.

Audit relevance
---------------
Run creation, calculation, failure, approval, rejection, retry and every
record adjustment emit an audit event with before/after values.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from payroll_config import PayrollConfig
from payroll_engines.statutory import StatutoryKind
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.values import AttendanceFacts, PayrollPeriod
from payroll_kernel.exceptions import (
    DuplicatePeriodError,
    InvalidAdjustmentError,
    InvalidRunStateError,
    NoEmployeesToProcessError,
    PayrollRecordNotFoundError,
    PayrollRunNotFoundError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.models.audit_event import AuditAction
from payroll_kernel.services.auditor_service import AuditorService, AuditSink
from payroll_kernel.services.sequence_service import SequenceService
from payroll_modules._audit_helpers import record_audit
from payroll_modules.payroll.calculation_service import PayrollCalculationService
from payroll_modules.payroll.helpers import (
    RecordTotals,
    adjustment_line,
    apply_adjustment,
    sum_totals,
)
from payroll_modules.payroll.models import (
    APPROVAL_ADJUSTMENT_TYPES,
    Adjustment,
    AdjustmentType,
    EmployeeCalculation,
    PayrollAdjustment,
    PayrollRecord,
    PayrollRun,
    PayrollRunStatus,
    RecordStatus,
    RunCreationResult,
)
from payroll_modules.payroll.orm import (
    PayrollAdjustmentModel,
    PayrollRecordModel,
    PayrollRunModel,
)
from payroll_modules.payroll.sources import AssignmentEmployeeDirectory, EmployeeDirectory
from payroll_modules.payroll.workflows import PAYROLL_RUN_WORKFLOW

logger = get_logger("modules.payroll.runs")

ZERO = Decimal("0")


def _as_period(period: PayrollPeriod | str) -> PayrollPeriod:
    if isinstance(period, PayrollPeriod):
        return period
    return PayrollPeriod.parse(period)


def _record_model(run_id: UUID, calc: EmployeeCalculation, actor_id: UUID) -> PayrollRecordModel:
    b = calc.breakdown
    attendance = b.attendance
    return PayrollRecordModel(
        id=uuid4(),
        run_id=run_id,
        employee_id=calc.employee_id,
        assignment_id=calc.assignment_id,
        structure_id=calc.structure_id,
        status=RecordStatus.CALCULATED.value,
        basic=b.basic,
        total_earnings=b.total_earnings,
        total_deductions=b.total_deductions,
        gross=b.gross,
        net=b.net,
        earnings=[line.to_dict() for line in b.earnings],
        deductions=[line.to_dict() for line in b.deductions],
        working_days=attendance.working_days,
        present_days=attendance.present_days,
        absent_days=attendance.absent_days,
        lop_days=attendance.lop_days,
        lop_amount=b.lop_amount,
        overtime_hours=attendance.overtime_hours,
        overtime_amount=b.overtime_amount,
        pf=b.statutory_amount(StatutoryKind.PF),
        esi=b.statutory_amount(StatutoryKind.ESI),
        tds=b.statutory_amount(StatutoryKind.TDS),
        pt=b.statutory_amount(StatutoryKind.PT),
        created_by_id=actor_id,
    )


def _totals_snapshot(run: PayrollRunModel) -> dict[str, Any]:
    return {
        "status": run.status,
        "total_gross": run.total_gross,
        "total_deductions": run.total_deductions,
        "total_net": run.total_net,
        "employee_count": run.employee_count,
    }


class PayrollRunService:
    """Payroll runs from creation to approval."""

    def __init__(
        self,
        session: Session,
        calculation_service: PayrollCalculationService | None = None,
        employee_directory: EmployeeDirectory | None = None,
        clock: Clock | None = None,
        auditor: AuditSink | None = None,
        config: PayrollConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auditor = auditor or AuditorService(session, self._clock)
        self._calculator = calculation_service or PayrollCalculationService(
            session, config=config, clock=self._clock,
        )
        self._directory = employee_directory or AssignmentEmployeeDirectory(session)
        self._sequences = SequenceService(session)

    # =========================================================================
    # Create
    # =========================================================================

    def create_run(
        self,
        period: PayrollPeriod | str,
        actor_id: UUID,
        employee_ids: Sequence[UUID] | None = None,
        attendance: Mapping[UUID, AttendanceFacts] | None = None,
    ) -> RunCreationResult:
        """
        Create the period's run and calculate its cohort.

        ``employee_ids`` defaults to every employee the directory reports
        active on the period's last day.  ``attendance`` supplies facts per
        employee; the rest come from the calculation service's source.
        """
        period = _as_period(period)
        with LogContext.bind(period=period.code, actor_id=actor_id):
            try:
                existing = self._session.execute(
                    select(PayrollRunModel.id).where(PayrollRunModel.period == period.code)
                ).scalar_one_or_none()
                if existing is not None:
                    raise DuplicatePeriodError(period.code, str(existing))

                cohort = self._cohort(period, employee_ids)
                number = self._sequences.next_value(SequenceService.PAYROLL_RUN)
                run = PayrollRunModel(
                    id=uuid4(),
                    run_number=f"PR-{period.code}-{number:05d}",
                    period=period.code,
                    status=PAYROLL_RUN_WORKFLOW.initial_state,
                    total_gross=ZERO,
                    total_deductions=ZERO,
                    total_net=ZERO,
                    employee_count=0,
                    failed_count=0,
                    attempt=1,
                    created_by_id=actor_id,
                )
                self._session.add(run)
                try:
                    self._session.flush()
                except IntegrityError as exc:
                    raise DuplicatePeriodError(period.code) from exc

                record_audit(
                    self._session, self._auditor, "payroll_run", run.id,
                    AuditAction.PAYROLL_RUN_CREATED, actor_id,
                    after={
                        "run_number": run.run_number,
                        "period": run.period,
                        "status": run.status,
                    },
                    context={"cohort_size": len(cohort)},
                )
                self._session.commit()

            except Exception:
                self._session.rollback()
                raise

            logger.info("payroll_run_created", extra={
                "run_id": str(run.id),
                "run_number": run.run_number,
                "cohort_size": len(cohort),
            })
            return self._calculate_run(run, period, cohort, actor_id, attendance)

    def _cohort(
        self,
        period: PayrollPeriod,
        employee_ids: Sequence[UUID] | None,
    ) -> list[UUID]:
        if employee_ids is None:
            employee_ids = self._directory.active_employee_ids(period.last_day)
        cohort = list(dict.fromkeys(employee_ids))
        if not cohort:
            raise NoEmployeesToProcessError(period.code)
        return cohort

    def _calculate_run(
        self,
        run: PayrollRunModel,
        period: PayrollPeriod,
        cohort: list[UUID],
        actor_id: UUID,
        attendance: Mapping[UUID, AttendanceFacts] | None,
    ) -> RunCreationResult:
        """Calculate a DRAFT run's cohort and move it to COMPLETED or FAILED."""
        with LogContext.bind(run_id=run.id):
            try:
                savepoint = self._session.begin_nested()
                try:
                    results = self._calculator.calculate_bulk(cohort, period, attendance)
                    successes = [r for r in results if r.ok]
                    failures = tuple(r for r in results if not r.ok)
                    for calc in successes:
                        self._session.add(_record_model(run.id, calc, actor_id))
                    self._session.flush()
                    savepoint.commit()
                except Exception as exc:
                    savepoint.rollback()
                    logger.error("payroll_run_calculation_aborted", extra={
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    }, exc_info=True)
                    self._fail(run, f"{type(exc).__name__}: {exc}", actor_id, failed_count=0)
                    self._session.commit()
                    return RunCreationResult(run.to_dto(), ())

                if not successes:
                    self._fail(
                        run,
                        f"All {len(failures)} employees failed calculation",
                        actor_id,
                        failed_count=len(failures),
                    )
                else:
                    self._transition(run, "calculate")
                    self._refresh_totals(run)
                    run.failed_count = len(failures)
                    run.processed_at = self._clock.now()
                    run.failure_reason = None
                    run.updated_by_id = actor_id
                    self._session.flush()
                    record_audit(
                        self._session, self._auditor, "payroll_run", run.id,
                        AuditAction.PAYROLL_RUN_CALCULATED, actor_id,
                        after=_totals_snapshot(run),
                        context={
                            "failed_count": len(failures),
                            "failures": [
                                {"employee_id": f.employee_id, "error_code": f.error_code}
                                for f in failures
                            ],
                        },
                    )
                self._session.commit()

            except Exception:
                self._session.rollback()
                raise

            logger.info("payroll_run_calculated", extra={
                "status": run.status,
                "employee_count": run.employee_count,
                "failed_count": len(failures),
                "total_gross": str(run.total_gross),
                "total_net": str(run.total_net),
            })
            return RunCreationResult(run.to_dto(), failures)

    def _fail(
        self,
        run: PayrollRunModel,
        reason: str,
        actor_id: UUID,
        failed_count: int,
    ) -> None:
        before = _totals_snapshot(run)
        self._transition(run, "fail")
        run.failure_reason = reason
        run.failed_count = failed_count
        run.employee_count = 0
        run.total_gross = run.total_deductions = run.total_net = ZERO
        run.processed_at = self._clock.now()
        run.updated_by_id = actor_id
        self._session.flush()
        record_audit(
            self._session, self._auditor, "payroll_run", run.id,
            AuditAction.PAYROLL_RUN_FAILED, actor_id,
            before=before,
            after=_totals_snapshot(run),
            context={"failure_reason": reason},
        )
        logger.warning("payroll_run_failed", extra={
            "run_id": str(run.id),
            "failure_reason": reason,
        })

    # =========================================================================
    # Approve / reject
    # =========================================================================

    def approve(
        self,
        run_id: UUID,
        actor_id: UUID,
        adjustments: Sequence[Adjustment] | None = None,
    ) -> PayrollRun:
        """
        Apply ``adjustments`` and approve every record of a COMPLETED run.

        Approving an already APPROVED run without adjustments returns it
        unchanged.
        """
        adjustments = list(adjustments or ())
        with LogContext.bind(run_id=run_id, actor_id=actor_id):
            try:
                run = self._locked_run(run_id)
                if run.status == PayrollRunStatus.APPROVED.value and not adjustments:
                    self._session.commit()
                    logger.info("payroll_run_already_approved", extra={
                        "run_number": run.run_number,
                    })
                    return run.to_dto()

                before = _totals_snapshot(run)
                self._transition(run, "approve")
                records = {r.id: r for r in self._record_models(run.id)}

                for adj in adjustments:
                    record = records.get(adj.record_id)
                    if record is None:
                        raise PayrollRecordNotFoundError(str(adj.record_id), str(run.id))
                    self._check_adjustment(adj, APPROVAL_ADJUSTMENT_TYPES)
                    self._apply(run, record, adj, actor_id)

                now = self._clock.now()
                for record in records.values():
                    record.status = RecordStatus.APPROVED.value
                    record.approved_by_id = actor_id
                    record.approved_at = now
                    record.updated_by_id = actor_id

                self._refresh_totals(run)
                run.approved_by_id = actor_id
                run.approved_at = now
                run.updated_by_id = actor_id
                self._session.flush()

                record_audit(
                    self._session, self._auditor, "payroll_run", run.id,
                    AuditAction.PAYROLL_RUN_APPROVED, actor_id,
                    before=before,
                    after=_totals_snapshot(run),
                    context={"adjustment_count": len(adjustments)},
                )
                self._session.commit()

                logger.info("payroll_run_approved", extra={
                    "run_number": run.run_number,
                    "adjustment_count": len(adjustments),
                    "total_net": str(run.total_net),
                })
                return run.to_dto()

            except Exception:
                self._session.rollback()
                raise

    def reject(self, run_id: UUID, actor_id: UUID, comments: str) -> PayrollRun:
        """Send a COMPLETED run back to FAILED and its records to DRAFT."""
        with LogContext.bind(run_id=run_id, actor_id=actor_id):
            try:
                run = self._locked_run(run_id)
                before = _totals_snapshot(run)
                self._transition(run, "reject")
                run.rejection_reason = comments
                run.updated_by_id = actor_id
                for record in self._record_models(run.id):
                    record.status = RecordStatus.DRAFT.value
                    record.updated_by_id = actor_id
                self._session.flush()

                record_audit(
                    self._session, self._auditor, "payroll_run", run.id,
                    AuditAction.PAYROLL_RUN_REJECTED, actor_id,
                    before=before,
                    after=_totals_snapshot(run),
                    context={"rejection_reason": comments},
                )
                self._session.commit()

                logger.info("payroll_run_rejected", extra={
                    "run_number": run.run_number,
                    "rejection_reason": comments,
                })
                return run.to_dto()

            except Exception:
                self._session.rollback()
                raise

    # =========================================================================
    # Adjust / retry
    # =========================================================================

    def adjust_record(
        self,
        record_id: UUID,
        adjustment: Adjustment,
        actor_id: UUID,
    ) -> PayrollRecord:
        """Adjust one record of a COMPLETED run and recompute the run totals."""
        try:
            record = self._session.get(PayrollRecordModel, record_id)
            if record is None:
                raise PayrollRecordNotFoundError(str(record_id))
            if adjustment.record_id != record_id:
                raise InvalidAdjustmentError(
                    str(record_id), f"adjustment targets record {adjustment.record_id}",
                )
            with LogContext.bind(run_id=record.run_id, employee_id=record.employee_id):
                run = self._locked_run(record.run_id)
                if run.status != PayrollRunStatus.COMPLETED.value:
                    raise InvalidRunStateError(str(run.id), run.status, "adjust")
                self._check_adjustment(adjustment, frozenset(AdjustmentType))
                self._apply(run, record, adjustment, actor_id)
                record.status = RecordStatus.CALCULATED.value
                self._refresh_totals(run)
                run.updated_by_id = actor_id
                self._session.flush()
                self._session.commit()

                logger.info("payroll_record_adjusted", extra={
                    "record_id": str(record.id),
                    "adjustment_type": AdjustmentType(adjustment.adjustment_type).value,
                    "net": str(record.net),
                })
                return record.to_dto()

        except Exception:
            self._session.rollback()
            raise

    def retry_run(
        self,
        run_id: UUID,
        actor_id: UUID,
        employee_ids: Sequence[UUID] | None = None,
        attendance: Mapping[UUID, AttendanceFacts] | None = None,
    ) -> RunCreationResult:
        """
        Recalculate a FAILED run on the same row.

        Previous records are deleted; their adjustments stay with
        ``record_id`` cleared.  The cohort is resolved again unless
        ``employee_ids`` is given.
        """
        with LogContext.bind(run_id=run_id, actor_id=actor_id):
            try:
                run = self._locked_run(run_id)
                before = _totals_snapshot(run)
                previous_reason = run.rejection_reason or run.failure_reason
                self._transition(run, "retry")
                period = PayrollPeriod.parse(run.period)
                cohort = self._cohort(period, employee_ids)

                self._session.execute(
                    update(PayrollAdjustmentModel)
                    .where(PayrollAdjustmentModel.run_id == run.id)
                    .values(record_id=None)
                )
                removed = self._session.execute(
                    delete(PayrollRecordModel).where(PayrollRecordModel.run_id == run.id)
                ).rowcount

                run.attempt += 1
                run.failure_reason = None
                run.rejection_reason = None
                run.approved_by_id = None
                run.approved_at = None
                run.employee_count = 0
                run.failed_count = 0
                run.total_gross = run.total_deductions = run.total_net = ZERO
                run.updated_by_id = actor_id
                self._session.flush()

                record_audit(
                    self._session, self._auditor, "payroll_run", run.id,
                    AuditAction.PAYROLL_RUN_RETRIED, actor_id,
                    before=before,
                    after=_totals_snapshot(run),
                    context={
                        "attempt": run.attempt,
                        "previous_reason": previous_reason,
                        "records_removed": removed,
                        "cohort_size": len(cohort),
                    },
                )
                self._session.commit()

            except Exception:
                self._session.rollback()
                raise

            logger.info("payroll_run_retried", extra={
                "run_number": run.run_number,
                "attempt": run.attempt,
                "cohort_size": len(cohort),
            })
            return self._calculate_run(run, period, cohort, actor_id, attendance)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_run(self, run_id: UUID) -> PayrollRun:
        return self._get_run_model(run_id).to_dto()

    def get_run_for_period(self, period: PayrollPeriod | str) -> PayrollRun:
        code = _as_period(period).code
        model = self._session.execute(
            select(PayrollRunModel).where(PayrollRunModel.period == code)
        ).scalar_one_or_none()
        if model is None:
            raise PayrollRunNotFoundError(code)
        return model.to_dto()

    def list_runs(self, status: PayrollRunStatus | None = None) -> list[PayrollRun]:
        stmt = select(PayrollRunModel).order_by(PayrollRunModel.period.desc())
        if status is not None:
            stmt = stmt.where(PayrollRunModel.status == PayrollRunStatus(status).value)
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def get_records(self, run_id: UUID) -> list[PayrollRecord]:
        self._get_run_model(run_id)
        return [m.to_dto() for m in self._record_models(run_id)]

    def get_record(self, record_id: UUID) -> PayrollRecord:
        model = self._session.get(PayrollRecordModel, record_id)
        if model is None:
            raise PayrollRecordNotFoundError(str(record_id))
        return model.to_dto()

    def list_adjustments(self, run_id: UUID) -> list[PayrollAdjustment]:
        self._get_run_model(run_id)
        models = self._session.execute(
            select(PayrollAdjustmentModel)
            .where(PayrollAdjustmentModel.run_id == run_id)
            .order_by(PayrollAdjustmentModel.created_at, PayrollAdjustmentModel.id)
        ).scalars()
        return [m.to_dto() for m in models]

    # =========================================================================
    # Internals
    # =========================================================================

    def _get_run_model(self, run_id: UUID) -> PayrollRunModel:
        model = self._session.get(PayrollRunModel, run_id)
        if model is None:
            raise PayrollRunNotFoundError(str(run_id))
        return model

    def _locked_run(self, run_id: UUID) -> PayrollRunModel:
        model = self._session.execute(
            select(PayrollRunModel)
            .where(PayrollRunModel.id == run_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise PayrollRunNotFoundError(str(run_id))
        return model

    def _record_models(self, run_id: UUID) -> list[PayrollRecordModel]:
        return list(self._session.execute(
            select(PayrollRecordModel)
            .where(PayrollRecordModel.run_id == run_id)
            .order_by(PayrollRecordModel.employee_id)
        ).scalars())

    def _transition(self, run: PayrollRunModel, action: str) -> None:
        transition = PAYROLL_RUN_WORKFLOW.find_transition(run.status, action)
        if transition is None:
            raise InvalidRunStateError(str(run.id), run.status, action)
        logger.debug("payroll_run_transition", extra={
            "run_id": str(run.id),
            "from_state": transition.from_state,
            "to_state": transition.to_state,
            "action": action,
        })
        run.status = transition.to_state

    def _refresh_totals(self, run: PayrollRunModel) -> None:
        self._session.flush()
        records = self._record_models(run.id)
        run.total_gross, run.total_deductions, run.total_net = sum_totals(records)
        run.employee_count = len(records)

    @staticmethod
    def _check_adjustment(adjustment: Adjustment, allowed: frozenset[AdjustmentType]) -> None:
        try:
            kind = AdjustmentType(adjustment.adjustment_type)
        except ValueError:
            raise InvalidAdjustmentError(
                str(adjustment.record_id),
                f"unknown adjustment type {adjustment.adjustment_type!r}",
            ) from None
        if kind not in allowed:
            raise InvalidAdjustmentError(
                str(adjustment.record_id), f"{kind.value} adjustments are not allowed here",
            )
        if adjustment.amount < ZERO:
            raise InvalidAdjustmentError(
                str(adjustment.record_id), f"amount cannot be negative: {adjustment.amount}",
            )

    def _apply(
        self,
        run: PayrollRunModel,
        record: PayrollRecordModel,
        adjustment: Adjustment,
        actor_id: UUID,
    ) -> PayrollAdjustmentModel:
        kind = AdjustmentType(adjustment.adjustment_type)
        before = RecordTotals(
            total_earnings=record.total_earnings,
            gross=record.gross,
            total_deductions=record.total_deductions,
            net=record.net,
        )
        after = apply_adjustment(before, kind, adjustment.amount)

        if kind == AdjustmentType.DEDUCTION:
            record.deductions = list(record.deductions) + [
                adjustment_line(kind, adjustment.amount, adjustment.reason)
            ]
        else:
            record.earnings = list(record.earnings) + [
                adjustment_line(kind, after.gross - before.gross, adjustment.reason)
            ]
        record.total_earnings = after.total_earnings
        record.gross = after.gross
        record.total_deductions = after.total_deductions
        record.net = after.net
        record.updated_by_id = actor_id

        model = PayrollAdjustmentModel(
            id=uuid4(),
            run_id=run.id,
            record_id=record.id,
            employee_id=record.employee_id,
            adjustment_type=kind.value,
            amount=adjustment.amount,
            reason=adjustment.reason,
            gross_before=before.gross,
            gross_after=after.gross,
            deductions_before=before.total_deductions,
            deductions_after=after.total_deductions,
            net_before=before.net,
            net_after=after.net,
            created_by_id=actor_id,
        )
        self._session.add(model)
        self._session.flush()

        record_audit(
            self._session, self._auditor, "payroll_record", record.id,
            AuditAction.PAYROLL_RECORD_ADJUSTED, actor_id,
            before={
                "gross": before.gross,
                "total_deductions": before.total_deductions,
                "net": before.net,
            },
            after={
                "gross": after.gross,
                "total_deductions": after.total_deductions,
                "net": after.net,
            },
            context={
                "run_id": run.id,
                "adjustment_id": model.id,
                "adjustment_type": kind.value,
                "amount": adjustment.amount,
                "reason": adjustment.reason,
            },
        )
        return model
