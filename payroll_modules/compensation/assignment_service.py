"""
Employee Assignment Service (``payroll_modules.compensation.assignment_service``).

Responsibility
--------------
The employee assignment ledger: binds an employee to a structure version
and CTC from a date, closes the previous assignment in the same
transaction, and answers "which assignment applied on this date".

Architecture position
---------------------
**Modules layer** -- transaction owner.  ``assign`` is one unit of work;
``bulk_reassign`` is one unit of work per employee.

Invariants enforced
-------------------
* At most one active assignment per employee (close-then-create in one
  transaction, plus a partial unique index on active rows).
* The previous assignment's ``effective_to`` equals the new
  assignment's ``effective_from``.

Failure modes
-------------
* ``StructureNotActiveForDateError`` -- version does not cover the date.
* ``CTCOutOfGradeRangeError`` -- CTC outside the version's grade bounds.
* ``OverlappingRangeError`` -- the active assignment starts on or after
  the new date, so closing it would invert its range.
* ``AssignmentNotFoundError`` / ``StructureVersionNotFoundError``.

Audit relevance
---------------
Each close and each creation emits an audit event with before/after.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.values import DateRange
from payroll_kernel.exceptions import (
    AssignmentNotFoundError,
    CTCOutOfGradeRangeError,
    OverlappingRangeError,
    PayComponentNotFoundError,
    PayrollKernelError,
    StructureNotActiveForDateError,
    StructureVersionNotFoundError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.models.audit_event import AuditAction
from payroll_kernel.services.auditor_service import AuditorService, AuditSink
from payroll_modules._audit_helpers import record_audit
from payroll_modules.compensation.models import (
    AssignmentHistoryEntry,
    EmployeeAssignment,
    ReassignmentFailure,
    ReassignmentResult,
    ReassignmentSuccess,
    ReassignmentUpdate,
)
from payroll_modules.compensation.orm import (
    AssignmentOverrideModel,
    EmployeeAssignmentModel,
    PayComponentModel,
    SalaryGradeModel,
    SalaryStructureModel,
)

logger = get_logger("modules.compensation.assignments")

DEFAULT_REVISION_REASON = "STRUCTURE_UPDATE"


class EmployeeAssignmentService:
    """Per-employee structure and CTC assignments over time."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: AuditSink | None = None,
        default_revision_reason: str = DEFAULT_REVISION_REASON,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auditor = auditor or AuditorService(session, self._clock)
        self._default_revision_reason = default_revision_reason

    # =========================================================================
    # Assign
    # =========================================================================

    def assign(
        self,
        employee_id: UUID,
        structure_id: UUID,
        ctc: Decimal,
        effective_from: date,
        actor_id: UUID,
        overrides: Mapping[UUID, Decimal] | None = None,
        revision_reason: str | None = None,
        approved_by_id: UUID | None = None,
    ) -> EmployeeAssignment:
        """Close the employee's active assignment and create the new one atomically."""
        try:
            with LogContext.bind(employee_id=employee_id):
                model, closed_previous = self._close_and_create(
                    employee_id, structure_id, ctc, effective_from, actor_id,
                    overrides=overrides,
                    revision_reason=revision_reason,
                    approved_by_id=approved_by_id,
                )
                self._session.commit()
                _log_assigned(model, closed_previous)
                return model.to_dto()

        except Exception:
            self._session.rollback()
            raise

    def bulk_reassign(
        self,
        structure_id: UUID,
        effective_date: date,
        updates: Sequence[ReassignmentUpdate],
        actor_id: UUID,
    ) -> list[ReassignmentResult]:
        """
        Move each employee onto ``structure_id`` from ``effective_date``.

        Each employee is its own transaction; a domain failure for one is
        reported in the results and does not stop the others.  CTC defaults
        to the employee's current CTC and overrides carry forward.
        """
        results: list[ReassignmentResult] = []
        for update in updates:
            try:
                with LogContext.bind(employee_id=update.employee_id):
                    current = self._active_model(update.employee_id)
                    if update.ctc is not None:
                        ctc = update.ctc
                    elif current is not None:
                        ctc = current.ctc
                    else:
                        raise AssignmentNotFoundError(str(update.employee_id))

                    if update.overrides is not None:
                        overrides = {o.pay_component_id: o.value for o in update.overrides}
                    elif current is not None:
                        overrides = {o.pay_component_id: o.value for o in current.overrides}
                    else:
                        overrides = None

                    model, closed_previous = self._close_and_create(
                        update.employee_id, structure_id, ctc, effective_date, actor_id,
                        overrides=overrides,
                        revision_reason=update.revision_reason or self._default_revision_reason,
                    )
                    self._session.commit()
                    _log_assigned(model, closed_previous)
                    results.append(ReassignmentSuccess(update.employee_id, model.to_dto()))

            except PayrollKernelError as exc:
                self._session.rollback()
                logger.warning("bulk_reassign_employee_failed", extra={
                    "employee_id": str(update.employee_id),
                    "error_code": exc.code,
                })
                results.append(ReassignmentFailure(update.employee_id, exc.code, str(exc)))
            except Exception:
                self._session.rollback()
                raise

        logger.info("bulk_reassign_completed", extra={
            "structure_id": str(structure_id),
            "succeeded": sum(1 for r in results if r.ok),
            "failed": sum(1 for r in results if not r.ok),
        })
        return results

    # =========================================================================
    # Queries
    # =========================================================================

    def history(self, employee_id: UUID) -> list[AssignmentHistoryEntry]:
        """All assignments, newest ``effective_from`` first, with their structure versions."""
        models = self._session.execute(
            select(EmployeeAssignmentModel)
            .where(EmployeeAssignmentModel.employee_id == employee_id)
            .order_by(EmployeeAssignmentModel.effective_from.desc())
        ).scalars().all()
        entries = []
        for model in models:
            structure = self._session.get(SalaryStructureModel, model.structure_id)
            entries.append(AssignmentHistoryEntry(model.to_dto(), structure.to_dto()))
        return entries

    def resolve_active(self, employee_id: UUID, as_of: date) -> EmployeeAssignment:
        """The assignment whose range contains ``as_of``."""
        model = self._session.execute(
            select(EmployeeAssignmentModel)
            .where(
                EmployeeAssignmentModel.employee_id == employee_id,
                EmployeeAssignmentModel.effective_from <= as_of,
                or_(
                    EmployeeAssignmentModel.effective_to.is_(None),
                    EmployeeAssignmentModel.effective_to > as_of,
                ),
            )
            .order_by(EmployeeAssignmentModel.effective_from.desc())
            .limit(1)
        ).scalar_one_or_none()
        if model is None:
            raise AssignmentNotFoundError(str(employee_id), str(as_of))
        return model.to_dto()

    def current(self, employee_id: UUID) -> EmployeeAssignment:
        model = self._active_model(employee_id)
        if model is None:
            raise AssignmentNotFoundError(str(employee_id))
        return model.to_dto()

    def affected_employees(
        self,
        structure_id: UUID,
        as_of: date | None = None,
    ) -> list[EmployeeAssignment]:
        """Active assignments on a version, optionally those covering ``as_of``."""
        stmt = select(EmployeeAssignmentModel).where(
            EmployeeAssignmentModel.structure_id == structure_id,
            EmployeeAssignmentModel.is_active.is_(True),
        )
        if as_of is not None:
            stmt = stmt.where(EmployeeAssignmentModel.effective_from <= as_of)
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def active_employee_ids(self, as_of: date) -> list[UUID]:
        """Employees with an assignment covering ``as_of``."""
        rows = self._session.execute(
            select(EmployeeAssignmentModel.employee_id)
            .where(
                EmployeeAssignmentModel.effective_from <= as_of,
                or_(
                    EmployeeAssignmentModel.effective_to.is_(None),
                    EmployeeAssignmentModel.effective_to > as_of,
                ),
            )
            .distinct()
        ).scalars().all()
        return sorted(rows, key=str)

    # =========================================================================
    # Internals
    # =========================================================================

    def _active_model(self, employee_id: UUID) -> EmployeeAssignmentModel | None:
        return self._session.execute(
            select(EmployeeAssignmentModel)
            .where(
                EmployeeAssignmentModel.employee_id == employee_id,
                EmployeeAssignmentModel.is_active.is_(True),
            )
            .with_for_update()
        ).scalar_one_or_none()

    def _close_and_create(
        self,
        employee_id: UUID,
        structure_id: UUID,
        ctc: Decimal,
        effective_from: date,
        actor_id: UUID,
        overrides: Mapping[UUID, Decimal] | None = None,
        revision_reason: str | None = None,
        approved_by_id: UUID | None = None,
    ) -> tuple[EmployeeAssignmentModel, bool]:
        """Validate, close the active row and insert the new one.  Does not commit.

        Returns the new row and whether a previous assignment was closed.
        """
        structure = self._session.get(SalaryStructureModel, structure_id)
        if structure is None:
            raise StructureVersionNotFoundError(str(structure_id))
        structure_range = DateRange(structure.effective_from, structure.effective_to)
        if not structure_range.contains(effective_from):
            raise StructureNotActiveForDateError(
                str(structure_id), str(effective_from), *structure_range.describe(),
            )

        if structure.grade_id is not None:
            grade = self._session.get(SalaryGradeModel, structure.grade_id)
            if not grade.to_dto().contains(ctc):
                raise CTCOutOfGradeRangeError(
                    str(ctc),
                    grade.code,
                    str(grade.min_salary) if grade.min_salary is not None else None,
                    str(grade.max_salary) if grade.max_salary is not None else None,
                )

        overrides = dict(overrides or {})
        if overrides:
            known = set(self._session.execute(
                select(PayComponentModel.id).where(PayComponentModel.id.in_(overrides))
            ).scalars())
            for component_id in overrides:
                if component_id not in known:
                    raise PayComponentNotFoundError(str(component_id))

        current = self._active_model(employee_id)
        before = None
        if current is not None:
            if current.effective_from >= effective_from:
                raise OverlappingRangeError(
                    str(current.id),
                    str(current.effective_from),
                    str(current.effective_to) if current.effective_to else None,
                    str(effective_from),
                    None,
                )
            before = {
                "assignment_id": str(current.id),
                "structure_id": str(current.structure_id),
                "ctc": current.ctc,
                "effective_from": current.effective_from,
                "effective_to": current.effective_to,
            }
            current.effective_to = effective_from
            current.is_active = False
            current.updated_by_id = actor_id
            # Close before insert so the active-assignment index never sees two rows.
            self._session.flush()

            record_audit(
                self._session, self._auditor, "employee_assignment", current.id,
                AuditAction.ASSIGNMENT_CLOSED, actor_id,
                before={"effective_to": before["effective_to"], "is_active": True},
                after={"effective_to": effective_from, "is_active": False},
                context={"employee_id": str(employee_id)},
            )

        model = EmployeeAssignmentModel(
            employee_id=employee_id,
            structure_id=structure_id,
            ctc=ctc,
            effective_from=effective_from,
            effective_to=None,
            is_active=True,
            revision_reason=revision_reason,
            approved_by_id=approved_by_id,
            created_by_id=actor_id,
        )
        model.overrides = [
            AssignmentOverrideModel(
                pay_component_id=component_id,
                value=Decimal(value),
                created_by_id=actor_id,
            )
            for component_id, value in overrides.items()
        ]
        self._session.add(model)
        self._session.flush()

        record_audit(
            self._session, self._auditor, "employee_assignment", model.id,
            AuditAction.ASSIGNMENT_CREATED, actor_id,
            before=before,
            after={
                "structure_id": str(structure_id),
                "ctc": ctc,
                "effective_from": effective_from,
                "overrides": {str(k): v for k, v in overrides.items()},
            },
            context={"employee_id": str(employee_id), "revision_reason": revision_reason},
        )

        return model, before is not None


def _log_assigned(model: EmployeeAssignmentModel, closed_previous: bool) -> None:
    logger.info("employee_assigned", extra={
        "employee_id": str(model.employee_id),
        "assignment_id": str(model.id),
        "structure_id": str(model.structure_id),
        "effective_from": model.effective_from,
        "closed_previous": closed_previous,
    })
