"""
Structure Version Service (``payroll_modules.compensation.structure_service``).

Responsibility
--------------
The temporal version store for salary structures.  Creates the first
version of a named structure, supersedes versions with new effective
ranges, resolves the version active on a date, and lists, previews and
archives version chains.

Architecture position
---------------------
**Modules layer** -- transaction owner.  Range planning is delegated to
``payroll_engines.effective_dating`` and component ordering checks to
``payroll_engines.component_resolver``; this service loads rows, applies
the plan and writes the audit trail.

Invariants enforced
-------------------
* Versions sharing a name never overlap and leave no gap once a successor
  exists.  Every rival version is checked, not only the base.
* At most one open-ended version per name (also a partial unique index).
* Components only reference components declared before them.
* Close-then-create happens in one transaction; nothing is written when a
  check fails.

Failure modes
-------------
* ``DuplicateNameOrCodeError``, ``OverlappingRangeError``,
  ``NonContiguousRangeError``, ``InvertedRangeError``,
  ``UnresolvedBaseReferenceError``, ``InvalidComponentError``,
  ``PayComponentNotFoundError``, ``SalaryGradeNotFoundError``.
* ``StructureVersionNotFoundError`` / ``StructureNotFoundError`` on lookup.

Audit relevance
---------------
Version creation, supersession (with the closed predecessor's before/after
range) and archiving each emit an audit event.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from payroll_engines.component_resolver import (
    CalculationType,
    ComponentCategory,
    ComponentDefinition,
    ComponentType,
    EvaluationPlan,
    build_plan,
)
from payroll_engines.effective_dating import VersionSpan, plan_supersession
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.values import DateRange
from payroll_kernel.exceptions import (
    DuplicateNameOrCodeError,
    InvertedRangeError,
    PayComponentNotFoundError,
    SalaryGradeNotFoundError,
    StructureNotFoundError,
    StructureVersionNotFoundError,
    VersioningError,
)
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.audit_event import AuditAction
from payroll_kernel.services.auditor_service import AuditorService, AuditSink
from payroll_modules._audit_helpers import record_audit
from payroll_modules.compensation.models import (
    RangeValidation,
    SalaryStructure,
    StructureComponentSpec,
    StructureVersionInfo,
)
from payroll_modules.compensation.orm import (
    EmployeeAssignmentModel,
    PayComponentModel,
    SalaryGradeModel,
    SalaryStructureModel,
    StructureComponentModel,
)

logger = get_logger("modules.compensation.structures")

DEFAULT_KEEP_VERSIONS = 5


def _range_dict(rng: DateRange) -> dict:
    return {"effective_from": rng.effective_from, "effective_to": rng.effective_to}


class StructureVersionService:
    """Effective-dated versions of named salary structures."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: AuditSink | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auditor = auditor or AuditorService(session, self._clock)

    # =========================================================================
    # Create
    # =========================================================================

    def create_version(
        self,
        name: str,
        code: str,
        effective_range: DateRange,
        components: Sequence[StructureComponentSpec],
        actor_id: UUID,
        grade_id: UUID | None = None,
        description: str | None = None,
    ) -> SalaryStructure:
        """
        Create the first version of a new structure.

        Fails if any version, in any state, already uses ``name`` or ``code``.
        """
        try:
            existing = self._session.execute(
                select(SalaryStructureModel.id)
                .where(or_(
                    SalaryStructureModel.name == name,
                    SalaryStructureModel.code == code,
                ))
                .limit(1)
            ).scalar_one_or_none()
            if existing is not None:
                raise DuplicateNameOrCodeError(name, code, str(existing))

            if grade_id is not None and self._session.get(SalaryGradeModel, grade_id) is None:
                raise SalaryGradeNotFoundError(str(grade_id))

            component_models, plan = self._prepare_components(components, actor_id)

            model = SalaryStructureModel(
                name=name,
                code=code,
                grade_id=grade_id,
                effective_from=effective_range.effective_from,
                effective_to=effective_range.effective_to,
                is_active=True,
                description=description,
                created_by_id=actor_id,
            )
            model.components = component_models
            self._session.add(model)
            self._session.flush()

            record_audit(
                self._session, self._auditor, "salary_structure", model.id,
                AuditAction.STRUCTURE_VERSION_CREATED, actor_id,
                after={
                    "name": name,
                    "code": code,
                    **_range_dict(effective_range),
                    "components": list(plan.codes),
                },
            )
            self._session.commit()

            logger.info("structure_version_created", extra={
                "structure_id": str(model.id),
                "structure_name": name,
                "effective_from": effective_range.effective_from,
                "component_count": len(component_models),
            })
            return model.to_dto()

        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Supersede
    # =========================================================================

    def supersede(
        self,
        base_version_id: UUID,
        new_range: DateRange,
        change_log: str | None,
        actor_id: UUID,
        components: Sequence[StructureComponentSpec] | None = None,
    ) -> SalaryStructure:
        """
        Create a new version of ``base_version_id``'s structure for ``new_range``.

        The open-ended version that starts before ``new_range`` is closed at
        ``new_range.effective_from``.  Omitted ``components`` are carried
        forward from the base version.  A version inserted before an existing
        successor is stored inactive.
        """
        try:
            base = self._get_model(base_version_id)
            siblings = self._session.execute(
                select(SalaryStructureModel)
                .where(SalaryStructureModel.name == base.name)
                .order_by(SalaryStructureModel.effective_from)
                .with_for_update()
            ).scalars().all()

            spans = [
                VersionSpan(m.id, DateRange(m.effective_from, m.effective_to))
                for m in siblings
            ]
            plan = plan_supersession(spans, new_range)

            specs = (
                list(components) if components is not None
                else [c.to_spec() for c in base.to_dto().components]
            )
            component_models, eval_plan = self._prepare_components(specs, actor_id)

            by_id = {m.id: m for m in siblings}
            closed: list[dict] = []
            for closure in plan.closures:
                prior = by_id[closure.version_id]
                closed.append({
                    "version_id": str(prior.id),
                    "before": {"effective_to": prior.effective_to, "is_active": prior.is_active},
                    "after": {"effective_to": closure.range.effective_to, "is_active": False},
                })
                prior.effective_to = closure.range.effective_to
                prior.is_active = False
                prior.updated_by_id = actor_id
            # Close before insert so the open-version index never sees two rows.
            self._session.flush()

            model = SalaryStructureModel(
                name=base.name,
                code=base.code,
                grade_id=base.grade_id,
                effective_from=new_range.effective_from,
                effective_to=new_range.effective_to,
                is_active=plan.successor is None,
                description=base.description,
                change_log=change_log,
                created_by_id=actor_id,
            )
            model.components = component_models
            self._session.add(model)
            self._session.flush()

            record_audit(
                self._session, self._auditor, "salary_structure", model.id,
                AuditAction.STRUCTURE_VERSION_SUPERSEDED, actor_id,
                before={"closed_versions": closed},
                after={
                    **_range_dict(new_range),
                    "is_active": model.is_active,
                    "components": list(eval_plan.codes),
                },
                context={
                    "base_version_id": str(base_version_id),
                    "change_log": change_log,
                },
            )
            self._session.commit()

            logger.info("structure_version_superseded", extra={
                "structure_id": str(model.id),
                "base_version_id": str(base_version_id),
                "structure_name": base.name,
                "effective_from": new_range.effective_from,
                "closed_count": len(closed),
            })
            return model.to_dto()

        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Queries
    # =========================================================================

    def get_version(self, version_id: UUID) -> SalaryStructure:
        return self._get_model(version_id).to_dto()

    def resolve_active(self, name: str, as_of: date) -> SalaryStructure:
        """The version of ``name`` whose range contains ``as_of``."""
        model = self._session.execute(
            select(SalaryStructureModel)
            .where(
                SalaryStructureModel.name == name,
                SalaryStructureModel.effective_from <= as_of,
                or_(
                    SalaryStructureModel.effective_to.is_(None),
                    SalaryStructureModel.effective_to > as_of,
                ),
            )
        ).scalar_one_or_none()
        if model is None:
            raise StructureNotFoundError(name, str(as_of))
        return model.to_dto()

    def list_versions(self, name: str) -> list[StructureVersionInfo]:
        """All versions of ``name`` oldest first, labelled ``v1..vN``."""
        models = self._session.execute(
            select(SalaryStructureModel)
            .where(SalaryStructureModel.name == name)
            .order_by(SalaryStructureModel.effective_from)
        ).scalars().all()
        if not models:
            raise StructureNotFoundError(name, "any date")
        today = self._clock.today()
        return [
            StructureVersionInfo(
                label=f"v{index}",
                structure=m.to_dto(),
                is_current=DateRange(m.effective_from, m.effective_to).contains(today),
            )
            for index, m in enumerate(models, start=1)
        ]

    def get_plan(self, version_id: UUID) -> EvaluationPlan:
        """The evaluation plan for a stored version."""
        return build_plan(self.get_version(version_id).definitions())

    # =========================================================================
    # Preview and archive
    # =========================================================================

    def validate_effective_range(
        self,
        base_version_id: UUID,
        effective_from: date,
        effective_to: date | None = None,
    ) -> RangeValidation:
        """
        Preview a supersession without writing anything.

        Returns errors for ranges ``supersede`` would reject, plus warnings
        for a start date in the past and for employees still assigned to
        the base version.
        """
        base = self._get_model(base_version_id)
        errors: list[str] = []
        warnings: list[str] = []

        try:
            new_range = DateRange(effective_from, effective_to)
        except InvertedRangeError as exc:
            return RangeValidation(is_valid=False, errors=(str(exc),))

        siblings = self._session.execute(
            select(SalaryStructureModel).where(SalaryStructureModel.name == base.name)
        ).scalars().all()
        try:
            plan_supersession(
                [VersionSpan(m.id, DateRange(m.effective_from, m.effective_to)) for m in siblings],
                new_range,
            )
        except VersioningError as exc:
            errors.append(str(exc))

        if effective_from < self._clock.today():
            warnings.append(f"Effective date {effective_from} is in the past")

        affected = self._session.execute(
            select(func.count(EmployeeAssignmentModel.id)).where(
                EmployeeAssignmentModel.structure_id == base.id,
                EmployeeAssignmentModel.is_active.is_(True),
            )
        ).scalar_one()
        if affected:
            warnings.append(
                f"{affected} employee(s) assigned to this version will need reassignment"
            )

        return RangeValidation(
            is_valid=not errors,
            errors=tuple(errors),
            warnings=tuple(warnings),
            affected_employee_count=affected,
        )

    def archive_old_versions(
        self,
        name: str,
        actor_id: UUID,
        keep: int = DEFAULT_KEEP_VERSIONS,
    ) -> int:
        """
        Stamp ``archived_at`` on closed versions beyond the newest ``keep``.

        Ranges are untouched and nothing is deleted.  Returns the number of
        versions archived by this call.
        """
        try:
            closed = self._session.execute(
                select(SalaryStructureModel)
                .where(
                    SalaryStructureModel.name == name,
                    SalaryStructureModel.effective_to.is_not(None),
                    SalaryStructureModel.is_active.is_(False),
                )
                .order_by(SalaryStructureModel.effective_from.desc())
            ).scalars().all()

            now = self._clock.now()
            archived = [m for m in closed[keep:] if m.archived_at is None]
            for model in archived:
                model.archived_at = now
                model.updated_by_id = actor_id
            self._session.flush()

            for model in archived:
                record_audit(
                    self._session, self._auditor, "salary_structure", model.id,
                    AuditAction.STRUCTURE_VERSIONS_ARCHIVED, actor_id,
                    before={"archived_at": None},
                    after={"archived_at": now},
                    context={"name": name, "keep": keep},
                )
            self._session.commit()

            logger.info("structure_versions_archived", extra={
                "structure_name": name,
                "archived_count": len(archived),
                "keep": keep,
            })
            return len(archived)

        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Internals
    # =========================================================================

    def _get_model(self, version_id: UUID) -> SalaryStructureModel:
        model = self._session.get(SalaryStructureModel, version_id)
        if model is None:
            raise StructureVersionNotFoundError(str(version_id))
        return model

    def _prepare_components(
        self,
        specs: Sequence[StructureComponentSpec],
        actor_id: UUID,
    ) -> tuple[list[StructureComponentModel], EvaluationPlan]:
        """Build unsaved component rows and check their ordering."""
        codes = {s.pay_component_code.strip().upper() for s in specs}
        catalog = {
            m.code: m
            for m in self._session.execute(
                select(PayComponentModel).where(PayComponentModel.code.in_(codes))
            ).scalars()
        } if codes else {}

        rows: list[StructureComponentModel] = []
        for spec in specs:
            pay_component = catalog.get(spec.pay_component_code.strip().upper())
            if pay_component is None:
                raise PayComponentNotFoundError(spec.pay_component_code)
            rows.append(StructureComponentModel(
                pay_component=pay_component,
                pay_component_id=pay_component.id,
                order=spec.order,
                value=spec.value,
                percentage=spec.percentage,
                base_component=spec.base_component,
                formula=spec.formula,
                min_value=spec.min_value,
                max_value=spec.max_value,
                is_variable=spec.is_variable,
                created_by_id=actor_id,
            ))

        return rows, build_plan([_definition(row, row.pay_component) for row in rows])


def _definition(
    row: StructureComponentModel,
    pay_component: PayComponentModel,
) -> ComponentDefinition:
    return ComponentDefinition(
        component_id=pay_component.id,
        code=pay_component.code,
        name=pay_component.name,
        component_type=ComponentType(pay_component.component_type),
        category=ComponentCategory(pay_component.category),
        calculation_type=CalculationType(pay_component.calculation_type),
        value=row.value,
        percentage=row.percentage,
        base_component=row.base_component,
        formula=row.formula or pay_component.formula,
        min_value=row.min_value,
        max_value=row.max_value,
        is_variable=row.is_variable,
        is_statutory=pay_component.is_statutory,
        is_taxable=pay_component.is_taxable,
        order=row.order,
    )
