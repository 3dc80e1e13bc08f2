"""
Compensation Catalog Service (``payroll_modules.compensation.catalog_service``).

Responsibility
--------------
Maintains the pay component catalog and salary grades that structure
versions reference.  Formulas are validated when a pay component is
created so a bad expression never reaches a structure.

Architecture position
---------------------
**Modules layer** -- transaction owner.  Each public mutating method
commits on success and rolls back then re-raises on failure.

Failure modes
-------------
* ``DuplicatePayComponentError`` -- code already in the catalog.
* ``FormulaError`` -- formula uses disallowed syntax.
* ``InvalidGradeBoundsError`` -- ``min_salary > max_salary``.
* ``PayComponentNotFoundError`` / ``SalaryGradeNotFoundError`` on lookup.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_engines.component_resolver import (
    CalculationType,
    ComponentCategory,
    ComponentType,
)
from payroll_engines.formula import parse_formula
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.exceptions import (
    DuplicateNameOrCodeError,
    DuplicatePayComponentError,
    InvalidGradeBoundsError,
    PayComponentNotFoundError,
    SalaryGradeNotFoundError,
)
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.audit_event import AuditAction
from payroll_kernel.services.auditor_service import AuditorService, AuditSink
from payroll_modules._audit_helpers import record_audit
from payroll_modules.compensation.models import PayComponent, SalaryGrade
from payroll_modules.compensation.orm import PayComponentModel, SalaryGradeModel

logger = get_logger("modules.compensation.catalog")


class CompensationCatalogService:
    """Pay components and salary grades."""

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
    # Pay components
    # =========================================================================

    def create_pay_component(
        self,
        code: str,
        name: str,
        component_type: ComponentType,
        category: ComponentCategory,
        calculation_type: CalculationType,
        actor_id: UUID,
        is_statutory: bool = False,
        is_taxable: bool = True,
        formula: str | None = None,
        description: str | None = None,
    ) -> PayComponent:
        """Add a catalog entry.  ``code`` is what structures and formulas refer to."""
        try:
            code = code.strip().upper()
            existing = self._session.execute(
                select(PayComponentModel.id).where(PayComponentModel.code == code)
            ).scalar_one_or_none()
            if existing is not None:
                raise DuplicatePayComponentError(code)
            if formula:
                parse_formula(formula)

            dto = PayComponent(
                id=uuid4(),
                code=code,
                name=name,
                component_type=ComponentType(component_type),
                category=ComponentCategory(category),
                calculation_type=CalculationType(calculation_type),
                is_statutory=is_statutory,
                is_taxable=is_taxable,
                formula=formula,
                description=description,
            )
            self._session.add(PayComponentModel.from_dto(dto, created_by_id=actor_id))
            self._session.flush()

            record_audit(
                self._session, self._auditor, "pay_component", dto.id,
                AuditAction.PAY_COMPONENT_CREATED, actor_id,
                after={
                    "code": dto.code,
                    "component_type": dto.component_type.value,
                    "calculation_type": dto.calculation_type.value,
                },
            )
            self._session.commit()

            logger.info("pay_component_created", extra={
                "pay_component_id": str(dto.id),
                "code": dto.code,
                "calculation_type": dto.calculation_type.value,
            })
            return dto

        except Exception:
            self._session.rollback()
            raise

    def get_pay_component(self, component_id: UUID) -> PayComponent:
        model = self._session.get(PayComponentModel, component_id)
        if model is None:
            raise PayComponentNotFoundError(str(component_id))
        return model.to_dto()

    def get_pay_component_by_code(self, code: str) -> PayComponent:
        return self._model_by_code(code).to_dto()

    def list_pay_components(self, active_only: bool = True) -> list[PayComponent]:
        stmt = select(PayComponentModel).order_by(PayComponentModel.code)
        if active_only:
            stmt = stmt.where(PayComponentModel.is_active.is_(True))
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def _model_by_code(self, code: str) -> PayComponentModel:
        model = self._session.execute(
            select(PayComponentModel).where(PayComponentModel.code == code.strip().upper())
        ).scalar_one_or_none()
        if model is None:
            raise PayComponentNotFoundError(code)
        return model

    # =========================================================================
    # Salary grades
    # =========================================================================

    def create_salary_grade(
        self,
        code: str,
        name: str,
        actor_id: UUID,
        min_salary: Decimal | None = None,
        max_salary: Decimal | None = None,
        description: str | None = None,
    ) -> SalaryGrade:
        try:
            if min_salary is not None and max_salary is not None and min_salary > max_salary:
                raise InvalidGradeBoundsError(code, str(min_salary), str(max_salary))
            existing = self._session.execute(
                select(SalaryGradeModel.id).where(SalaryGradeModel.code == code)
            ).scalar_one_or_none()
            if existing is not None:
                raise DuplicateNameOrCodeError(name, code, str(existing))

            dto = SalaryGrade(
                id=uuid4(),
                code=code,
                name=name,
                min_salary=min_salary,
                max_salary=max_salary,
                description=description,
            )
            self._session.add(SalaryGradeModel.from_dto(dto, created_by_id=actor_id))
            self._session.flush()

            record_audit(
                self._session, self._auditor, "salary_grade", dto.id,
                AuditAction.SALARY_GRADE_CREATED, actor_id,
                after={"code": code, "min_salary": min_salary, "max_salary": max_salary},
            )
            self._session.commit()

            logger.info("salary_grade_created", extra={
                "salary_grade_id": str(dto.id),
                "code": code,
            })
            return dto

        except Exception:
            self._session.rollback()
            raise

    def get_salary_grade(self, grade_id: UUID) -> SalaryGrade:
        model = self._session.get(SalaryGradeModel, grade_id)
        if model is None:
            raise SalaryGradeNotFoundError(str(grade_id))
        return model.to_dto()
