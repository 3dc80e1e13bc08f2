"""
Compensation ORM Persistence Models (``payroll_modules.compensation.orm``).

Responsibility:
    SQLAlchemy ORM models that persist the frozen DTOs defined in
    ``payroll_modules.compensation.models``.  Each ORM class mirrors a DTO
    and provides ``to_dto()`` (and ``from_dto()`` where callers build rows
    from DTOs).

Architecture position:
    **Modules layer** -- persistence companions to the pure DTO models.
    Inherits from ``TrackedBase`` (kernel DB base) which provides:
    id (UUID PK, auto-generated), created_at, updated_at,
    created_by_id (NOT NULL UUID), updated_by_id (nullable UUID).

Invariants enforced:
    - All monetary fields use Decimal (ExactDecimal) -- NEVER float.
    - Enum fields stored as String(50) containing the enum .value string.
    - At most one open-ended version per structure name
      (uq_salary_structure_open_version, partial on effective_to IS NULL).
    - At most one active assignment per employee
      (uq_employee_assignment_active, partial on is_active).

Audit relevance:
    Structure versions and assignments are never hard-deleted; they are
    closed (effective_to set) and, for versions, archived.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_kernel.db.base import TrackedBase

# ---------------------------------------------------------------------------
# PayComponentModel
# ---------------------------------------------------------------------------

class PayComponentModel(TrackedBase):
    """
    ORM model for ``PayComponent`` -- a catalog entry.

    Guarantees:
        - ``code`` is unique (uq_pay_component_code).
    """

    __tablename__ = "pay_components"

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    component_type: Mapped[str] = mapped_column(String(50), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    calculation_type: Mapped[str] = mapped_column(String(50), nullable=False)
    is_statutory: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_taxable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    formula: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("code", name="uq_pay_component_code"),
        Index("idx_pay_component_type", "component_type"),
    )

    def to_dto(self):
        from payroll_modules.compensation.models import (
            CalculationType,
            ComponentCategory,
            ComponentType,
            PayComponent,
        )
        return PayComponent(
            id=self.id,
            code=self.code,
            name=self.name,
            component_type=ComponentType(self.component_type),
            category=ComponentCategory(self.category),
            calculation_type=CalculationType(self.calculation_type),
            is_statutory=self.is_statutory,
            is_taxable=self.is_taxable,
            formula=self.formula,
            description=self.description,
            is_active=self.is_active,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "PayComponentModel":
        return cls(
            id=dto.id,
            code=dto.code,
            name=dto.name,
            component_type=dto.component_type.value,
            category=dto.category.value,
            calculation_type=dto.calculation_type.value,
            is_statutory=dto.is_statutory,
            is_taxable=dto.is_taxable,
            formula=dto.formula,
            description=dto.description,
            is_active=dto.is_active,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<PayComponentModel {self.code} ({self.component_type}/{self.calculation_type})>"


# ---------------------------------------------------------------------------
# SalaryGradeModel
# ---------------------------------------------------------------------------

class SalaryGradeModel(TrackedBase):
    """ORM model for ``SalaryGrade`` -- optional CTC bounds."""

    __tablename__ = "salary_grades"

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    min_salary: Mapped[Decimal | None] = mapped_column(nullable=True)
    max_salary: Mapped[Decimal | None] = mapped_column(nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("code", name="uq_salary_grade_code"),
    )

    def to_dto(self):
        from payroll_modules.compensation.models import SalaryGrade
        return SalaryGrade(
            id=self.id,
            code=self.code,
            name=self.name,
            min_salary=self.min_salary,
            max_salary=self.max_salary,
            description=self.description,
            is_active=self.is_active,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "SalaryGradeModel":
        return cls(
            id=dto.id,
            code=dto.code,
            name=dto.name,
            min_salary=dto.min_salary,
            max_salary=dto.max_salary,
            description=dto.description,
            is_active=dto.is_active,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<SalaryGradeModel {self.code} [{self.min_salary}, {self.max_salary}]>"


# ---------------------------------------------------------------------------
# SalaryStructureModel
# ---------------------------------------------------------------------------

class SalaryStructureModel(TrackedBase):
    """
    ORM model for ``SalaryStructure`` -- one version of a named structure.

    Contract:
        Versions sharing ``name`` partition time.  Closing a version sets
        ``effective_to`` and clears ``is_active``; rows are never deleted.

    Guarantees:
        - At most one row per ``name`` has ``effective_to IS NULL``.
    """

    __tablename__ = "salary_structures"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    grade_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("salary_grades.id"), nullable=True,
    )
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    change_log: Mapped[str | None] = mapped_column(Text, nullable=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    components: Mapped[list["StructureComponentModel"]] = relationship(
        back_populates="structure",
        cascade="all, delete-orphan",
        order_by="StructureComponentModel.order",
        lazy="selectin",
    )

    __table_args__ = (
        Index(
            "uq_salary_structure_open_version",
            "name",
            unique=True,
            sqlite_where=text("effective_to IS NULL"),
            postgresql_where=text("effective_to IS NULL"),
        ),
        Index("idx_salary_structure_name_from", "name", "effective_from"),
        Index("idx_salary_structure_code", "code"),
    )

    def to_dto(self):
        from payroll_modules.compensation.models import SalaryStructure
        return SalaryStructure(
            id=self.id,
            name=self.name,
            code=self.code,
            effective_from=self.effective_from,
            effective_to=self.effective_to,
            is_active=self.is_active,
            grade_id=self.grade_id,
            description=self.description,
            change_log=self.change_log,
            archived_at=self.archived_at,
            components=tuple(c.to_dto() for c in self.components),
        )

    def __repr__(self) -> str:
        return (
            f"<SalaryStructureModel {self.name} "
            f"[{self.effective_from}, {self.effective_to or 'open'})>"
        )


# ---------------------------------------------------------------------------
# StructureComponentModel
# ---------------------------------------------------------------------------

class StructureComponentModel(TrackedBase):
    """ORM model for ``StructureComponent`` -- a component on one version."""

    __tablename__ = "structure_components"

    structure_id: Mapped[UUID] = mapped_column(
        ForeignKey("salary_structures.id"), nullable=False,
    )
    pay_component_id: Mapped[UUID] = mapped_column(
        ForeignKey("pay_components.id"), nullable=False,
    )
    order: Mapped[int] = mapped_column("display_order", Integer, nullable=False)
    value: Mapped[Decimal | None] = mapped_column(nullable=True)
    percentage: Mapped[Decimal | None] = mapped_column(nullable=True)
    base_component: Mapped[str | None] = mapped_column(String(50), nullable=True)
    formula: Mapped[str | None] = mapped_column(Text, nullable=True)
    min_value: Mapped[Decimal | None] = mapped_column(nullable=True)
    max_value: Mapped[Decimal | None] = mapped_column(nullable=True)
    is_variable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    structure: Mapped[SalaryStructureModel] = relationship(back_populates="components")
    pay_component: Mapped[PayComponentModel] = relationship(lazy="joined")

    __table_args__ = (
        UniqueConstraint(
            "structure_id", "pay_component_id",
            name="uq_structure_component_pay_component",
        ),
        Index("idx_structure_component_structure", "structure_id"),
    )

    def to_dto(self):
        from payroll_modules.compensation.models import StructureComponent
        return StructureComponent(
            id=self.id,
            structure_id=self.structure_id,
            pay_component=self.pay_component.to_dto(),
            order=self.order,
            value=self.value,
            percentage=self.percentage,
            base_component=self.base_component,
            formula=self.formula,
            min_value=self.min_value,
            max_value=self.max_value,
            is_variable=self.is_variable,
        )

    def __repr__(self) -> str:
        return f"<StructureComponentModel #{self.order} {self.pay_component_id}>"


# ---------------------------------------------------------------------------
# EmployeeAssignmentModel
# ---------------------------------------------------------------------------

class EmployeeAssignmentModel(TrackedBase):
    """
    ORM model for ``EmployeeAssignment``.

    Contract:
        Creating a new assignment closes the previous active one in the same
        transaction (``effective_to = new.effective_from``, ``is_active``
        cleared).

    Guarantees:
        - At most one active row per ``employee_id``.
    """

    __tablename__ = "employee_assignments"

    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    structure_id: Mapped[UUID] = mapped_column(
        ForeignKey("salary_structures.id"), nullable=False,
    )
    ctc: Mapped[Decimal] = mapped_column(nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    revision_reason: Mapped[str | None] = mapped_column(String(200), nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    overrides: Mapped[list["AssignmentOverrideModel"]] = relationship(
        back_populates="assignment",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index(
            "uq_employee_assignment_active",
            "employee_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
        Index("idx_employee_assignment_employee_from", "employee_id", "effective_from"),
        Index("idx_employee_assignment_structure", "structure_id"),
    )

    def to_dto(self):
        from payroll_modules.compensation.models import EmployeeAssignment
        return EmployeeAssignment(
            id=self.id,
            employee_id=self.employee_id,
            structure_id=self.structure_id,
            ctc=self.ctc,
            effective_from=self.effective_from,
            effective_to=self.effective_to,
            is_active=self.is_active,
            revision_reason=self.revision_reason,
            approved_by_id=self.approved_by_id,
            overrides=tuple(o.to_dto() for o in self.overrides),
        )

    def __repr__(self) -> str:
        return (
            f"<EmployeeAssignmentModel {self.employee_id} -> {self.structure_id} "
            f"[{self.effective_from}, {self.effective_to or 'open'})>"
        )


# ---------------------------------------------------------------------------
# AssignmentOverrideModel
# ---------------------------------------------------------------------------

class AssignmentOverrideModel(TrackedBase):
    """ORM model for ``AssignmentOverride``."""

    __tablename__ = "assignment_overrides"

    assignment_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee_assignments.id"), nullable=False,
    )
    pay_component_id: Mapped[UUID] = mapped_column(
        ForeignKey("pay_components.id"), nullable=False,
    )
    value: Mapped[Decimal] = mapped_column(nullable=False)

    assignment: Mapped[EmployeeAssignmentModel] = relationship(back_populates="overrides")

    __table_args__ = (
        UniqueConstraint(
            "assignment_id", "pay_component_id",
            name="uq_assignment_override_component",
        ),
    )

    def to_dto(self):
        from payroll_modules.compensation.models import AssignmentOverride
        return AssignmentOverride(pay_component_id=self.pay_component_id, value=self.value)
