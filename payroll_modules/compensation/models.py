"""
Compensation Domain Models (``payroll_modules.compensation.models``).

Responsibility
--------------
Frozen dataclass value objects for the nouns of compensation: pay
components, salary grades, structure versions and their components,
employee assignments and their overrides, plus the result shapes returned
by the structure and assignment services.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
the compensation services and returned to callers.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Union
from uuid import UUID

from payroll_engines.component_resolver import (
    CalculationType,
    ComponentCategory,
    ComponentDefinition,
    ComponentType,
)
from payroll_kernel.domain.values import DateRange


@dataclass(frozen=True)
class PayComponent:
    """A catalog entry: one kind of earning or deduction."""
    id: UUID
    code: str
    name: str
    component_type: ComponentType
    category: ComponentCategory
    calculation_type: CalculationType
    is_statutory: bool = False
    is_taxable: bool = True
    formula: str | None = None
    description: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class SalaryGrade:
    """Optional CTC bounds a structure can point at."""
    id: UUID
    code: str
    name: str
    min_salary: Decimal | None = None
    max_salary: Decimal | None = None
    description: str | None = None
    is_active: bool = True

    def contains(self, ctc: Decimal) -> bool:
        if self.min_salary is not None and ctc < self.min_salary:
            return False
        if self.max_salary is not None and ctc > self.max_salary:
            return False
        return True


@dataclass(frozen=True)
class StructureComponentSpec:
    """
    Input for one component of a new structure version.

    ``pay_component_code`` names a catalog entry.  ``formula`` falls back to
    the catalog entry's formula when omitted.
    """
    pay_component_code: str
    order: int
    value: Decimal | None = None
    percentage: Decimal | None = None
    base_component: str | None = None
    formula: str | None = None
    min_value: Decimal | None = None
    max_value: Decimal | None = None
    is_variable: bool = False


@dataclass(frozen=True)
class StructureComponent:
    """A component as stored on one structure version."""
    id: UUID
    structure_id: UUID
    pay_component: PayComponent
    order: int
    value: Decimal | None = None
    percentage: Decimal | None = None
    base_component: str | None = None
    formula: str | None = None
    min_value: Decimal | None = None
    max_value: Decimal | None = None
    is_variable: bool = False

    def to_spec(self) -> StructureComponentSpec:
        return StructureComponentSpec(
            pay_component_code=self.pay_component.code,
            order=self.order,
            value=self.value,
            percentage=self.percentage,
            base_component=self.base_component,
            formula=self.formula,
            min_value=self.min_value,
            max_value=self.max_value,
            is_variable=self.is_variable,
        )

    def to_definition(self) -> ComponentDefinition:
        pc = self.pay_component
        return ComponentDefinition(
            component_id=pc.id,
            code=pc.code,
            name=pc.name,
            component_type=pc.component_type,
            category=pc.category,
            calculation_type=pc.calculation_type,
            value=self.value,
            percentage=self.percentage,
            base_component=self.base_component,
            formula=self.formula or pc.formula,
            min_value=self.min_value,
            max_value=self.max_value,
            is_variable=self.is_variable,
            is_statutory=pc.is_statutory,
            is_taxable=pc.is_taxable,
            order=self.order,
        )


@dataclass(frozen=True)
class SalaryStructure:
    """One effective-dated version of a named structure."""
    id: UUID
    name: str
    code: str
    effective_from: date
    effective_to: date | None = None
    is_active: bool = True
    grade_id: UUID | None = None
    description: str | None = None
    change_log: str | None = None
    archived_at: datetime | None = None
    components: tuple[StructureComponent, ...] = field(default_factory=tuple)

    @property
    def range(self) -> DateRange:
        return DateRange(self.effective_from, self.effective_to)

    @property
    def is_open(self) -> bool:
        return self.effective_to is None

    def definitions(self) -> tuple[ComponentDefinition, ...]:
        return tuple(c.to_definition() for c in self.components)


@dataclass(frozen=True)
class StructureVersionInfo:
    """A structure version labelled ``v1..vN`` oldest first."""
    label: str
    structure: SalaryStructure
    is_current: bool


@dataclass(frozen=True)
class RangeValidation:
    """Non-raising preview of a supersession."""
    is_valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    affected_employee_count: int = 0


@dataclass(frozen=True)
class AssignmentOverride:
    """Explicit per-employee value replacing a component's computed value."""
    pay_component_id: UUID
    value: Decimal


@dataclass(frozen=True)
class EmployeeAssignment:
    """One employee bound to one structure version and CTC for a range."""
    id: UUID
    employee_id: UUID
    structure_id: UUID
    ctc: Decimal
    effective_from: date
    effective_to: date | None = None
    is_active: bool = True
    revision_reason: str | None = None
    approved_by_id: UUID | None = None
    overrides: tuple[AssignmentOverride, ...] = field(default_factory=tuple)

    @property
    def range(self) -> DateRange:
        return DateRange(self.effective_from, self.effective_to)

    @property
    def override_map(self) -> dict[UUID, Decimal]:
        return {o.pay_component_id: o.value for o in self.overrides}


@dataclass(frozen=True)
class AssignmentHistoryEntry:
    assignment: EmployeeAssignment
    structure: SalaryStructure


@dataclass(frozen=True)
class ReassignmentUpdate:
    """One employee's entry in a bulk reassignment; omitted CTC keeps the current one."""
    employee_id: UUID
    ctc: Decimal | None = None
    overrides: tuple[AssignmentOverride, ...] | None = None
    revision_reason: str | None = None


@dataclass(frozen=True)
class ReassignmentSuccess:
    employee_id: UUID
    assignment: EmployeeAssignment
    ok: bool = True


@dataclass(frozen=True)
class ReassignmentFailure:
    employee_id: UUID
    error_code: str
    message: str
    ok: bool = False


ReassignmentResult = Union[ReassignmentSuccess, ReassignmentFailure]
