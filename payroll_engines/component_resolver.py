"""
Module: payroll_engines.component_resolver
Responsibility:
    Turn a structure version's components into an ordered evaluation plan,
    and evaluate that plan for one employee's CTC, attendance ratio and
    overrides.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Consumed by the structure
    version service (eager plan validation before persistence) and by the
    payroll calculator.

Invariants enforced:
    - Declaration order: components evaluate in ascending ``order``.  A
      percentage base or formula name that has not been evaluated yet is an
      UnresolvedBaseReferenceError.  No topological sort is attempted.
    - Decimal only; no rounding happens here.

Failure modes:
    - UnresolvedBaseReferenceError for a forward, self or unknown reference.
    - InvalidComponentError when a component lacks what its mode needs.
    - FormulaError from the sandboxed evaluator.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from uuid import UUID

from payroll_engines.formula import RESERVED_NAMES, CompiledFormula, parse_formula
from payroll_kernel.exceptions import InvalidComponentError, UnresolvedBaseReferenceError

HUNDRED = Decimal("100")

BASE_CTC = "CTC"
BASE_GROSS = "GROSS"


class ComponentType(str, Enum):
    EARNING = "EARNING"
    DEDUCTION = "DEDUCTION"


class ComponentCategory(str, Enum):
    BASIC = "BASIC"
    ALLOWANCE = "ALLOWANCE"
    BONUS = "BONUS"
    OVERTIME = "OVERTIME"
    STATUTORY_DEDUCTION = "STATUTORY_DEDUCTION"
    OTHER_DEDUCTION = "OTHER_DEDUCTION"
    REIMBURSEMENT = "REIMBURSEMENT"


class CalculationType(str, Enum):
    FIXED = "FIXED"
    PERCENTAGE = "PERCENTAGE"
    FORMULA = "FORMULA"
    ATTENDANCE_BASED = "ATTENDANCE_BASED"


@dataclass(frozen=True)
class ComponentDefinition:
    """A structure component joined with its pay component definition."""

    component_id: UUID
    code: str
    name: str
    component_type: ComponentType
    category: ComponentCategory
    calculation_type: CalculationType
    value: Decimal | None = None
    percentage: Decimal | None = None
    base_component: str | None = None
    formula: str | None = None
    min_value: Decimal | None = None
    max_value: Decimal | None = None
    is_variable: bool = False
    is_statutory: bool = False
    is_taxable: bool = True
    order: int = 0


@dataclass(frozen=True)
class PlanStep:
    definition: ComponentDefinition
    formula: CompiledFormula | None = None


@dataclass(frozen=True)
class EvaluationPlan:
    """Components in evaluation order, already checked for ordering."""

    steps: tuple[PlanStep, ...]

    @property
    def codes(self) -> tuple[str, ...]:
        return tuple(step.definition.code for step in self.steps)

    @property
    def has_attendance_components(self) -> bool:
        return any(
            s.definition.calculation_type == CalculationType.ATTENDANCE_BASED
            for s in self.steps
        )


@dataclass(frozen=True)
class EvaluationContext:
    """Per-employee inputs to plan evaluation."""

    ctc: Decimal
    attendance_ratio: Decimal = Decimal("1")
    working_days: Decimal | None = None
    present_days: Decimal | None = None
    overrides: Mapping[UUID, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class ResolvedComponent:
    """One component's unrounded value for one employee."""

    definition: ComponentDefinition
    base_value: Decimal | None
    amount: Decimal
    is_prorated: bool = False
    is_overridden: bool = False
    is_clamped: bool = False


def _check_definition(d: ComponentDefinition) -> None:
    if d.calculation_type in (CalculationType.FIXED, CalculationType.ATTENDANCE_BASED):
        if d.value is None:
            raise InvalidComponentError(d.code, f"{d.calculation_type.value} needs a value")
    elif d.calculation_type == CalculationType.PERCENTAGE:
        if d.percentage is None or not d.base_component:
            raise InvalidComponentError(d.code, "PERCENTAGE needs a percentage and a base component")
    elif d.calculation_type == CalculationType.FORMULA:
        if not d.formula:
            raise InvalidComponentError(d.code, "FORMULA needs a formula expression")
    if d.min_value is not None and d.max_value is not None and d.min_value > d.max_value:
        raise InvalidComponentError(d.code, f"min {d.min_value} exceeds max {d.max_value}")


def build_plan(components: Sequence[ComponentDefinition]) -> EvaluationPlan:
    """
    Order components and verify every reference points backwards.

    Ties in ``order`` keep their declaration order.
    """
    ordered = sorted(components, key=lambda d: d.order)
    seen_codes: set[str] = set()
    available: set[str] = set(RESERVED_NAMES)
    steps: list[PlanStep] = []

    for d in ordered:
        if d.code in seen_codes:
            raise InvalidComponentError(d.code, "component code appears twice in the structure")
        _check_definition(d)

        compiled = None
        if d.calculation_type == CalculationType.PERCENTAGE:
            if d.base_component not in available:
                raise UnresolvedBaseReferenceError(d.code, d.base_component, d.order)
        elif d.calculation_type == CalculationType.FORMULA:
            compiled = parse_formula(d.formula)
            for name in sorted(compiled.names):
                if name not in available:
                    raise UnresolvedBaseReferenceError(d.code, name, d.order)

        steps.append(PlanStep(definition=d, formula=compiled))
        seen_codes.add(d.code)
        available.add(d.code)

    return EvaluationPlan(steps=tuple(steps))


def _clamp(amount: Decimal, d: ComponentDefinition) -> tuple[Decimal, bool]:
    if d.min_value is not None and amount < d.min_value:
        return d.min_value, True
    if d.max_value is not None and amount > d.max_value:
        return d.max_value, True
    return amount, False


def evaluate_plan(plan: EvaluationPlan, context: EvaluationContext) -> tuple[ResolvedComponent, ...]:
    """
    Evaluate every step in order.

    FIXED emits its value; PERCENTAGE emits ``base * pct / 100`` clamped to
    min/max; FORMULA evaluates over values resolved so far (clamped);
    ATTENDANCE_BASED emits ``value * attendance_ratio``.  An override for a
    component id replaces its value, and later components see the override.
    """
    values: dict[str, Decimal] = {
        BASE_CTC: context.ctc,
        BASE_GROSS: Decimal("0"),
        "ATTENDANCE_RATIO": context.attendance_ratio,
        "WORKING_DAYS": context.working_days if context.working_days is not None else Decimal("0"),
        "PRESENT_DAYS": context.present_days if context.present_days is not None else Decimal("0"),
    }
    resolved: list[ResolvedComponent] = []

    for step in plan.steps:
        d = step.definition
        base_value: Decimal | None = None
        prorated = False
        clamped = False

        if d.calculation_type == CalculationType.FIXED:
            base_value = d.value
            amount = d.value
        elif d.calculation_type == CalculationType.PERCENTAGE:
            base_value = values[d.base_component]
            amount, clamped = _clamp(base_value * d.percentage / HUNDRED, d)
        elif d.calculation_type == CalculationType.FORMULA:
            amount, clamped = _clamp(step.formula.evaluate(values), d)
        else:
            base_value = d.value
            amount = d.value * context.attendance_ratio
            prorated = context.attendance_ratio != 1

        overridden = d.component_id in context.overrides
        if overridden:
            amount = Decimal(context.overrides[d.component_id])

        values[d.code] = amount
        if d.component_type == ComponentType.EARNING:
            values[BASE_GROSS] += amount

        resolved.append(
            ResolvedComponent(
                definition=d,
                base_value=base_value,
                amount=amount,
                is_prorated=prorated and not overridden,
                is_overridden=overridden,
                is_clamped=clamped and not overridden,
            )
        )

    return tuple(resolved)
