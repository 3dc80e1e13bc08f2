"""
Module: payroll_engines.payroll_calculator
Responsibility:
    Compute one employee's payroll breakdown for a period: evaluate the
    structure plan against CTC and attendance, apply statutory rules, round
    every line to the currency minor unit, and derive totals from the
    rounded lines.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Called by
    ``PayrollCalculationService`` once the assignment, plan, attendance and
    rule set have been loaded.

Invariants enforced:
    - ``gross == total_earnings`` and ``net == gross - total_deductions``
      exactly, because totals are sums of already-rounded lines.
    - Each statutory kind contributes to deductions exactly once.  A
      structure deduction whose code matches a statutory kind is replaced by
      the rule result unless the employee has an override for it.
    - Rounding happens only when a line item is emitted.

Failure modes:
    - Propagates UnresolvedBaseReferenceError / FormulaError from plan
      evaluation.

Audit relevance:
    Every invocation is traced via ``@traced_engine``.  ``LineItem.to_dict``
    is the exact shape persisted on the payroll record.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any
from uuid import UUID

from payroll_engines.component_resolver import (
    ComponentCategory,
    ComponentType,
    EvaluationContext,
    EvaluationPlan,
    ResolvedComponent,
    evaluate_plan,
)
from payroll_engines.statutory import STATUTORY_ORDER, StatutoryKind, StatutoryRuleSet
from payroll_engines.tracer import traced_engine
from payroll_kernel.db.types import round_money
from payroll_kernel.domain.values import AttendanceFacts

ZERO = Decimal("0")


@dataclass(frozen=True)
class CalculatorSettings:
    decimal_places: int = 2
    hours_per_day: Decimal = Decimal("8")
    overtime_multiplier: Decimal = Decimal("1.5")


@dataclass(frozen=True)
class LineItem:
    """One rounded earning or deduction on a payslip."""

    code: str
    name: str
    component_type: ComponentType
    category: ComponentCategory
    amount: Decimal
    component_id: UUID | None = None
    calculation_type: str | None = None
    base_value: Decimal | None = None
    is_prorated: bool = False
    is_overridden: bool = False
    is_clamped: bool = False
    is_statutory: bool = False
    is_taxable: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "component_id": str(self.component_id) if self.component_id else None,
            "code": self.code,
            "name": self.name,
            "type": self.component_type.value,
            "category": self.category.value,
            "calculation_type": self.calculation_type,
            "base_value": str(self.base_value) if self.base_value is not None else None,
            "amount": str(self.amount),
            "is_prorated": self.is_prorated,
            "is_overridden": self.is_overridden,
            "is_clamped": self.is_clamped,
            "is_statutory": self.is_statutory,
            "is_taxable": self.is_taxable,
        }


@dataclass(frozen=True)
class PayrollBreakdown:
    """A single employee's computed payroll for one period."""

    basic: Decimal
    total_earnings: Decimal
    total_deductions: Decimal
    gross: Decimal
    net: Decimal
    earnings: tuple[LineItem, ...]
    deductions: tuple[LineItem, ...]
    statutory: Mapping[StatutoryKind, Decimal] = field(default_factory=dict)
    attendance: AttendanceFacts | None = None
    attendance_ratio: Decimal = Decimal("1")
    lop_amount: Decimal = ZERO
    overtime_amount: Decimal = ZERO

    def statutory_amount(self, kind: StatutoryKind) -> Decimal:
        return self.statutory.get(kind, ZERO)


def _line(resolved: ResolvedComponent, places: int) -> LineItem:
    d = resolved.definition
    return LineItem(
        code=d.code,
        name=d.name,
        component_type=d.component_type,
        category=d.category,
        amount=round_money(resolved.amount, places),
        component_id=d.component_id,
        calculation_type=d.calculation_type.value,
        base_value=resolved.base_value,
        is_prorated=resolved.is_prorated,
        is_overridden=resolved.is_overridden,
        is_clamped=resolved.is_clamped,
        is_statutory=d.is_statutory,
        is_taxable=d.is_taxable,
    )


def _statutory_kind(code: str) -> StatutoryKind | None:
    try:
        return StatutoryKind(code)
    except ValueError:
        return None


@traced_engine("payroll_calculator", "1.0", fingerprint_fields=("ctc", "overrides"))
def calculate_breakdown(
    plan: EvaluationPlan,
    *,
    ctc: Decimal,
    attendance: AttendanceFacts,
    overrides: Mapping[UUID, Decimal] | None = None,
    statutory_rules: StatutoryRuleSet | None = None,
    settings: CalculatorSettings | None = None,
) -> PayrollBreakdown:
    """
    Evaluate ``plan`` for one employee and return the rounded breakdown.

    ``ctc`` is the monthly amount the plan scales against.  Attendance-based
    components are prorated by ``present_days / working_days``.
    """
    settings = settings or CalculatorSettings()
    rules = statutory_rules if statutory_rules is not None else StatutoryRuleSet.empty()
    places = settings.decimal_places
    ratio = attendance.attendance_ratio

    resolved = evaluate_plan(
        plan,
        EvaluationContext(
            ctc=ctc,
            attendance_ratio=ratio,
            working_days=attendance.working_days,
            present_days=attendance.present_days,
            overrides=dict(overrides or {}),
        ),
    )

    earnings = tuple(
        _line(r, places) for r in resolved
        if r.definition.component_type == ComponentType.EARNING
    )
    total_earnings = sum((line.amount for line in earnings), ZERO)
    gross = total_earnings
    basic = sum(
        (line.amount for line in earnings if line.category == ComponentCategory.BASIC),
        ZERO,
    )

    rule_amounts = {
        kind: round_money(amount, places)
        for kind, amount in rules.compute(basic, gross).items()
    }

    other_deductions: list[LineItem] = []
    statutory_lines: dict[StatutoryKind, LineItem] = {}
    for r in resolved:
        if r.definition.component_type != ComponentType.DEDUCTION:
            continue
        line = _line(r, places)
        kind = _statutory_kind(line.code)
        if kind is None or kind in statutory_lines:
            other_deductions.append(line)
            continue
        if kind in rule_amounts and not line.is_overridden:
            line = replace(line, amount=rule_amounts[kind], is_statutory=True)
        statutory_lines[kind] = line

    for kind, amount in rule_amounts.items():
        if kind not in statutory_lines and amount != ZERO:
            statutory_lines[kind] = LineItem(
                code=kind.value,
                name=kind.label,
                component_type=ComponentType.DEDUCTION,
                category=ComponentCategory.STATUTORY_DEDUCTION,
                amount=amount,
                is_statutory=True,
                is_taxable=False,
            )

    statutory: dict[StatutoryKind, Decimal] = {}
    for kind in STATUTORY_ORDER:
        if kind in statutory_lines:
            statutory[kind] = statutory_lines[kind].amount
        elif kind in rule_amounts:
            statutory[kind] = rule_amounts[kind]

    deductions = tuple(other_deductions) + tuple(
        statutory_lines[k] for k in STATUTORY_ORDER if k in statutory_lines
    )
    total_deductions = sum((line.amount for line in deductions), ZERO)

    daily_rate = basic / attendance.working_days
    lop_amount = round_money(daily_rate * attendance.lop_days, places)
    hourly_rate = basic / (attendance.working_days * settings.hours_per_day)
    overtime_amount = round_money(
        hourly_rate * settings.overtime_multiplier * attendance.overtime_hours, places
    )

    return PayrollBreakdown(
        basic=basic,
        total_earnings=total_earnings,
        total_deductions=total_deductions,
        gross=gross,
        net=gross - total_deductions,
        earnings=earnings,
        deductions=deductions,
        statutory=statutory,
        attendance=attendance,
        attendance_ratio=ratio,
        lop_amount=lop_amount,
        overtime_amount=overtime_amount,
    )
