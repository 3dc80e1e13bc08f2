"""
Payroll Helpers (``payroll_modules.payroll.helpers``).

Responsibility
--------------
Pure functions that turn configuration into engine inputs and that move
a record's totals under an adjustment.

Architecture position
---------------------
**Modules layer** -- pure helper functions.  No I/O, no session, no
clock, no database access.  Called by the payroll services or from tests.

Invariants enforced
-------------------
* All numeric inputs and outputs use ``Decimal`` -- NEVER ``float``.
* ``apply_adjustment`` preserves ``net == gross - total_deductions``.

Failure modes
-------------
* ``ValueError`` from ``apply_adjustment`` for a negative amount.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from payroll_config.schema import PayrollConfig, StatutoryConfig
from payroll_engines.component_resolver import ComponentCategory, ComponentType
from payroll_engines.payroll_calculator import CalculatorSettings
from payroll_engines.statutory import (
    IncomeTaxRule,
    ProfessionalTaxRule,
    ProvidentFundRule,
    StateInsuranceRule,
    StatutoryRule,
    StatutoryRuleSet,
    TaxSlab,
)
from payroll_modules.payroll.models import AdjustmentType

ZERO = Decimal("0")


def build_statutory_rules(config: StatutoryConfig) -> StatutoryRuleSet:
    """Rule set with one rule per enabled statutory kind."""
    rules: list[StatutoryRule] = []
    if config.pf_enabled:
        rules.append(ProvidentFundRule(rate=config.pf_rate, monthly_cap=config.pf_monthly_cap))
    if config.esi_enabled:
        rules.append(StateInsuranceRule(
            rate=config.esi_rate, gross_ceiling=config.esi_gross_ceiling,
        ))
    if config.tds_enabled:
        rules.append(IncomeTaxRule(
            slabs=tuple(TaxSlab(s.upper_bound, s.rate) for s in config.tds_slabs),
        ))
    if config.pt_enabled:
        rules.append(ProfessionalTaxRule(amount=config.pt_monthly_amount))
    return StatutoryRuleSet(rules)


def calculator_settings(config: PayrollConfig) -> CalculatorSettings:
    return CalculatorSettings(
        decimal_places=config.decimal_places,
        hours_per_day=config.hours_per_day,
        overtime_multiplier=config.overtime_multiplier,
    )


@dataclass(frozen=True)
class RecordTotals:
    total_earnings: Decimal
    gross: Decimal
    total_deductions: Decimal
    net: Decimal


def apply_adjustment(
    totals: RecordTotals,
    adjustment_type: AdjustmentType,
    amount: Decimal,
) -> RecordTotals:
    """
    Move a record's totals under one adjustment.

    BONUS and ALLOWANCE raise earnings, gross and net by ``amount``.
    DEDUCTION raises deductions and lowers net.  CORRECTION sets net to
    ``amount`` and moves earnings and gross by the same difference.
    """
    if amount < ZERO:
        raise ValueError(f"adjustment amount cannot be negative: {amount}")

    adjustment_type = AdjustmentType(adjustment_type)
    if adjustment_type in (AdjustmentType.BONUS, AdjustmentType.ALLOWANCE):
        return RecordTotals(
            total_earnings=totals.total_earnings + amount,
            gross=totals.gross + amount,
            total_deductions=totals.total_deductions,
            net=totals.net + amount,
        )
    if adjustment_type == AdjustmentType.DEDUCTION:
        return RecordTotals(
            total_earnings=totals.total_earnings,
            gross=totals.gross,
            total_deductions=totals.total_deductions + amount,
            net=totals.net - amount,
        )
    diff = amount - totals.net
    return RecordTotals(
        total_earnings=totals.total_earnings + diff,
        gross=totals.gross + diff,
        total_deductions=totals.total_deductions,
        net=amount,
    )


_ADJUSTMENT_LINES = {
    AdjustmentType.BONUS: ("BONUS_ADJ", "Bonus adjustment", ComponentType.EARNING, ComponentCategory.BONUS),
    AdjustmentType.ALLOWANCE: ("ALLOWANCE_ADJ", "Allowance adjustment", ComponentType.EARNING, ComponentCategory.ALLOWANCE),
    AdjustmentType.DEDUCTION: ("DEDUCTION_ADJ", "Deduction adjustment", ComponentType.DEDUCTION, ComponentCategory.OTHER_DEDUCTION),
    AdjustmentType.CORRECTION: ("CORRECTION_ADJ", "Net pay correction", ComponentType.EARNING, ComponentCategory.ALLOWANCE),
}


def adjustment_line(
    adjustment_type: AdjustmentType,
    amount: Decimal,
    reason: str | None = None,
) -> dict[str, Any]:
    """
    Line item recording an adjustment on the record's earnings or deductions.

    ``amount`` is the change the line represents; for a CORRECTION it is
    the signed difference applied to earnings.
    """
    code, name, component_type, category = _ADJUSTMENT_LINES[AdjustmentType(adjustment_type)]
    return {
        "component_id": None,
        "code": code,
        "name": name,
        "type": component_type.value,
        "category": category.value,
        "calculation_type": "ADJUSTMENT",
        "base_value": None,
        "amount": str(amount),
        "is_prorated": False,
        "is_overridden": False,
        "is_clamped": False,
        "is_statutory": False,
        "is_taxable": component_type == ComponentType.EARNING,
        "reason": reason,
    }


def sum_totals(records: Iterable[Any]) -> tuple[Decimal, Decimal, Decimal]:
    """``(gross, deductions, net)`` summed over records."""
    gross = deductions = net = ZERO
    for record in records:
        gross += record.gross
        deductions += record.total_deductions
        net += record.net
    return gross, deductions, net
