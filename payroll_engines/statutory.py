"""
Statutory deduction rules -- PF, ESI, TDS and PT.

Responsibility:
    One pluggable rule per statutory deduction kind, each a pure function
    of the employee's monthly basic and gross.  ``StatutoryRuleSet`` calls
    them in the fixed order PF, ESI, TDS, PT and returns each result once.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Rates, caps, ceilings and
    slabs are configuration; ``payroll_modules.payroll.helpers`` builds the
    rule set from the active ``PayrollConfig``.

Invariants enforced:
    - Evaluation order is PF, ESI, TDS, PT regardless of how rules are passed.
    - A rule set holds at most one rule per kind.
    - Results are unrounded Decimals; the calculator rounds each line.

Usage:
    rules = StatutoryRuleSet.default()
    amounts = rules.compute(basic=Decimal("30000"), gross=Decimal("42000"))
    amounts[StatutoryKind.PF]  # Decimal("1800")
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Protocol

ZERO = Decimal("0")
MONTHS_PER_YEAR = Decimal("12")


class StatutoryKind(str, Enum):
    """Statutory deduction kinds, declared in evaluation order."""

    PF = "PF"  # Provident Fund
    ESI = "ESI"  # Employees' State Insurance
    TDS = "TDS"  # Tax deducted at source
    PT = "PT"  # Professional Tax

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    StatutoryKind.PF: "Provident Fund",
    StatutoryKind.ESI: "Employee State Insurance",
    StatutoryKind.TDS: "Tax Deducted at Source",
    StatutoryKind.PT: "Professional Tax",
}

STATUTORY_ORDER: tuple[StatutoryKind, ...] = tuple(StatutoryKind)


class StatutoryRule(Protocol):
    kind: StatutoryKind

    def compute(self, basic: Decimal, gross: Decimal) -> Decimal: ...


@dataclass(frozen=True)
class ProvidentFundRule:
    """``min(basic * rate, monthly_cap)``; no cap when ``monthly_cap`` is None."""

    rate: Decimal = Decimal("0.12")
    monthly_cap: Decimal | None = Decimal("1800")
    kind: StatutoryKind = StatutoryKind.PF

    def compute(self, basic: Decimal, gross: Decimal) -> Decimal:
        amount = basic * self.rate
        if self.monthly_cap is not None:
            amount = min(amount, self.monthly_cap)
        return max(amount, ZERO)


@dataclass(frozen=True)
class StateInsuranceRule:
    """``gross * rate`` when gross is at or below the ceiling, else nothing."""

    rate: Decimal = Decimal("0.0075")
    gross_ceiling: Decimal = Decimal("25000")
    kind: StatutoryKind = StatutoryKind.ESI

    def compute(self, basic: Decimal, gross: Decimal) -> Decimal:
        if gross <= ZERO or gross > self.gross_ceiling:
            return ZERO
        return gross * self.rate


@dataclass(frozen=True)
class TaxSlab:
    """Income up to ``upper_bound`` (annual) is taxed at ``rate``; None is the top slab."""

    upper_bound: Decimal | None
    rate: Decimal


DEFAULT_TAX_SLABS: tuple[TaxSlab, ...] = (
    TaxSlab(Decimal("250000"), Decimal("0")),
    TaxSlab(Decimal("500000"), Decimal("0.05")),
    TaxSlab(Decimal("1000000"), Decimal("0.20")),
    TaxSlab(None, Decimal("0.30")),
)


@dataclass(frozen=True)
class IncomeTaxRule:
    """
    Progressive annual slabs applied to ``gross * 12``, returned per month.

    Slabs must be ascending with only the last one open-ended.
    """

    slabs: tuple[TaxSlab, ...] = DEFAULT_TAX_SLABS
    kind: StatutoryKind = StatutoryKind.TDS

    def __post_init__(self) -> None:
        if not self.slabs:
            raise ValueError("IncomeTaxRule needs at least one slab")
        bounds = [s.upper_bound for s in self.slabs[:-1]]
        if any(b is None for b in bounds):
            raise ValueError("Only the last tax slab may be open-ended")
        if bounds != sorted(bounds):
            raise ValueError("Tax slabs must be in ascending order")

    def annual_tax(self, annual_income: Decimal) -> Decimal:
        tax = ZERO
        lower = ZERO
        for slab in self.slabs:
            if annual_income <= lower:
                break
            upper = annual_income if slab.upper_bound is None else min(annual_income, slab.upper_bound)
            tax += (upper - lower) * slab.rate
            if slab.upper_bound is None:
                break
            lower = slab.upper_bound
        return tax

    def compute(self, basic: Decimal, gross: Decimal) -> Decimal:
        if gross <= ZERO:
            return ZERO
        return self.annual_tax(gross * MONTHS_PER_YEAR) / MONTHS_PER_YEAR


@dataclass(frozen=True)
class ProfessionalTaxRule:
    """Flat monthly amount."""

    amount: Decimal = Decimal("200")
    kind: StatutoryKind = StatutoryKind.PT

    def compute(self, basic: Decimal, gross: Decimal) -> Decimal:
        return self.amount


class StatutoryRuleSet:
    """The configured rules, evaluated in statutory order."""

    def __init__(self, rules: Iterable[StatutoryRule] = ()):
        by_kind: dict[StatutoryKind, StatutoryRule] = {}
        for rule in rules:
            if rule.kind in by_kind:
                raise ValueError(f"Duplicate statutory rule for {rule.kind.value}")
            by_kind[rule.kind] = rule
        self._rules = tuple(by_kind[k] for k in STATUTORY_ORDER if k in by_kind)

    @classmethod
    def default(cls) -> StatutoryRuleSet:
        return cls([
            ProvidentFundRule(),
            StateInsuranceRule(),
            IncomeTaxRule(),
            ProfessionalTaxRule(),
        ])

    @classmethod
    def empty(cls) -> StatutoryRuleSet:
        return cls()

    @property
    def kinds(self) -> tuple[StatutoryKind, ...]:
        return tuple(rule.kind for rule in self._rules)

    @property
    def rules(self) -> Sequence[StatutoryRule]:
        return self._rules

    def compute(self, basic: Decimal, gross: Decimal) -> dict[StatutoryKind, Decimal]:
        """Each configured kind's amount, keyed in PF, ESI, TDS, PT order."""
        return {rule.kind: rule.compute(basic, gross) for rule in self._rules}

    def __len__(self) -> int:
        return len(self._rules)
