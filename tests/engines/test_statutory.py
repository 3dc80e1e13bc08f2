"""
Tests for statutory deduction rules.

Validates:
- PF cap, ESI ceiling, progressive TDS slabs and flat PT
- Rule set ordering and duplicate detection
"""

from decimal import Decimal

import pytest

from payroll_engines.statutory import (
    STATUTORY_ORDER,
    IncomeTaxRule,
    ProfessionalTaxRule,
    ProvidentFundRule,
    StateInsuranceRule,
    StatutoryKind,
    StatutoryRuleSet,
    TaxSlab,
)


class TestProvidentFund:

    def test_capped(self):
        assert ProvidentFundRule().compute(Decimal("30000"), Decimal("42000")) == Decimal("1800")

    def test_below_cap(self):
        assert ProvidentFundRule().compute(Decimal("10000"), Decimal("14000")) == Decimal("1200.00")

    def test_uncapped(self):
        rule = ProvidentFundRule(monthly_cap=None)
        assert rule.compute(Decimal("30000"), Decimal("42000")) == Decimal("3600.00")


class TestStateInsurance:

    def test_at_ceiling_applies(self):
        assert StateInsuranceRule().compute(Decimal("0"), Decimal("25000")) == Decimal("187.5000")

    def test_above_ceiling_is_zero(self):
        assert StateInsuranceRule().compute(Decimal("0"), Decimal("25000.01")) == Decimal("0")


class TestIncomeTax:

    def test_annual_tax_across_slabs(self):
        # 250000 @ 0 + 250000 @ 5% + 4000 @ 20%
        assert IncomeTaxRule().annual_tax(Decimal("504000")) == Decimal("13300.00")

    def test_monthly_is_annual_over_twelve(self):
        monthly = IncomeTaxRule().compute(Decimal("30000"), Decimal("42000"))
        assert monthly.quantize(Decimal("0.01")) == Decimal("1108.33")

    def test_below_first_slab_is_zero(self):
        assert IncomeTaxRule().compute(Decimal("10000"), Decimal("20000")) == Decimal("0")

    def test_top_slab(self):
        # 12500 + 100000 + 300000 * 30%
        assert IncomeTaxRule().annual_tax(Decimal("1300000")) == Decimal("202500.00")

    def test_slabs_must_ascend(self):
        with pytest.raises(ValueError):
            IncomeTaxRule(slabs=(TaxSlab(Decimal("500"), Decimal("0")),
                                 TaxSlab(Decimal("100"), Decimal("0.1")),
                                 TaxSlab(None, Decimal("0.2"))))

    def test_only_last_slab_open(self):
        with pytest.raises(ValueError):
            IncomeTaxRule(slabs=(TaxSlab(None, Decimal("0")), TaxSlab(None, Decimal("0.1"))))


class TestRuleSet:

    def test_default_covers_every_kind_in_order(self):
        rules = StatutoryRuleSet.default()
        assert rules.kinds == STATUTORY_ORDER
        assert len(rules) == 4

    def test_rules_are_sorted_regardless_of_input_order(self):
        rules = StatutoryRuleSet([ProfessionalTaxRule(), ProvidentFundRule()])
        assert rules.kinds == (StatutoryKind.PF, StatutoryKind.PT)

    def test_duplicate_kind_rejected(self):
        with pytest.raises(ValueError):
            StatutoryRuleSet([ProfessionalTaxRule(), ProfessionalTaxRule(amount=Decimal("150"))])

    def test_compute_keys_in_order(self):
        amounts = StatutoryRuleSet.default().compute(Decimal("30000"), Decimal("42000"))
        assert list(amounts) == list(STATUTORY_ORDER)
        assert amounts[StatutoryKind.PT] == Decimal("200")

    def test_empty(self):
        assert StatutoryRuleSet.empty().compute(Decimal("1"), Decimal("1")) == {}

    def test_labels(self):
        assert StatutoryKind.PF.label == "Provident Fund"
