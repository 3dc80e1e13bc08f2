"""
Property-based tests for the payroll engines.

Boundaries fuzzed here:
- Calculator: component values, percentages, CTC and attendance
- Effective dating: chains built from increasing supersession dates
- Adjustments: every type against arbitrary record totals

Concrete scenarios live in tests/engines and tests/modules.
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

from hypothesis import HealthCheck, assume, given, settings
from hypothesis import strategies as st

from payroll_engines.component_resolver import (
    CalculationType,
    ComponentCategory,
    ComponentDefinition,
    ComponentType,
    build_plan,
)
from payroll_engines.effective_dating import (
    VersionSpan,
    check_partition,
    find_covering,
    plan_supersession,
)
from payroll_engines.formula import evaluate_formula, parse_formula
from payroll_engines.payroll_calculator import calculate_breakdown
from payroll_engines.statutory import StatutoryRuleSet
from payroll_kernel.domain.values import AttendanceFacts, DateRange
from payroll_kernel.exceptions import FormulaError
from payroll_modules.payroll.helpers import RecordTotals, apply_adjustment
from payroll_modules.payroll.models import AdjustmentType

CENT = Decimal("0.01")

amounts = st.decimals(min_value=Decimal("0"), max_value=Decimal("1000000"), places=2)
percentages = st.decimals(min_value=Decimal("0"), max_value=Decimal("100"), places=2)


def _definition(code, calculation_type, order, **kwargs):
    return ComponentDefinition(
        component_id=uuid4(),
        code=code,
        name=code.title(),
        component_type=kwargs.pop("component_type", ComponentType.EARNING),
        category=kwargs.pop("category", ComponentCategory.ALLOWANCE),
        calculation_type=calculation_type,
        order=order,
        **kwargs,
    )


@st.composite
def attendance_facts(draw):
    working = draw(st.integers(min_value=1, max_value=31))
    present = draw(st.integers(min_value=0, max_value=working))
    return AttendanceFacts(
        working_days=Decimal(working),
        present_days=Decimal(present),
        absent_days=Decimal(working - present),
        lop_days=Decimal(working - present),
    )


@st.composite
def structures(draw):
    basic = draw(amounts)
    hra_pct = draw(percentages)
    special = draw(amounts)
    loan = draw(st.decimals(min_value=Decimal("0"), max_value=Decimal("5000"), places=2))
    return [
        _definition("BASIC", CalculationType.FIXED, 1,
                    category=ComponentCategory.BASIC, value=basic),
        _definition("HRA", CalculationType.PERCENTAGE, 2,
                    percentage=hra_pct, base_component="BASIC"),
        _definition("SPECIAL", CalculationType.ATTENDANCE_BASED, 3, value=special),
        _definition("LOAN", CalculationType.FIXED, 4,
                    component_type=ComponentType.DEDUCTION,
                    category=ComponentCategory.OTHER_DEDUCTION,
                    value=loan, is_taxable=False),
    ]


class TestCalculatorProperties:

    @given(definitions=structures(), ctc=amounts, attendance=attendance_facts(),
           with_statutory=st.booleans())
    @settings(max_examples=150, deadline=None)
    def test_net_is_gross_minus_deductions(self, definitions, ctc, attendance, with_statutory):
        rules = StatutoryRuleSet.default() if with_statutory else StatutoryRuleSet.empty()
        b = calculate_breakdown(
            build_plan(definitions), ctc=ctc, attendance=attendance, statutory_rules=rules,
        )
        assert b.net == b.gross - b.total_deductions
        assert b.gross == sum((line.amount for line in b.earnings), Decimal("0"))
        assert b.total_deductions == sum((line.amount for line in b.deductions), Decimal("0"))

    @given(definitions=structures(), ctc=amounts, attendance=attendance_facts())
    @settings(max_examples=100, deadline=None)
    def test_lines_rounded_to_cents(self, definitions, ctc, attendance):
        b = calculate_breakdown(build_plan(definitions), ctc=ctc, attendance=attendance)
        for line in b.earnings + b.deductions:
            assert line.amount == line.amount.quantize(CENT)
            assert line.amount >= 0

    @given(definitions=structures(), attendance=attendance_facts())
    @settings(max_examples=100, deadline=None)
    def test_proration_never_exceeds_full_month(self, definitions, attendance):
        full = AttendanceFacts.full_attendance(attendance.working_days)
        plan = build_plan(definitions)
        partial = calculate_breakdown(plan, ctc=Decimal("0"), attendance=attendance)
        whole = calculate_breakdown(plan, ctc=Decimal("0"), attendance=full)
        assert partial.gross <= whole.gross
        # Only the attendance-based component moves.
        assert partial.basic == whole.basic


class TestEffectiveDatingProperties:

    @given(gaps=st.lists(st.integers(min_value=1, max_value=400), min_size=1, max_size=8))
    @settings(max_examples=100, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_supersession_chain_partitions_timeline(self, gaps):
        start = date(2020, 1, 1)
        spans = [VersionSpan(uuid4(), DateRange(start))]
        current = start
        for gap in gaps:
            current = current + timedelta(days=gap)
            new_range = DateRange(current)
            plan = plan_supersession(spans, new_range)
            closed = {c.version_id: c for c in plan.closures}
            spans = [closed.get(s.version_id, s) for s in spans]
            spans.append(VersionSpan(uuid4(), new_range))

        check_partition(spans)
        assert sum(1 for s in spans if s.range.is_open) == 1

        probe = start
        while probe <= current:
            covering = [s for s in spans if s.range.contains(probe)]
            assert len(covering) == 1
            assert find_covering(spans, probe) == covering[0]
            probe += timedelta(days=37)

    @given(offset=st.integers(min_value=-400, max_value=-1))
    @settings(max_examples=50, deadline=None)
    def test_nothing_covers_dates_before_first_version(self, offset):
        start = date(2024, 1, 1)
        spans = [VersionSpan(uuid4(), DateRange(start))]
        assert find_covering(spans, start + timedelta(days=offset)) is None


class TestAdjustmentProperties:

    @given(
        gross=amounts,
        deductions=amounts,
        amount=amounts,
        kind=st.sampled_from(list(AdjustmentType)),
    )
    @settings(max_examples=200, deadline=None)
    def test_adjustment_preserves_net_identity(self, gross, deductions, amount, kind):
        assume(deductions <= gross)
        totals = RecordTotals(
            total_earnings=gross, gross=gross,
            total_deductions=deductions, net=gross - deductions,
        )
        after = apply_adjustment(totals, kind, amount)
        assert after.net == after.gross - after.total_deductions
        if kind == AdjustmentType.CORRECTION:
            assert after.net == amount


class TestFormulaProperties:

    @given(a=amounts, b=amounts, c=percentages)
    @settings(max_examples=150, deadline=None)
    def test_arithmetic_matches_decimal(self, a, b, c):
        variables = {"BASIC": a, "HRA": b, "PCT": c}
        assert evaluate_formula("BASIC + HRA", variables) == a + b
        assert evaluate_formula("BASIC * PCT / 100", variables) == a * c / Decimal("100")
        assert evaluate_formula("max(BASIC, HRA) - min(BASIC, HRA)", variables) == abs(a - b)

    @given(text=st.text(alphabet="BASIC_()+-*/.,:;'\"[]{}<>=!&|^%~@ 0123456789", max_size=30))
    @settings(max_examples=300, deadline=None)
    def test_parser_raises_nothing_but_formula_error(self, text):
        try:
            compiled = parse_formula(text)
        except FormulaError as exc:
            assert exc.code == "FORMULA_ERROR"
        else:
            assert all(name in text for name in compiled.names)
