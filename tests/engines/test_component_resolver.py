"""
Tests for the structure component resolver.

Validates:
- Declaration-order evaluation and eager rejection of forward references
- FIXED, PERCENTAGE, FORMULA and ATTENDANCE_BASED modes
- min/max clamping and override replacement
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from payroll_engines.component_resolver import (
    CalculationType,
    ComponentCategory,
    ComponentDefinition,
    ComponentType,
    EvaluationContext,
    build_plan,
    evaluate_plan,
)
from payroll_kernel.exceptions import (
    FormulaError,
    InvalidComponentError,
    UnresolvedBaseReferenceError,
)


def _make_def(
    code: str,
    calculation_type: CalculationType,
    order: int,
    component_type: ComponentType = ComponentType.EARNING,
    category: ComponentCategory = ComponentCategory.ALLOWANCE,
    **kwargs,
) -> ComponentDefinition:
    return ComponentDefinition(
        component_id=uuid4(),
        code=code,
        name=code.title(),
        component_type=component_type,
        category=category,
        calculation_type=calculation_type,
        order=order,
        **kwargs,
    )


def _basic(value="30000", order=1):
    return _make_def(
        "BASIC", CalculationType.FIXED, order,
        category=ComponentCategory.BASIC, value=Decimal(value),
    )


def _hra(order=2, pct="40", **kwargs):
    return _make_def(
        "HRA", CalculationType.PERCENTAGE, order,
        percentage=Decimal(pct), base_component="BASIC", **kwargs,
    )


def _amounts(resolved):
    return {r.definition.code: r.amount for r in resolved}


class TestBuildPlan:

    def test_orders_by_declared_order(self):
        plan = build_plan([_hra(order=2), _basic(order=1)])
        assert plan.codes == ("BASIC", "HRA")

    def test_forward_reference_rejected(self):
        with pytest.raises(UnresolvedBaseReferenceError) as exc_info:
            build_plan([_basic(order=2), _hra(order=1)])
        assert exc_info.value.code == "UNRESOLVED_BASE_REFERENCE"

    def test_formula_forward_reference_rejected(self):
        bonus = _make_def("BONUS", CalculationType.FORMULA, 1, formula="BASIC * 0.1")
        with pytest.raises(UnresolvedBaseReferenceError):
            build_plan([bonus, _basic(order=2)])

    def test_reserved_names_are_available(self):
        share = _make_def("SHARE", CalculationType.PERCENTAGE, 1,
                          percentage=Decimal("50"), base_component="CTC")
        plan = build_plan([share])
        assert plan.codes == ("SHARE",)

    def test_duplicate_code_rejected(self):
        with pytest.raises(InvalidComponentError):
            build_plan([_basic(order=1), _basic(order=2)])

    @pytest.mark.parametrize("definition", [
        _make_def("X", CalculationType.FIXED, 1),
        _make_def("X", CalculationType.ATTENDANCE_BASED, 1),
        _make_def("X", CalculationType.PERCENTAGE, 1, percentage=Decimal("10")),
        _make_def("X", CalculationType.FORMULA, 1),
        _make_def("X", CalculationType.FIXED, 1, value=Decimal("1"),
                  min_value=Decimal("5"), max_value=Decimal("2")),
    ])
    def test_incomplete_definition_rejected(self, definition):
        with pytest.raises(InvalidComponentError):
            build_plan([definition])

    def test_bad_formula_rejected_at_plan_time(self):
        with pytest.raises(FormulaError):
            build_plan([_make_def("X", CalculationType.FORMULA, 1, formula="BASIC ** 2")])

    def test_has_attendance_components(self):
        special = _make_def("SPECIAL", CalculationType.ATTENDANCE_BASED, 3, value=Decimal("5000"))
        assert not build_plan([_basic(), _hra()]).has_attendance_components
        assert build_plan([_basic(), _hra(), special]).has_attendance_components


class TestEvaluatePlan:

    def test_fixed_and_percentage(self):
        resolved = evaluate_plan(build_plan([_basic(), _hra()]), EvaluationContext(ctc=Decimal("50000")))
        assert _amounts(resolved) == {"BASIC": Decimal("30000"), "HRA": Decimal("12000")}
        assert resolved[1].base_value == Decimal("30000")

    def test_percentage_clamped_to_max(self):
        plan = build_plan([_basic(), _hra(max_value=Decimal("10000"))])
        resolved = evaluate_plan(plan, EvaluationContext(ctc=Decimal("50000")))
        hra = resolved[1]
        assert hra.amount == Decimal("10000")
        assert hra.is_clamped

    def test_percentage_clamped_to_min(self):
        plan = build_plan([_basic("1000"), _hra(min_value=Decimal("1600"))])
        resolved = evaluate_plan(plan, EvaluationContext(ctc=Decimal("5000")))
        assert resolved[1].amount == Decimal("1600")

    def test_formula_sees_gross_so_far(self):
        bonus = _make_def("BONUS", CalculationType.FORMULA, 3, formula="GROSS * 0.05")
        resolved = evaluate_plan(
            build_plan([_basic(), _hra(), bonus]), EvaluationContext(ctc=Decimal("50000")),
        )
        assert _amounts(resolved)["BONUS"] == Decimal("2100.00")

    def test_deductions_do_not_raise_gross(self):
        loan = _make_def("LOAN", CalculationType.FIXED, 2, component_type=ComponentType.DEDUCTION,
                         category=ComponentCategory.OTHER_DEDUCTION, value=Decimal("500"))
        bonus = _make_def("BONUS", CalculationType.FORMULA, 3, formula="GROSS")
        resolved = evaluate_plan(build_plan([_basic(), loan, bonus]),
                                 EvaluationContext(ctc=Decimal("50000")))
        assert _amounts(resolved)["BONUS"] == Decimal("30000")

    def test_attendance_based_prorates(self):
        special = _make_def("SPECIAL", CalculationType.ATTENDANCE_BASED, 2, value=Decimal("5000"))
        resolved = evaluate_plan(
            build_plan([_basic(), special]),
            EvaluationContext(ctc=Decimal("50000"), attendance_ratio=Decimal("18") / Decimal("20")),
        )
        amounts = _amounts(resolved)
        assert amounts["BASIC"] == Decimal("30000")
        assert amounts["SPECIAL"] == Decimal("4500")
        assert resolved[1].is_prorated
        assert not resolved[0].is_prorated

    def test_override_replaces_value_and_flows_downstream(self):
        basic = _basic()
        plan = build_plan([basic, _hra()])
        resolved = evaluate_plan(plan, EvaluationContext(
            ctc=Decimal("50000"), overrides={basic.component_id: Decimal("20000")},
        ))
        assert _amounts(resolved) == {"BASIC": Decimal("20000"), "HRA": Decimal("8000")}
        assert resolved[0].is_overridden

    def test_override_wins_over_clamp(self):
        hra = _hra(max_value=Decimal("100"))
        plan = build_plan([_basic(), hra])
        resolved = evaluate_plan(plan, EvaluationContext(
            ctc=Decimal("50000"), overrides={hra.component_id: Decimal("15000")},
        ))
        assert resolved[1].amount == Decimal("15000")
        assert not resolved[1].is_clamped
