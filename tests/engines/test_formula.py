"""
Tests for the sandboxed formula evaluator.

Validates:
- Arithmetic stays exact in Decimal
- Allowed functions and conditionals
- Rejection of anything outside the fixed operator set
"""

from decimal import Decimal

import pytest

from payroll_engines.formula import evaluate_formula, parse_formula
from payroll_kernel.exceptions import FormulaError


class TestFormulaParsing:

    def test_reports_referenced_names(self):
        compiled = parse_formula("BASIC * 0.4 + min(HRA, 5000)")
        assert compiled.names == frozenset({"BASIC", "HRA"})

    def test_strips_whitespace(self):
        assert parse_formula("  BASIC  ").expression == "BASIC"

    @pytest.mark.parametrize("expression", [
        "",
        "   ",
        "BASIC *",
        "__import__('os')",
        "BASIC.real",
        "BASIC[0]",
        "'text'",
        "lambda x: x",
        "BASIC ** 2",
        "BASIC // 2",
        "pow(BASIC, 2)",
        "min(BASIC, default=1)",
        "True",
    ])
    def test_rejects_disallowed_syntax(self, expression):
        with pytest.raises(FormulaError):
            parse_formula(expression)

    def test_error_carries_code(self):
        with pytest.raises(FormulaError) as exc_info:
            parse_formula("BASIC ** 2")
        assert exc_info.value.code == "FORMULA_ERROR"


class TestFormulaEvaluation:

    def test_decimal_literals_are_exact(self):
        result = evaluate_formula("BASIC * 0.1", {"BASIC": Decimal("30000")})
        assert result == Decimal("3000.0")

    def test_min_max_abs(self):
        values = {"A": Decimal("10"), "B": Decimal("-4")}
        assert evaluate_formula("max(A, B)", values) == Decimal("10")
        assert evaluate_formula("min(A, B)", values) == Decimal("-4")
        assert evaluate_formula("abs(B)", values) == Decimal("4")

    def test_round_half_up(self):
        assert evaluate_formula("round(X, 2)", {"X": Decimal("1.005")}) == Decimal("1.01")
        assert evaluate_formula("round(X)", {"X": Decimal("2.5")}) == Decimal("3")

    def test_conditional(self):
        expr = "1800 if BASIC * 0.12 > 1800 else BASIC * 0.12"
        assert evaluate_formula(expr, {"BASIC": Decimal("30000")}) == Decimal("1800")
        assert evaluate_formula(expr, {"BASIC": Decimal("10000")}) == Decimal("1200.00")

    def test_boolean_operators_in_condition(self):
        expr = "1 if GROSS > 0 and GROSS <= 25000 else 0"
        assert evaluate_formula(expr, {"GROSS": Decimal("20000")}) == Decimal("1")
        assert evaluate_formula(expr, {"GROSS": Decimal("30000")}) == Decimal("0")

    def test_division_by_zero(self):
        with pytest.raises(FormulaError, match="division by zero"):
            evaluate_formula("BASIC / WORKING_DAYS", {
                "BASIC": Decimal("1"), "WORKING_DAYS": Decimal("0"),
            })

    def test_unknown_name(self):
        with pytest.raises(FormulaError, match="unknown name"):
            evaluate_formula("MISSING + 1", {})

    def test_bare_condition_is_not_a_number(self):
        with pytest.raises(FormulaError):
            evaluate_formula("BASIC > 1", {"BASIC": Decimal("2")})


class TestConditionsAndNumbersDoNotMix:

    @pytest.mark.parametrize("expression", [
        "-(CTC > 1)",
        "+(CTC > 1)",
        "(CTC > 1) + 1",
        "BASIC * (BASIC > 0)",
        "max(CTC > 1, 0)",
        "abs(CTC > 1)",
        "round(BASIC, BASIC > 0)",
        "not CTC",
        "1 if BASIC else 0",
        "1 if BASIC and GROSS > 0 else 0",
        "(BASIC > 0) > 0",
        "BASIC > 0 if GROSS > 0 else 0",
    ])
    def test_rejected_at_parse_time(self, expression):
        with pytest.raises(FormulaError):
            parse_formula(expression)

    def test_not_is_allowed_on_conditions(self):
        expr = "100 if not GROSS > 25000 else 0"
        assert evaluate_formula(expr, {"GROSS": Decimal("20000")}) == Decimal("100")
        assert evaluate_formula(expr, {"GROSS": Decimal("30000")}) == Decimal("0")

    @pytest.mark.parametrize("expression", ["abs()", "abs(A, B)", "round(A, 2, 3)", "min()"])
    def test_function_arity(self, expression):
        with pytest.raises(FormulaError, match="arguments"):
            parse_formula(expression)


class TestNonFiniteValues:

    @pytest.mark.parametrize("expression", ["1e400", "BASIC + 1e400", "-1e999 * BASIC"])
    def test_overflowing_literal_rejected_at_parse_time(self, expression):
        with pytest.raises(FormulaError, match="not finite"):
            parse_formula(expression)

    def test_large_finite_literal_is_exact(self):
        assert evaluate_formula("1e300 - 1e300", {}) == Decimal("0")

    def test_infinite_input_is_rejected(self):
        with pytest.raises(FormulaError, match="not finite"):
            evaluate_formula("BASIC * 2", {"BASIC": Decimal("Infinity")})

    def test_results_are_decimal(self):
        result = evaluate_formula("max(BASIC, 1) if BASIC > 0 else 0", {"BASIC": Decimal("5")})
        assert isinstance(result, Decimal)
        assert result == Decimal("5")
