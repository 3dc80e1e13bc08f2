"""
Sandboxed formula evaluator for FORMULA-mode pay components.

Responsibility:
    Parse a formula with ``ast`` against a fixed operator set, report the
    names it references, and evaluate it over already-resolved component
    values using Decimal arithmetic.  Never uses ``eval`` or ``exec``.

Architecture position:
    Engines -- pure, zero I/O.

Allowed:
  - Arithmetic: +, -, *, / and unary +/-
  - Numbers (kept exact: ``0.40`` is Decimal("0.40"))
  - Names: resolved component codes and the reserved inputs
    CTC, GROSS, WORKING_DAYS, PRESENT_DAYS, ATTENDANCE_RATIO
  - Functions: min(), max(), abs(), round(x[, places])
  - Conditional: ``a if cond else b`` with comparisons and and/or

Rejected:
  - attribute access, subscripts, strings, lambdas, keyword arguments,
    any other function call, any other operator

Failure modes:
    - FormulaError on syntax or disallowed construct (at parse time), or on
      division by zero / unknown name (at evaluation time).  A condition
      used as a number (or a number used as a condition) is a parse error.
"""

from __future__ import annotations

import ast
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, DivisionByZero, InvalidOperation

from payroll_kernel.exceptions import FormulaError

ALLOWED_FUNCTIONS: frozenset[str] = frozenset({"min", "max", "abs", "round"})

RESERVED_NAMES: frozenset[str] = frozenset({
    "CTC", "GROSS", "WORKING_DAYS", "PRESENT_DAYS", "ATTENDANCE_RATIO",
})

_BIN_OPS = (ast.Add, ast.Sub, ast.Mult, ast.Div)
_CMP_OPS = (ast.Eq, ast.NotEq, ast.Lt, ast.LtE, ast.Gt, ast.GtE)

_NUMBER = "number"
_CONDITION = "condition"

# (min args, max args); None means unbounded.
_ARITY: dict[str, tuple[int, int | None]] = {
    "min": (1, None),
    "max": (1, None),
    "abs": (1, 1),
    "round": (1, 2),
}


@dataclass(frozen=True)
class CompiledFormula:
    """A validated formula and the names it reads."""

    expression: str
    tree: ast.Expression = field(compare=False, repr=False)
    names: frozenset[str]

    def evaluate(self, variables: Mapping[str, Decimal]) -> Decimal:
        """Evaluate against ``variables``; the result is unrounded."""
        try:
            result = _Evaluator(self.expression, variables).visit(self.tree.body)
        except (DivisionByZero, InvalidOperation) as exc:
            raise FormulaError(self.expression, f"arithmetic error: {exc!r}") from exc
        if not result.is_finite():
            raise FormulaError(self.expression, f"result {result} is not finite")
        return result


def parse_formula(expression: str) -> CompiledFormula:
    """Validate ``expression`` and return it compiled."""
    if not expression or not expression.strip():
        raise FormulaError(expression or "", "formula is empty")
    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError as exc:
        raise FormulaError(expression, f"syntax error: {exc.msg}") from exc

    names: set[str] = set()
    kind = _validate(tree.body, expression, names)
    if kind != _NUMBER:
        raise FormulaError(expression, "formula must produce a number, not a condition")
    return CompiledFormula(expression=expression.strip(), tree=tree, names=frozenset(names))


def evaluate_formula(expression: str, variables: Mapping[str, Decimal]) -> Decimal:
    """Parse and evaluate in one step."""
    return parse_formula(expression).evaluate(variables)


def _validate(node: ast.AST, expression: str, names: set[str]) -> str:
    """Check ``node`` and return its kind: ``_NUMBER`` or ``_CONDITION``."""
    if isinstance(node, ast.BinOp):
        if not isinstance(node.op, _BIN_OPS):
            raise FormulaError(expression, f"operator {type(node.op).__name__} is not allowed")
        _expect(_NUMBER, node.left, expression, names)
        _expect(_NUMBER, node.right, expression, names)
        return _NUMBER

    if isinstance(node, ast.UnaryOp):
        if isinstance(node.op, ast.Not):
            _expect(_CONDITION, node.operand, expression, names)
            return _CONDITION
        if not isinstance(node.op, (ast.USub, ast.UAdd)):
            raise FormulaError(expression, f"operator {type(node.op).__name__} is not allowed")
        _expect(_NUMBER, node.operand, expression, names)
        return _NUMBER

    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise FormulaError(expression, f"literal {node.value!r} is not a number")
        if not Decimal(str(node.value)).is_finite():
            raise FormulaError(expression, f"literal {node.value!r} is not finite")
        return _NUMBER

    if isinstance(node, ast.Name):
        names.add(node.id)
        return _NUMBER

    if isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name) or node.func.id not in ALLOWED_FUNCTIONS:
            raise FormulaError(expression, f"function call {ast.unparse(node.func)} is not allowed")
        if node.keywords:
            raise FormulaError(expression, "keyword arguments are not allowed")
        low, high = _ARITY[node.func.id]
        if not low <= len(node.args) <= (high or len(node.args)):
            raise FormulaError(expression, f"{node.func.id}() got {len(node.args)} arguments")
        for arg in node.args:
            _expect(_NUMBER, arg, expression, names)
        return _NUMBER

    if isinstance(node, ast.IfExp):
        _expect(_CONDITION, node.test, expression, names)
        _expect(_NUMBER, node.body, expression, names)
        _expect(_NUMBER, node.orelse, expression, names)
        return _NUMBER

    if isinstance(node, ast.Compare):
        for op in node.ops:
            if not isinstance(op, _CMP_OPS):
                raise FormulaError(expression, f"comparison {type(op).__name__} is not allowed")
        _expect(_NUMBER, node.left, expression, names)
        for comparator in node.comparators:
            _expect(_NUMBER, comparator, expression, names)
        return _CONDITION

    if isinstance(node, ast.BoolOp):
        for value in node.values:
            _expect(_CONDITION, value, expression, names)
        return _CONDITION

    raise FormulaError(expression, f"{type(node).__name__} is not allowed")


def _expect(kind: str, node: ast.AST, expression: str, names: set[str]) -> None:
    found = _validate(node, expression, names)
    if found != kind:
        raise FormulaError(
            expression, f"{ast.unparse(node)!r} is a {found} where a {kind} is required",
        )


class _Evaluator:
    """Walks a validated tree producing Decimal (or bool inside conditions)."""

    def __init__(self, expression: str, variables: Mapping[str, Decimal]):
        self._expression = expression
        self._variables = variables

    def visit(self, node: ast.AST):
        if isinstance(node, ast.Constant):
            return Decimal(str(node.value))

        if isinstance(node, ast.Name):
            try:
                return Decimal(self._variables[node.id])
            except KeyError:
                raise FormulaError(self._expression, f"unknown name '{node.id}'") from None

        if isinstance(node, ast.UnaryOp):
            operand = self.visit(node.operand)
            if isinstance(node.op, ast.Not):
                return not operand
            return -operand if isinstance(node.op, ast.USub) else operand

        if isinstance(node, ast.BinOp):
            left = self.visit(node.left)
            right = self.visit(node.right)
            if isinstance(node.op, ast.Add):
                return left + right
            if isinstance(node.op, ast.Sub):
                return left - right
            if isinstance(node.op, ast.Mult):
                return left * right
            if right == 0:
                raise FormulaError(self._expression, "division by zero")
            return left / right

        if isinstance(node, ast.Call):
            args = [self.visit(arg) for arg in node.args]
            name = node.func.id
            if name == "min":
                return min(args)
            if name == "max":
                return max(args)
            if name == "abs":
                return abs(args[0])
            places = int(args[1]) if len(args) > 1 else 0
            return args[0].quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)

        if isinstance(node, ast.IfExp):
            return self.visit(node.body) if self.visit(node.test) else self.visit(node.orelse)

        if isinstance(node, ast.Compare):
            left = self.visit(node.left)
            for op, comparator in zip(node.ops, node.comparators):
                right = self.visit(comparator)
                if not _compare(op, left, right):
                    return False
                left = right
            return True

        if isinstance(node, ast.BoolOp):
            values = [self.visit(v) for v in node.values]
            if isinstance(node.op, ast.And):
                return all(values)
            return any(values)

        raise FormulaError(self._expression, f"{type(node).__name__} is not allowed")


def _compare(op: ast.cmpop, left: Decimal, right: Decimal) -> bool:
    if isinstance(op, ast.Eq):
        return left == right
    if isinstance(op, ast.NotEq):
        return left != right
    if isinstance(op, ast.Lt):
        return left < right
    if isinstance(op, ast.LtE):
        return left <= right
    if isinstance(op, ast.Gt):
        return left > right
    return left >= right
