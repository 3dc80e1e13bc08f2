"""
Layer boundaries and the invariants contract.

1. payroll_kernel/** may NOT import payroll_engines, payroll_config or
   payroll_modules. The kernel never depends upward.

2. payroll_engines/** may NOT import persistence, configuration or
   module code. Engines are pure functions over values.

3. payroll_kernel/domain/** imports no ORM or DB packages.

4. The invariants declaration is complete.

These tests read source code via AST and cannot break anything.
"""

import ast
from pathlib import Path

from payroll_kernel.invariants import (
    ALL_PAYROLL_INVARIANTS,
    FORBIDDEN_ENGINE_IMPORTS,
    FORBIDDEN_KERNEL_IMPORTS,
    PayrollInvariant,
)

REPO_ROOT = Path(__file__).resolve().parents[2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(package: str) -> list[Path]:
    return sorted((REPO_ROOT / package).rglob("*.py"))


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    tree = ast.parse(filepath.read_text(), filename=str(filepath))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found: list[str] = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    found.append(
                        f"  {filepath.relative_to(REPO_ROOT)}:{lineno} imports '{module}'"
                    )
    return found


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestKernelNoUpwardDependencies:

    def test_kernel_does_not_import_forbidden_packages(self):
        violations = _violations("payroll_kernel", FORBIDDEN_KERNEL_IMPORTS)
        assert not violations, (
            "Kernel boundary violation: payroll_kernel/** must not import "
            "upward packages:\n" + "\n".join(violations)
        )


class TestEnginePurity:

    def test_engines_do_not_import_persistence_or_modules(self):
        violations = _violations("payroll_engines", FORBIDDEN_ENGINE_IMPORTS)
        assert not violations, (
            "Engine purity violation: payroll_engines/** must stay free of "
            "sessions, ORM models and module code:\n" + "\n".join(violations)
        )

    def test_engine_files_exist(self):
        # Guards against the scan silently passing on an empty tree.
        names = {p.name for p in _python_files("payroll_engines")}
        assert {"payroll_calculator.py", "effective_dating.py", "statutory.py"} <= names


class TestKernelDomainPurity:

    FORBIDDEN_MODULES = (
        "sqlalchemy",
        "psycopg2",
        "sqlite3",
        "payroll_kernel.db",
    )

    def test_domain_no_orm_imports(self):
        violations = _violations("payroll_kernel/domain", self.FORBIDDEN_MODULES)
        assert not violations, (
            "Domain purity violation: payroll_kernel/domain/** must not "
            "import ORM/DB packages:\n" + "\n".join(violations)
        )


class TestInvariantsDeclaration:

    def test_required_invariants_declared(self):
        required = {
            "VERSION_PARTITION",
            "SINGLE_ACTIVE_ASSIGNMENT",
            "DECLARATION_ORDER",
            "NET_EQUALS_GROSS_MINUS_DEDUCTIONS",
            "ONE_RUN_PER_PERIOD",
            "TOTALS_FROM_RECORDS",
        }
        declared = {inv.name for inv in PayrollInvariant}
        assert required <= declared
        assert ALL_PAYROLL_INVARIANTS == frozenset(PayrollInvariant)

    def test_forbidden_imports_declared(self):
        for pkg in ("payroll_engines", "payroll_config", "payroll_modules"):
            assert pkg in FORBIDDEN_KERNEL_IMPORTS
        assert "sqlalchemy" in FORBIDDEN_ENGINE_IMPORTS
