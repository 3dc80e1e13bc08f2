"""
Payroll Invariants Contract.

These invariants are structural law for the versioning and payroll
packages. No configuration set or caller option may switch them off.

This module declares them explicitly. Enforcement is distributed across
the structure version service, the assignment ledger, the payroll run
service and the unique indexes on their tables.
"""

from enum import Enum, unique


@unique
class PayrollInvariant(str, Enum):
    """Non-configurable invariants enforced by the payroll packages."""

    VERSION_PARTITION = "version_partition"
    """Versions of one structure name never overlap, leave no gap once a
    successor exists, and at most one is open-ended. Enforced by
    StructureVersionService and a partial unique index."""

    SINGLE_ACTIVE_ASSIGNMENT = "single_active_assignment"
    """An employee has at most one active assignment at any instant.
    Enforced by close-then-create in one transaction and a partial
    unique index."""

    DECLARATION_ORDER = "declaration_order"
    """Components only reference components declared before them.
    Enforced by the component resolver before persistence."""

    NET_EQUALS_GROSS_MINUS_DEDUCTIONS = "net_equals_gross_minus_deductions"
    """Every persisted payroll record satisfies net = gross - deductions.
    Enforced by the calculator and by every adjustment type."""

    ONE_RUN_PER_PERIOD = "one_run_per_period"
    """A period has at most one payroll run. Enforced by a unique
    constraint in the store."""

    TOTALS_FROM_RECORDS = "totals_from_records"
    """Run totals are recomputed from current record state, never
    accumulated incrementally."""


ALL_PAYROLL_INVARIANTS: frozenset[PayrollInvariant] = frozenset(PayrollInvariant)

# The kernel package may not import from these packages.
# Enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "payroll_engines",
    "payroll_config",
    "payroll_modules",
)

# Engines are pure: no persistence or module imports.
FORBIDDEN_ENGINE_IMPORTS: tuple[str, ...] = (
    "sqlalchemy",
    "payroll_config",
    "payroll_modules",
    "payroll_kernel.db.base",
    "payroll_kernel.db.engine",
    "payroll_kernel.services",
    "payroll_kernel.models",
)
