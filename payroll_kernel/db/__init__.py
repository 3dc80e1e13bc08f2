"""Database layer - engine, base classes and column types."""

from payroll_kernel.db.base import UUID, Base, ExactDecimal, TrackedBase, UUIDString
from payroll_kernel.db.engine import create_tables, get_engine, get_session
from payroll_kernel.db.types import minor_units, round_money

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "ExactDecimal",
    "UUID",
    "minor_units",
    "round_money",
]
