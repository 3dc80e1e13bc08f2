"""
Module ORM Registry (``payroll_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model is imported so that ``Base.metadata``
contains its table definition before tables are created.
``create_all_tables()`` is the entry point scripts and ``tests/conftest.py``
use to get the full schema.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``payroll_modules``
packages and from ``payroll_kernel.db.engine`` (allowed: modules -> kernel).
MUST NOT be imported by ``payroll_kernel``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``payroll_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    # Kernel tables first (audit_events, sequence_counters)
    import payroll_kernel.models  # noqa: F401
    import payroll_kernel.services.sequence_service  # noqa: F401
    # fmt: off
    import payroll_modules.compensation.orm  # noqa: F401
    import payroll_modules.payroll.orm  # noqa: F401
    # fmt: on


def create_all_tables() -> None:
    """Create kernel and module tables.

    Preconditions:
        Engine must be initialized via ``init_engine_from_url()``.
    """
    from payroll_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables()
