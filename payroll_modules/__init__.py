"""
Payroll Modules.

Thin orchestration layers over the payroll kernel and engines.
Each module contains:
- Domain models (frozen DTOs, the nouns)
- ORM persistence models with to_dto()/from_dto()
- Services (transaction owners)
- Workflows (state machines)

Modules:
- compensation: pay component catalog, salary grades, structure versions,
  employee assignments
- payroll: per-employee calculation, payroll runs, approval and adjustments

Actual calculation logic lives in payroll_engines.
"""

from payroll_modules import compensation, payroll

__all__ = [
    "compensation",
    "payroll",
]
