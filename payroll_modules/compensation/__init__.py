"""
Compensation Module (``payroll_modules.compensation``).

Responsibility
--------------
Pay component catalog, salary grades, effective-dated salary structure
versions and the employee assignment ledger.

Architecture position
---------------------
**Modules layer** -- DTOs, ORM models and transaction-owning services.
Range planning and component ordering checks come from ``payroll_engines``.

Invariants enforced
-------------------
* Versions of one structure name partition time; at most one is open.
* An employee has at most one active assignment at any instant.
* Structure components only reference components declared before them.
"""

from payroll_modules.compensation.assignment_service import EmployeeAssignmentService
from payroll_modules.compensation.catalog_service import CompensationCatalogService
from payroll_modules.compensation.models import (
    AssignmentHistoryEntry,
    AssignmentOverride,
    EmployeeAssignment,
    PayComponent,
    RangeValidation,
    ReassignmentFailure,
    ReassignmentResult,
    ReassignmentSuccess,
    ReassignmentUpdate,
    SalaryGrade,
    SalaryStructure,
    StructureComponent,
    StructureComponentSpec,
    StructureVersionInfo,
)
from payroll_modules.compensation.structure_service import StructureVersionService

__all__ = [
    "AssignmentHistoryEntry",
    "AssignmentOverride",
    "CompensationCatalogService",
    "EmployeeAssignment",
    "EmployeeAssignmentService",
    "PayComponent",
    "RangeValidation",
    "ReassignmentFailure",
    "ReassignmentResult",
    "ReassignmentSuccess",
    "ReassignmentUpdate",
    "SalaryGrade",
    "SalaryStructure",
    "StructureComponent",
    "StructureComponentSpec",
    "StructureVersionInfo",
    "StructureVersionService",
]
