"""
Shared fixtures for module tests.

Provides the compensation catalog, a standard structure and the payroll
services wired to the deterministic clock.  All IDs are deterministic so
tests can import and use them directly.

DESIGN RULE: Every fixture is opt-in.  No autouse.  Each test explicitly
declares which entities it depends on in its function signature.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest

from payroll_config import PayrollConfig
from payroll_engines.component_resolver import (
    CalculationType,
    ComponentCategory,
    ComponentType,
)
from payroll_kernel.domain.values import DateRange
from payroll_modules.compensation import (
    CompensationCatalogService,
    EmployeeAssignmentService,
    StructureComponentSpec,
    StructureVersionService,
)
from payroll_modules.payroll import (
    FullAttendanceSource,
    PayrollCalculationService,
    PayrollRunService,
)

# ---------------------------------------------------------------------------
# Deterministic employee IDs
# ---------------------------------------------------------------------------

TEST_EMPLOYEE_ID = UUID("00000000-0000-4000-a000-000000000001")
TEST_EMPLOYEE_2_ID = UUID("00000000-0000-4000-a000-000000000002")
TEST_EMPLOYEE_3_ID = UUID("00000000-0000-4000-a000-000000000003")
UNASSIGNED_EMPLOYEE_ID = UUID("00000000-0000-4000-a000-0000000000ff")

ENGINEER_STRUCTURE = "Engineer-L1"
STRUCTURE_START = date(2024, 1, 1)


def basic_hra_specs(basic: str = "30000", hra_pct: str = "40") -> list[StructureComponentSpec]:
    return [
        StructureComponentSpec("BASIC", order=1, value=Decimal(basic)),
        StructureComponentSpec("HRA", order=2, percentage=Decimal(hra_pct), base_component="BASIC"),
    ]


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

@pytest.fixture
def payroll_config():
    return PayrollConfig.with_defaults()


@pytest.fixture
def catalog(session, deterministic_clock):
    return CompensationCatalogService(session, deterministic_clock)


@pytest.fixture
def structures(session, deterministic_clock):
    return StructureVersionService(session, deterministic_clock)


@pytest.fixture
def assignments(session, deterministic_clock):
    return EmployeeAssignmentService(session, deterministic_clock)


@pytest.fixture
def calculation_service(session, deterministic_clock, payroll_config):
    return PayrollCalculationService(
        session,
        attendance_source=FullAttendanceSource(),
        config=payroll_config,
        clock=deterministic_clock,
    )


@pytest.fixture
def run_service(session, deterministic_clock, calculation_service):
    return PayrollRunService(
        session,
        calculation_service=calculation_service,
        clock=deterministic_clock,
    )


# ---------------------------------------------------------------------------
# Catalog and structures
# ---------------------------------------------------------------------------

@pytest.fixture
def pay_components(catalog, test_actor_id):
    """BASIC, HRA, SPECIAL (attendance based), BONUS (formula), PF and LOAN."""
    created = [
        catalog.create_pay_component(
            "BASIC", "Basic", ComponentType.EARNING, ComponentCategory.BASIC,
            CalculationType.FIXED, test_actor_id,
        ),
        catalog.create_pay_component(
            "HRA", "House Rent Allowance", ComponentType.EARNING,
            ComponentCategory.ALLOWANCE, CalculationType.PERCENTAGE, test_actor_id,
        ),
        catalog.create_pay_component(
            "SPECIAL", "Special Allowance", ComponentType.EARNING,
            ComponentCategory.ALLOWANCE, CalculationType.ATTENDANCE_BASED, test_actor_id,
        ),
        catalog.create_pay_component(
            "PERF", "Performance Pay", ComponentType.EARNING,
            ComponentCategory.BONUS, CalculationType.FORMULA, test_actor_id,
            formula="BASIC * 0.1",
        ),
        catalog.create_pay_component(
            "PF", "Provident Fund", ComponentType.DEDUCTION,
            ComponentCategory.STATUTORY_DEDUCTION, CalculationType.FIXED, test_actor_id,
            is_statutory=True, is_taxable=False,
        ),
        catalog.create_pay_component(
            "LOAN", "Loan Recovery", ComponentType.DEDUCTION,
            ComponentCategory.OTHER_DEDUCTION, CalculationType.FIXED, test_actor_id,
            is_taxable=False,
        ),
    ]
    return {c.code: c for c in created}


@pytest.fixture
def engineer_structure(structures, pay_components, test_actor_id):
    """Engineer-L1: Basic 30000 fixed, HRA 40% of Basic, open from 2024-01-01."""
    return structures.create_version(
        ENGINEER_STRUCTURE,
        "ENG-L1",
        DateRange(STRUCTURE_START),
        basic_hra_specs(),
        test_actor_id,
    )


@pytest.fixture
def assigned_employee(assignments, engineer_structure, test_actor_id):
    """TEST_EMPLOYEE_ID on Engineer-L1 with CTC 50000 from 2024-01-01."""
    return assignments.assign(
        TEST_EMPLOYEE_ID,
        engineer_structure.id,
        Decimal("50000"),
        STRUCTURE_START,
        test_actor_id,
    )


@pytest.fixture
def three_employees(assignments, engineer_structure, test_actor_id):
    """Three employees on Engineer-L1 from 2024-01-01."""
    return [
        assignments.assign(
            employee_id, engineer_structure.id, Decimal("50000"), STRUCTURE_START, test_actor_id,
        )
        for employee_id in (TEST_EMPLOYEE_ID, TEST_EMPLOYEE_2_ID, TEST_EMPLOYEE_3_ID)
    ]
