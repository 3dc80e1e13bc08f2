"""
Tests for effective-dated salary structure versions.

Covers:
- First version creation and name/code uniqueness
- Supersession closing the open predecessor atomically
- Overlap rejection against every rival version
- Resolution by date, version labels, range preview and archiving
"""

import logging
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from payroll_kernel.domain.values import DateRange
from payroll_kernel.exceptions import (
    DuplicateNameOrCodeError,
    NonContiguousRangeError,
    OverlappingRangeError,
    PayComponentNotFoundError,
    StructureNotFoundError,
    StructureVersionNotFoundError,
    UnresolvedBaseReferenceError,
)
from payroll_kernel.models.audit_event import AuditAction
from payroll_kernel.services.auditor_service import AuditorService
from payroll_modules.compensation import StructureComponentSpec
from tests.modules.conftest import ENGINEER_STRUCTURE, STRUCTURE_START, basic_hra_specs

JUNE = date(2024, 6, 1)


class TestCreateVersion:

    def test_first_version(self, engineer_structure):
        assert engineer_structure.name == ENGINEER_STRUCTURE
        assert engineer_structure.effective_from == STRUCTURE_START
        assert engineer_structure.is_open
        assert engineer_structure.is_active
        assert [c.pay_component.code for c in engineer_structure.components] == ["BASIC", "HRA"]

    def test_duplicate_name_rejected(self, structures, engineer_structure, test_actor_id):
        with pytest.raises(DuplicateNameOrCodeError):
            structures.create_version(
                ENGINEER_STRUCTURE, "OTHER", DateRange(STRUCTURE_START),
                basic_hra_specs(), test_actor_id,
            )

    def test_duplicate_code_rejected(self, structures, engineer_structure, test_actor_id):
        with pytest.raises(DuplicateNameOrCodeError):
            structures.create_version(
                "Engineer-L2", "ENG-L1", DateRange(STRUCTURE_START),
                basic_hra_specs(), test_actor_id,
            )

    def test_forward_reference_writes_nothing(self, structures, pay_components, test_actor_id):
        specs = [
            StructureComponentSpec("HRA", order=1, percentage=Decimal("40"), base_component="BASIC"),
            StructureComponentSpec("BASIC", order=2, value=Decimal("30000")),
        ]
        with pytest.raises(UnresolvedBaseReferenceError):
            structures.create_version("Broken", "BRK", DateRange(STRUCTURE_START), specs, test_actor_id)
        with pytest.raises(StructureNotFoundError):
            structures.list_versions("Broken")

    def test_unknown_component_rejected(self, structures, pay_components, test_actor_id):
        with pytest.raises(PayComponentNotFoundError):
            structures.create_version(
                "Ghost", "GST", DateRange(STRUCTURE_START),
                [StructureComponentSpec("GHOST", order=1, value=Decimal("1"))], test_actor_id,
            )

    def test_catalog_formula_used_when_spec_omits_it(
        self, structures, pay_components, test_actor_id,
    ):
        version = structures.create_version(
            "Perf", "PRF", DateRange(STRUCTURE_START),
            basic_hra_specs() + [StructureComponentSpec("PERF", order=3)],
            test_actor_id,
        )
        perf = version.definitions()[2]
        assert perf.formula == "BASIC * 0.1"
        assert structures.get_plan(version.id).codes == ("BASIC", "HRA", "PERF")


class TestSupersede:

    def test_closes_predecessor(self, structures, engineer_structure, test_actor_id):
        v2 = structures.supersede(
            engineer_structure.id, DateRange(JUNE), "Basic revision", test_actor_id,
            components=basic_hra_specs(basic="35000"),
        )
        v1 = structures.get_version(engineer_structure.id)
        assert v1.effective_to == JUNE
        assert not v1.is_active
        assert v2.is_open and v2.is_active
        assert v2.change_log == "Basic revision"
        assert v2.components[0].value == Decimal("35000")

    def test_components_carried_forward(self, structures, engineer_structure, test_actor_id):
        v2 = structures.supersede(engineer_structure.id, DateRange(JUNE), None, test_actor_id)
        assert [c.to_spec() for c in v2.components] == [
            c.to_spec() for c in engineer_structure.components
        ]

    def test_overlapping_supersession_rejected(self, structures, engineer_structure, test_actor_id):
        v2 = structures.supersede(engineer_structure.id, DateRange(JUNE), None, test_actor_id)
        with pytest.raises(OverlappingRangeError) as exc_info:
            structures.supersede(
                v2.id, DateRange(date(2024, 3, 1), date(2024, 9, 1)), None, test_actor_id,
            )
        assert exc_info.value.conflicting_version_id == str(engineer_structure.id)
        assert len(structures.list_versions(ENGINEER_STRUCTURE)) == 2
        # The rejected attempt left the open version untouched.
        assert structures.get_version(v2.id).is_open

    def test_gap_after_closed_chain_rejected(self, structures, engineer_structure, test_actor_id):
        structures.supersede(
            engineer_structure.id, DateRange(JUNE, date(2024, 9, 1)), None, test_actor_id,
        )
        with pytest.raises(NonContiguousRangeError):
            structures.supersede(engineer_structure.id, DateRange(date(2024, 10, 1)), None,
                                 test_actor_id)

    def test_back_dated_version_is_inactive(self, structures, pay_components, test_actor_id):
        v1 = structures.create_version(
            "Later", "LTR", DateRange(JUNE), basic_hra_specs(), test_actor_id,
        )
        early = structures.supersede(
            v1.id, DateRange(STRUCTURE_START, JUNE), "back-dated", test_actor_id,
        )
        assert not early.is_active
        assert structures.get_version(v1.id).is_open
        assert structures.resolve_active("Later", date(2024, 3, 1)).id == early.id

    def test_supersession_audited_with_closed_range(
        self, session, structures, engineer_structure, test_actor_id,
    ):
        v2 = structures.supersede(engineer_structure.id, DateRange(JUNE), "raise", test_actor_id)
        trace = AuditorService(session).get_trace("salary_structure", v2.id)
        assert trace.last_action == AuditAction.STRUCTURE_VERSION_SUPERSEDED
        closed = trace.entries[-1].before["closed_versions"][0]
        assert closed["version_id"] == str(engineer_structure.id)
        assert closed["before"]["effective_to"] is None
        assert closed["after"]["effective_to"] == str(JUNE)

    def test_unknown_base(self, structures, test_actor_id):
        with pytest.raises(StructureVersionNotFoundError):
            structures.supersede(uuid4(), DateRange(JUNE), None, test_actor_id)


class TestQueries:

    def test_resolve_active_by_date(self, structures, engineer_structure, test_actor_id):
        v2 = structures.supersede(engineer_structure.id, DateRange(JUNE), None, test_actor_id)
        assert structures.resolve_active(ENGINEER_STRUCTURE, date(2024, 5, 31)).id == engineer_structure.id
        assert structures.resolve_active(ENGINEER_STRUCTURE, JUNE).id == v2.id
        with pytest.raises(StructureNotFoundError):
            structures.resolve_active(ENGINEER_STRUCTURE, date(2023, 12, 31))

    def test_list_versions_labels(self, structures, engineer_structure, test_actor_id):
        structures.supersede(engineer_structure.id, DateRange(JUNE), None, test_actor_id)
        versions = structures.list_versions(ENGINEER_STRUCTURE)
        assert [v.label for v in versions] == ["v1", "v2"]
        # The clock sits at 2024-01-15.
        assert [v.is_current for v in versions] == [True, False]


class TestValidateEffectiveRange:

    def test_valid_future_range(self, structures, engineer_structure):
        result = structures.validate_effective_range(engineer_structure.id, JUNE)
        assert result.is_valid
        assert result.warnings == ()

    def test_past_date_and_assignments_warn(self, structures, assigned_employee):
        result = structures.validate_effective_range(
            assigned_employee.structure_id, date(2024, 1, 10),
        )
        assert result.is_valid
        assert result.affected_employee_count == 1
        assert len(result.warnings) == 2

    def test_inverted_range_is_error(self, structures, engineer_structure):
        result = structures.validate_effective_range(
            engineer_structure.id, JUNE, date(2024, 2, 1),
        )
        assert not result.is_valid

    def test_overlap_is_error_and_nothing_written(
        self, structures, engineer_structure, test_actor_id,
    ):
        structures.supersede(engineer_structure.id, DateRange(JUNE), None, test_actor_id)
        result = structures.validate_effective_range(
            engineer_structure.id, date(2024, 3, 1), date(2024, 9, 1),
        )
        assert not result.is_valid
        assert result.errors
        assert len(structures.list_versions(ENGINEER_STRUCTURE)) == 2


class TestArchive:

    def test_archives_closed_versions_beyond_keep(
        self, structures, engineer_structure, test_actor_id,
    ):
        base = engineer_structure
        for month in (2, 3, 4):
            base = structures.supersede(base.id, DateRange(date(2024, month, 1)), None, test_actor_id)

        assert structures.archive_old_versions(ENGINEER_STRUCTURE, test_actor_id, keep=1) == 2
        versions = structures.list_versions(ENGINEER_STRUCTURE)
        archived = [v.label for v in versions if v.structure.archived_at is not None]
        assert archived == ["v1", "v2"]
        # Ranges are untouched.
        assert versions[0].structure.effective_to == date(2024, 2, 1)

        assert structures.archive_old_versions(ENGINEER_STRUCTURE, test_actor_id, keep=1) == 0


class TestLogging:

    @pytest.fixture
    def info_logs(self, captured_logs):
        logging.getLogger("payroll_kernel").setLevel(logging.INFO)
        return captured_logs

    def test_version_operations_log_at_info(
        self, structures, pay_components, test_actor_id, info_logs,
    ):
        v1 = structures.create_version(
            ENGINEER_STRUCTURE, "ENG-L1", DateRange(STRUCTURE_START),
            basic_hra_specs(), test_actor_id,
        )
        v2 = structures.supersede(v1.id, DateRange(JUNE), "raise", test_actor_id)
        structures.supersede(v2.id, DateRange(date(2024, 9, 1)), None, test_actor_id)
        assert structures.archive_old_versions(ENGINEER_STRUCTURE, test_actor_id, keep=1) == 1

        logs = {r["message"]: r for r in info_logs()}
        for message in (
            "structure_version_created",
            "structure_version_superseded",
            "structure_versions_archived",
        ):
            assert logs[message]["structure_name"] == ENGINEER_STRUCTURE
            assert logs[message]["level"] == "INFO"
        assert len(structures.list_versions(ENGINEER_STRUCTURE)) == 3
