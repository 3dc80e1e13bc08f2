"""
Tests for kernel value objects and workflow definitions.

Validates:
- PayrollPeriod parsing, ordering and calendar boundaries
- AttendanceFacts validation and attendance ratio
- Workflow construction checks and transition lookup
- DeterministicClock
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from payroll_kernel.domain.clock import DeterministicClock
from payroll_kernel.domain.values import AttendanceFacts, PayrollPeriod
from payroll_kernel.domain.workflow import Transition, Workflow
from payroll_kernel.exceptions import InvalidAttendanceError, InvalidPeriodError


class TestPayrollPeriod:

    def test_parse(self):
        period = PayrollPeriod.parse("2024-02")
        assert (period.year, period.month) == (2024, 2)
        assert period.code == "2024-02"
        assert str(period) == "2024-02"

    @pytest.mark.parametrize("value", ["2024-13", "2024-00", "2024-2", "24-02", "2024/02", "", None])
    def test_parse_rejects(self, value):
        with pytest.raises(InvalidPeriodError):
            PayrollPeriod.parse(value)

    def test_leap_february_boundaries(self):
        period = PayrollPeriod(2024, 2)
        assert period.first_day == date(2024, 2, 1)
        assert period.last_day == date(2024, 2, 29)

    def test_weekday_count(self):
        assert PayrollPeriod(2024, 1).weekday_count() == 23
        assert PayrollPeriod(2024, 2).weekday_count() == 21

    def test_ordering(self):
        assert PayrollPeriod(2023, 12) < PayrollPeriod(2024, 1) < PayrollPeriod(2024, 2)


class TestAttendanceFacts:

    def test_ratio(self):
        facts = AttendanceFacts(working_days=Decimal("20"), present_days=Decimal("18"))
        assert facts.attendance_ratio == Decimal("0.9")

    def test_half_days(self):
        facts = AttendanceFacts(working_days=20, present_days="19.5")
        assert facts.present_days == Decimal("19.5")

    def test_full_attendance(self):
        assert AttendanceFacts.full_attendance(22).attendance_ratio == Decimal("1")

    @pytest.mark.parametrize("kwargs", [
        {"working_days": Decimal("0"), "present_days": Decimal("0")},
        {"working_days": Decimal("20"), "present_days": Decimal("21")},
        {"working_days": Decimal("20"), "present_days": Decimal("-1")},
        {"working_days": Decimal("20"), "present_days": Decimal("20"),
         "overtime_hours": Decimal("-2")},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(InvalidAttendanceError):
            AttendanceFacts(**kwargs)


class TestWorkflow:

    def _workflow(self, transitions):
        return Workflow(
            name="sample",
            description="sample",
            initial_state="a",
            states=("a", "b"),
            transitions=transitions,
        )

    def test_find_transition(self):
        wf = self._workflow((Transition("a", "b", "go"),))
        assert wf.find_transition("a", "go").to_state == "b"
        assert wf.find_transition("b", "go") is None
        assert wf.actions_from("a") == ("go",)

    def test_undeclared_state_rejected(self):
        with pytest.raises(ValueError):
            self._workflow((Transition("a", "c", "go"),))

    def test_undeclared_initial_state_rejected(self):
        with pytest.raises(ValueError):
            Workflow(name="x", description="x", initial_state="z", states=("a",), transitions=())


class TestDeterministicClock:

    def test_fixed_and_advance(self):
        start = datetime(2024, 1, 15, 9, 0, 0, tzinfo=timezone.utc)
        clock = DeterministicClock(start)
        assert clock.now() == start
        assert clock.today() == date(2024, 1, 15)
        clock.advance(60)
        assert clock.now() == datetime(2024, 1, 15, 9, 1, 0, tzinfo=timezone.utc)
