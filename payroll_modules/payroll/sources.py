"""
Payroll input sources (``payroll_modules.payroll.sources``).

Attendance and the employee cohort come from outside this package.  The
protocols here are what the payroll services consume; the concrete
classes cover the common cases and tests.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from typing import Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy.orm import Session

from payroll_kernel.domain.values import AttendanceFacts, PayrollPeriod
from payroll_kernel.exceptions import InvalidAttendanceError
from payroll_modules.compensation.assignment_service import EmployeeAssignmentService


@runtime_checkable
class AttendanceSource(Protocol):
    def get_attendance(self, employee_id: UUID, period: PayrollPeriod) -> AttendanceFacts: ...


@runtime_checkable
class EmployeeDirectory(Protocol):
    def active_employee_ids(self, as_of: date) -> list[UUID]: ...


class FullAttendanceSource:
    """Every employee present on every weekday of the month."""

    def get_attendance(self, employee_id: UUID, period: PayrollPeriod) -> AttendanceFacts:
        return AttendanceFacts.full_attendance(period.weekday_count())


class StaticAttendanceSource:
    """
    Attendance from a mapping keyed by employee id.

    Employees missing from the mapping use ``fallback`` when given, else
    raise ``InvalidAttendanceError`` (a per-employee failure in bulk runs).
    """

    def __init__(
        self,
        facts: Mapping[UUID, AttendanceFacts],
        fallback: AttendanceSource | None = None,
    ):
        self._facts = dict(facts)
        self._fallback = fallback

    def get_attendance(self, employee_id: UUID, period: PayrollPeriod) -> AttendanceFacts:
        facts = self._facts.get(employee_id)
        if facts is not None:
            return facts
        if self._fallback is not None:
            return self._fallback.get_attendance(employee_id, period)
        raise InvalidAttendanceError(
            f"no attendance recorded for employee {employee_id} in {period.code}"
        )


class AssignmentEmployeeDirectory:
    """Employees with an assignment covering the date."""

    def __init__(self, session: Session):
        self._assignments = EmployeeAssignmentService(session)

    def active_employee_ids(self, as_of: date) -> list[UUID]:
        return self._assignments.active_employee_ids(as_of)


class StaticEmployeeDirectory:
    def __init__(self, employee_ids: Iterable[UUID]):
        self._employee_ids = list(employee_ids)

    def active_employee_ids(self, as_of: date) -> list[UUID]:
        return list(self._employee_ids)
