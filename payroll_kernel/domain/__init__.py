"""
Pure domain layer.

Immutable value objects, the clock abstraction and workflow primitives.
No ORM, no database, no I/O.
"""

from payroll_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from payroll_kernel.domain.values import AttendanceFacts, DateRange, PayrollPeriod
from payroll_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "DateRange",
    "PayrollPeriod",
    "AttendanceFacts",
    "Guard",
    "Transition",
    "Workflow",
]
