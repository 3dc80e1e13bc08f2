"""Kernel services (write side). Flush only; callers own commit."""

from payroll_kernel.services.auditor_service import AuditorService, AuditSink, AuditTrace
from payroll_kernel.services.sequence_service import SequenceCounter, SequenceService

__all__ = [
    "AuditorService",
    "AuditSink",
    "AuditTrace",
    "SequenceService",
    "SequenceCounter",
]
