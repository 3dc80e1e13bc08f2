"""ORM models owned by the payroll kernel."""

from payroll_kernel.models.audit_event import AuditAction, AuditEvent

__all__ = ["AuditAction", "AuditEvent"]
