"""
Payroll Kernel

Shared foundation for the salary-structure and payroll packages:
- Typed, coded exceptions
- Structured JSON logging
- Database engine, session and declarative base
- Injectable clock and workflow primitives
- Hash-chained audit trail
"""

__version__ = "0.1.0"
