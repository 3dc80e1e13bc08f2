"""
Typed Exception Hierarchy for the Payroll Kernel.

===============================================================================
ERROR CONTRACT
===============================================================================

Every error raised by the versioning, assignment and payroll services is:
  1. A TYPED exception class (catch by type, never by message)
  2. Tagged with a CODE class attribute (machine-readable, API-safe)
  3. Carrying STRUCTURED DATA naming the violated invariant

Example:
    try:
        versions.supersede(base_id, new_range, "2024 revision", actor_id)
    except OverlappingRangeError as e:
        api_response(
            code=e.code,
            conflicting_version=e.conflicting_version_id,
            conflicting_range=(e.conflicting_from, e.conflicting_to),
        )

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PayrollKernelError (base)
    |
    +-- NotFoundError
    |   +-- StructureVersionNotFoundError
    |   +-- StructureNotFoundError
    |   +-- AssignmentNotFoundError
    |   +-- PayComponentNotFoundError
    |   +-- SalaryGradeNotFoundError
    |   +-- PayrollRunNotFoundError
    |   +-- PayrollRecordNotFoundError
    |
    +-- VersioningError
    |   +-- DuplicateNameOrCodeError
    |   +-- OverlappingRangeError
    |   +-- InvertedRangeError
    |   +-- NonContiguousRangeError
    |
    +-- AssignmentError
    |   +-- StructureNotActiveForDateError
    |   +-- CTCOutOfGradeRangeError
    |
    +-- ComponentConfigurationError
    |   +-- UnresolvedBaseReferenceError
    |   +-- FormulaError
    |   +-- DuplicatePayComponentError
    |   +-- InvalidComponentError
    |   +-- InvalidGradeBoundsError
    |
    +-- PayrollRunError
    |   +-- DuplicatePeriodError
    |   +-- InvalidRunStateError
    |   +-- NoEmployeesToProcessError
    |   +-- InvalidPeriodError
    |   +-- InvalidAdjustmentError
    |
    +-- AttendanceError
    |   +-- InvalidAttendanceError
    |
    +-- AuditError
        +-- AuditChainBrokenError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|---------------------------------------
Not found       | STRUCTURE_VERSION_NOT_FOUND   | Version id doesn't exist
                | STRUCTURE_NOT_FOUND           | No version of a name covers a date
                | ASSIGNMENT_NOT_FOUND          | Employee has no assignment for a date
                | PAY_COMPONENT_NOT_FOUND       | Pay component id/code doesn't exist
                | SALARY_GRADE_NOT_FOUND        | Grade id doesn't exist
                | PAYROLL_RUN_NOT_FOUND         | Run id doesn't exist
                | PAYROLL_RECORD_NOT_FOUND      | Record id doesn't exist (or not in run)
----------------|-------------------------------|---------------------------------------
Versioning      | DUPLICATE_NAME_OR_CODE        | Structure name/code already used
                | OVERLAPPING_RANGE             | New range overlaps an existing range
                | INVERTED_RANGE                | effective_to <= effective_from
                | NON_CONTIGUOUS_RANGE          | New range leaves a hole in the chain
----------------|-------------------------------|---------------------------------------
Assignment      | STRUCTURE_NOT_ACTIVE_FOR_DATE | Version not effective on the date
                | CTC_OUT_OF_GRADE_RANGE        | CTC outside the grade's bounds
----------------|-------------------------------|---------------------------------------
Components      | UNRESOLVED_BASE_REFERENCE     | Base/formula name not yet evaluated
                | FORMULA_ERROR                 | Formula uses disallowed syntax
                | DUPLICATE_PAY_COMPONENT       | Pay component code already exists
                | INVALID_COMPONENT             | Component definition is incomplete
                | INVALID_GRADE_BOUNDS          | Grade min > max
----------------|-------------------------------|---------------------------------------
Payroll run     | DUPLICATE_PERIOD              | A run already exists for the period
                | INVALID_RUN_STATE             | Operation not allowed in run status
                | NO_EMPLOYEES_TO_PROCESS       | Empty cohort
                | INVALID_PERIOD                | Period string is not YYYY-MM
                | INVALID_ADJUSTMENT            | Adjustment amount/type rejected
----------------|-------------------------------|---------------------------------------
Attendance      | INVALID_ATTENDANCE            | Attendance facts are inconsistent
----------------|-------------------------------|---------------------------------------
Audit           | AUDIT_CHAIN_BROKEN            | Hash chain validation failed

Per-employee calculation failures inside a bulk calculation are NOT raised;
they are returned as ``EmployeeCalculationFailure`` values carrying the
``code`` of the error that stopped that employee.
"""


class PayrollKernelError(Exception):
    """
    Base exception for all payroll kernel errors.

    All subclasses define a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "PAYROLL_KERNEL_ERROR"


# Not-found errors


class NotFoundError(PayrollKernelError):
    """Base exception for lookups that found nothing."""

    code: str = "NOT_FOUND"


class StructureVersionNotFoundError(NotFoundError):
    """Structure version with the given id does not exist."""

    code: str = "STRUCTURE_VERSION_NOT_FOUND"

    def __init__(self, version_id: str):
        self.version_id = version_id
        super().__init__(f"Structure version not found: {version_id}")


class StructureNotFoundError(NotFoundError):
    """No version of the named structure covers the given date."""

    code: str = "STRUCTURE_NOT_FOUND"

    def __init__(self, name: str, as_of: str):
        self.name = name
        self.as_of = as_of
        super().__init__(f"No version of structure '{name}' is effective on {as_of}")


class AssignmentNotFoundError(NotFoundError):
    """Employee has no assignment covering the given date."""

    code: str = "ASSIGNMENT_NOT_FOUND"

    def __init__(self, employee_id: str, as_of: str | None = None):
        self.employee_id = employee_id
        self.as_of = as_of
        if as_of is None:
            super().__init__(f"No salary assignment for employee {employee_id}")
        else:
            super().__init__(
                f"No salary assignment for employee {employee_id} on {as_of}"
            )


class PayComponentNotFoundError(NotFoundError):
    """Pay component with the given id or code does not exist."""

    code: str = "PAY_COMPONENT_NOT_FOUND"

    def __init__(self, component_ref: str):
        self.component_ref = component_ref
        super().__init__(f"Pay component not found: {component_ref}")


class SalaryGradeNotFoundError(NotFoundError):
    """Salary grade with the given id does not exist."""

    code: str = "SALARY_GRADE_NOT_FOUND"

    def __init__(self, grade_id: str):
        self.grade_id = grade_id
        super().__init__(f"Salary grade not found: {grade_id}")


class PayrollRunNotFoundError(NotFoundError):
    """Payroll run with the given id does not exist."""

    code: str = "PAYROLL_RUN_NOT_FOUND"

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Payroll run not found: {run_id}")


class PayrollRecordNotFoundError(NotFoundError):
    """Payroll record does not exist, or does not belong to the run."""

    code: str = "PAYROLL_RECORD_NOT_FOUND"

    def __init__(self, record_id: str, run_id: str | None = None):
        self.record_id = record_id
        self.run_id = run_id
        if run_id is None:
            super().__init__(f"Payroll record not found: {record_id}")
        else:
            super().__init__(
                f"Payroll record {record_id} not found in run {run_id}"
            )


# Versioning errors


class VersioningError(PayrollKernelError):
    """Base exception for effective-dating violations."""

    code: str = "VERSIONING_ERROR"


class DuplicateNameOrCodeError(VersioningError):
    """A structure with the same name or code already exists."""

    code: str = "DUPLICATE_NAME_OR_CODE"

    def __init__(self, name: str, code_value: str, existing_version_id: str):
        self.name = name
        self.code_value = code_value
        self.existing_version_id = existing_version_id
        super().__init__(
            f"Structure name '{name}' or code '{code_value}' already used "
            f"by version {existing_version_id}"
        )


class OverlappingRangeError(VersioningError):
    """
    New effective range overlaps an existing one.

    Names the conflicting row and its range so the caller can correct
    the input.
    """

    code: str = "OVERLAPPING_RANGE"

    def __init__(
        self,
        conflicting_version_id: str,
        conflicting_from: str,
        conflicting_to: str | None,
        new_from: str,
        new_to: str | None,
    ):
        self.conflicting_version_id = conflicting_version_id
        self.conflicting_from = conflicting_from
        self.conflicting_to = conflicting_to
        self.new_from = new_from
        self.new_to = new_to
        super().__init__(
            f"Range [{new_from}, {new_to or 'open'}) overlaps "
            f"{conflicting_version_id} [{conflicting_from}, {conflicting_to or 'open'})"
        )


class InvertedRangeError(VersioningError):
    """effective_to is on or before effective_from."""

    code: str = "INVERTED_RANGE"

    def __init__(self, effective_from: str, effective_to: str):
        self.effective_from = effective_from
        self.effective_to = effective_to
        super().__init__(
            f"effective_to {effective_to} must be after effective_from {effective_from}"
        )


class NonContiguousRangeError(VersioningError):
    """New range would leave a gap between neighbouring versions."""

    code: str = "NON_CONTIGUOUS_RANGE"

    def __init__(self, neighbour_version_id: str, gap_from: str, gap_to: str):
        self.neighbour_version_id = neighbour_version_id
        self.gap_from = gap_from
        self.gap_to = gap_to
        super().__init__(
            f"Range leaves a gap [{gap_from}, {gap_to}) next to version "
            f"{neighbour_version_id}"
        )


# Assignment errors


class AssignmentError(PayrollKernelError):
    """Base exception for employee assignment errors."""

    code: str = "ASSIGNMENT_ERROR"


class StructureNotActiveForDateError(AssignmentError):
    """The structure version is not effective on the assignment date."""

    code: str = "STRUCTURE_NOT_ACTIVE_FOR_DATE"

    def __init__(
        self,
        version_id: str,
        as_of: str,
        effective_from: str,
        effective_to: str | None,
    ):
        self.version_id = version_id
        self.as_of = as_of
        self.effective_from = effective_from
        self.effective_to = effective_to
        super().__init__(
            f"Structure version {version_id} [{effective_from}, "
            f"{effective_to or 'open'}) is not active on {as_of}"
        )


class CTCOutOfGradeRangeError(AssignmentError):
    """CTC falls outside the grade's salary bounds."""

    code: str = "CTC_OUT_OF_GRADE_RANGE"

    def __init__(
        self,
        ctc: str,
        grade_code: str,
        min_salary: str | None,
        max_salary: str | None,
    ):
        self.ctc = ctc
        self.grade_code = grade_code
        self.min_salary = min_salary
        self.max_salary = max_salary
        super().__init__(
            f"CTC {ctc} is outside grade {grade_code} range "
            f"[{min_salary or '-'}, {max_salary or '-'}]"
        )


# Component configuration errors


class ComponentConfigurationError(PayrollKernelError):
    """Base exception for structure/pay component configuration errors."""

    code: str = "COMPONENT_CONFIGURATION_ERROR"


class UnresolvedBaseReferenceError(ComponentConfigurationError):
    """A component references a name that is not evaluated before it."""

    code: str = "UNRESOLVED_BASE_REFERENCE"

    def __init__(self, component_code: str, reference: str, order: int):
        self.component_code = component_code
        self.reference = reference
        self.order = order
        super().__init__(
            f"Component {component_code} (order {order}) references "
            f"'{reference}' which is not evaluated before it"
        )


class FormulaError(ComponentConfigurationError):
    """A formula expression is malformed or uses disallowed syntax."""

    code: str = "FORMULA_ERROR"

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Invalid formula '{expression}': {reason}")


class DuplicatePayComponentError(ComponentConfigurationError):
    """A pay component with the same code already exists."""

    code: str = "DUPLICATE_PAY_COMPONENT"

    def __init__(self, component_code: str):
        self.component_code = component_code
        super().__init__(f"Pay component code already exists: {component_code}")


class InvalidComponentError(ComponentConfigurationError):
    """A structure component is missing what its calculation mode needs."""

    code: str = "INVALID_COMPONENT"

    def __init__(self, component_code: str, reason: str):
        self.component_code = component_code
        self.reason = reason
        super().__init__(f"Invalid component {component_code}: {reason}")


class InvalidGradeBoundsError(ComponentConfigurationError):
    """Grade minimum salary exceeds maximum salary."""

    code: str = "INVALID_GRADE_BOUNDS"

    def __init__(self, grade_code: str, min_salary: str, max_salary: str):
        self.grade_code = grade_code
        self.min_salary = min_salary
        self.max_salary = max_salary
        super().__init__(
            f"Grade {grade_code} min {min_salary} exceeds max {max_salary}"
        )


# Payroll run errors


class PayrollRunError(PayrollKernelError):
    """Base exception for payroll run errors."""

    code: str = "PAYROLL_RUN_ERROR"


class DuplicatePeriodError(PayrollRunError):
    """A payroll run already exists for the period."""

    code: str = "DUPLICATE_PERIOD"

    def __init__(self, period: str, existing_run_id: str | None = None):
        self.period = period
        self.existing_run_id = existing_run_id
        super().__init__(f"Payroll run already exists for period {period}")


class InvalidRunStateError(PayrollRunError):
    """Operation attempted against a run in the wrong status."""

    code: str = "INVALID_RUN_STATE"

    def __init__(self, run_id: str, current_status: str, action: str):
        self.run_id = run_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} payroll run {run_id} in status {current_status}"
        )


class NoEmployeesToProcessError(PayrollRunError):
    """The run cohort is empty."""

    code: str = "NO_EMPLOYEES_TO_PROCESS"

    def __init__(self, period: str):
        self.period = period
        super().__init__(f"No employees to process for period {period}")


class InvalidPeriodError(PayrollRunError):
    """Period string is not a valid YYYY-MM month."""

    code: str = "INVALID_PERIOD"

    def __init__(self, period: str):
        self.period = period
        super().__init__(f"Invalid payroll period '{period}', expected YYYY-MM")


class InvalidAdjustmentError(PayrollRunError):
    """Adjustment type or amount is not acceptable."""

    code: str = "INVALID_ADJUSTMENT"

    def __init__(self, record_id: str, reason: str):
        self.record_id = record_id
        self.reason = reason
        super().__init__(f"Invalid adjustment for record {record_id}: {reason}")


# Attendance errors


class AttendanceError(PayrollKernelError):
    """Base exception for attendance fact errors."""

    code: str = "ATTENDANCE_ERROR"


class InvalidAttendanceError(AttendanceError):
    """Attendance facts are internally inconsistent."""

    code: str = "INVALID_ATTENDANCE"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid attendance facts: {reason}")


# Audit errors


class AuditError(PayrollKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_event_id: str, expected_hash: str, actual_hash: str):
        self.audit_event_id = audit_event_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_event_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )
