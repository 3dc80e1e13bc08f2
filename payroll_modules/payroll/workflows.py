"""Payroll Workflows.

State machine for payroll run processing.
"""

from payroll_kernel.domain.workflow import Guard, Transition, Workflow
from payroll_kernel.logging_config import get_logger
from payroll_modules.payroll.models import PayrollRunStatus

logger = get_logger("modules.payroll.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

CALCULATION_COMPLETE = Guard(
    name="calculation_complete",
    description="At least one employee calculated without errors",
)

APPROVAL_OBTAINED = Guard(
    name="approval_obtained",
    description="Approver reviewed the calculated records",
)

logger.info(
    "payroll_workflow_guards_defined",
    extra={
        "guards": [
            CALCULATION_COMPLETE.name,
            APPROVAL_OBTAINED.name,
        ],
    },
)


# -----------------------------------------------------------------------------
# Payroll Run Workflow
# -----------------------------------------------------------------------------

_DRAFT = PayrollRunStatus.DRAFT.value
_COMPLETED = PayrollRunStatus.COMPLETED.value
_APPROVED = PayrollRunStatus.APPROVED.value
_FAILED = PayrollRunStatus.FAILED.value

PAYROLL_RUN_WORKFLOW = Workflow(
    name="payroll_run",
    description="Payroll run lifecycle from calculation to approval",
    initial_state=_DRAFT,
    states=(_DRAFT, _COMPLETED, _APPROVED, _FAILED),
    transitions=(
        Transition(_DRAFT, _COMPLETED, action="calculate", guard=CALCULATION_COMPLETE),
        Transition(_DRAFT, _FAILED, action="fail"),
        Transition(_COMPLETED, _APPROVED, action="approve", guard=APPROVAL_OBTAINED),
        Transition(_COMPLETED, _FAILED, action="reject"),
        Transition(_FAILED, _DRAFT, action="retry"),
    ),
    terminal_states=(_APPROVED,),
)

logger.info(
    "payroll_workflow_defined",
    extra={
        "workflow": PAYROLL_RUN_WORKFLOW.name,
        "states": list(PAYROLL_RUN_WORKFLOW.states),
        "transitions": len(PAYROLL_RUN_WORKFLOW.transitions),
    },
)
