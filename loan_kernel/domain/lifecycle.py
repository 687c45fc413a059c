"""
Loan Request Lifecycle.

The state machine every LoanRequest follows, and the single function that
moves a request along it. Engines and the controller both go through
``apply_transition`` so the audit trail is written in one place.
"""

from dataclasses import replace
from datetime import datetime

from loan_kernel.domain.models import LoanRequest, RequestStatus, TransitionRecord
from loan_kernel.domain.workflow import Guard, Transition, Workflow
from loan_kernel.exceptions import IllegalTransitionError
from loan_kernel.logging_config import get_logger

logger = get_logger("domain.lifecycle")

# Components allowed to fire reserved transitions.
SPLITTER = "request_splitter"
RECONCILER = "return_reconciler"


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

# Guards label the condition a reserved transition stands for. They are not
# evaluated here: the owning engine checks the condition before it fires the
# move, and check_transition only enforces reserved_for.

SELECTION_SPLIT = Guard(
    name="selection_split",
    description="Selected items were split off into their own packed request",
)

ALL_RETURNED = Guard(
    name="all_returned",
    description="Every non-consumable item is fully reconciled",
)


# -----------------------------------------------------------------------------
# Loan Request Workflow
# -----------------------------------------------------------------------------

LOAN_REQUEST_WORKFLOW = Workflow(
    name="loan_request",
    description="Loan request fulfillment and return lifecycle",
    initial_state=RequestStatus.PENDING_APPROVAL.value,
    states=tuple(status.value for status in RequestStatus),
    transitions=(
        Transition("pending-approval", "approved", action="approve"),
        Transition("pending-approval", "rejected", action="reject"),
        Transition("pending-approval", "cancelled", action="cancel"),
        Transition("approved", "ready-for-packing", action="release"),
        Transition("approved", "packed", action="pack", guard=SELECTION_SPLIT, reserved_for=SPLITTER),
        Transition("approved", "rejected", action="reject"),
        Transition("approved", "cancelled", action="cancel"),
        Transition("ready-for-packing", "packed", action="pack", guard=SELECTION_SPLIT, reserved_for=SPLITTER),
        Transition("packed", "pending-to-return", action="deliver"),
        Transition("pending-to-return", "returned", action="settle", guard=ALL_RETURNED, reserved_for=RECONCILER),
        Transition("returned", "completed", action="complete", reserved_for=RECONCILER),
    ),
    terminal_states=("completed", "rejected", "cancelled"),
)

logger.info(
    "loan_request_workflow_registered",
    extra={
        "workflow_name": LOAN_REQUEST_WORKFLOW.name,
        "state_count": len(LOAN_REQUEST_WORKFLOW.states),
        "transition_count": len(LOAN_REQUEST_WORKFLOW.transitions),
        "initial_state": LOAN_REQUEST_WORKFLOW.initial_state,
    },
)


def allowed_targets(status: RequestStatus, fired_by: str | None = None) -> tuple[RequestStatus, ...]:
    """Statuses reachable from ``status`` for the given caller."""
    return tuple(
        RequestStatus(t.to_state)
        for t in LOAN_REQUEST_WORKFLOW.transitions
        if t.from_state == status.value
        and (t.reserved_for is None or t.reserved_for == fired_by)
    )


def check_transition(
    request: LoanRequest,
    to_status: RequestStatus,
    fired_by: str | None = None,
) -> Transition:
    """
    Return the table entry for the move, or raise IllegalTransitionError.

    Checks the table and ``reserved_for`` only; a transition's guard is
    descriptive and is enforced by the engine that owns the move.
    """
    transition = LOAN_REQUEST_WORKFLOW.find(request.status.value, to_status.value)
    if transition is None:
        raise IllegalTransitionError(
            request.id, request.status.value, to_status.value,
        )
    if transition.reserved_for is not None and transition.reserved_for != fired_by:
        raise IllegalTransitionError(
            request.id,
            request.status.value,
            to_status.value,
            reason=f"'{transition.action}' is reserved for {transition.reserved_for}",
        )
    return transition


def apply_transition(
    request: LoanRequest,
    to_status: RequestStatus,
    *,
    actor: str,
    at: datetime,
    note: str = "",
    fired_by: str | None = None,
    **changes,
) -> LoanRequest:
    """
    Move ``request`` to ``to_status`` and append the audit record.

    Extra keyword arguments are applied to the new instance alongside the
    status change (e.g. ``approved_by``).
    """
    transition = check_transition(request, to_status, fired_by)
    record = TransitionRecord(
        from_status=request.status,
        to_status=to_status,
        action=transition.action,
        actor=actor,
        at=at,
        note=note,
    )
    logger.info(
        "request_transitioned",
        extra={
            "request_id": str(request.id),
            "request_number": request.request_number,
            "from_status": request.status.value,
            "to_status": to_status.value,
            "action": transition.action,
            "actor": actor,
        },
    )
    return replace(
        request,
        status=to_status,
        transitions=request.transitions + (record,),
        **changes,
    )


def opening_record(status: RequestStatus, *, action: str, actor: str, at: datetime) -> TransitionRecord:
    """The first audit entry of a newly created request."""
    return TransitionRecord(
        from_status=None, to_status=status, action=action, actor=actor, at=at,
    )
