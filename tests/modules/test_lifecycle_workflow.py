"""
Tests for the loan request lifecycle table.

Verifies the declarative LOAN_REQUEST_WORKFLOW and apply_transition: every
listed move is allowed, everything else is refused, and reserved moves are
only available to the component that owns them.
"""

from datetime import UTC, date, datetime
from uuid import uuid4

import pytest

from loan_kernel.domain.lifecycle import (
    ALL_RETURNED,
    LOAN_REQUEST_WORKFLOW,
    RECONCILER,
    SELECTION_SPLIT,
    SPLITTER,
    allowed_targets,
    apply_transition,
    check_transition,
)
from loan_kernel.domain.models import Article, LoanItem, LoanRequest, RequestStatus
from loan_kernel.domain.workflow import Transition, Workflow
from loan_kernel.exceptions import IllegalTransitionError

AT = datetime(2025, 1, 15, 9, 0, tzinfo=UTC)

PUBLIC_MOVES = {
    (RequestStatus.PENDING_APPROVAL, RequestStatus.APPROVED),
    (RequestStatus.PENDING_APPROVAL, RequestStatus.REJECTED),
    (RequestStatus.PENDING_APPROVAL, RequestStatus.CANCELLED),
    (RequestStatus.APPROVED, RequestStatus.READY_FOR_PACKING),
    (RequestStatus.APPROVED, RequestStatus.REJECTED),
    (RequestStatus.APPROVED, RequestStatus.CANCELLED),
    (RequestStatus.PACKED, RequestStatus.PENDING_TO_RETURN),
}

RESERVED_MOVES = {
    (RequestStatus.APPROVED, RequestStatus.PACKED): SPLITTER,
    (RequestStatus.READY_FOR_PACKING, RequestStatus.PACKED): SPLITTER,
    (RequestStatus.PENDING_TO_RETURN, RequestStatus.RETURNED): RECONCILER,
    (RequestStatus.RETURNED, RequestStatus.COMPLETED): RECONCILER,
}


def _request(status):
    return LoanRequest(
        id=uuid4(),
        request_number="LR-2025-001",
        requester="Ana Lopez",
        department="Engineering",
        project="Test Bench",
        requested_date=date(2025, 1, 15),
        expected_return_date=date(2025, 1, 29),
        status=status,
        items=(LoanItem(id=uuid4(), article=Article("BIN-1", "Thing"), requested_quantity=1),),
    )


class TestWorkflowDefinition:
    """The table itself."""

    def test_states_are_the_status_vocabulary(self):
        assert set(LOAN_REQUEST_WORKFLOW.states) == {s.value for s in RequestStatus}

    def test_initial_state(self):
        assert LOAN_REQUEST_WORKFLOW.initial_state == "pending-approval"

    def test_terminal_states_have_no_exits(self):
        for state in LOAN_REQUEST_WORKFLOW.terminal_states:
            assert LOAN_REQUEST_WORKFLOW.targets(state) == ()

    def test_table_matches_expected_moves(self):
        listed = {
            (RequestStatus(t.from_state), RequestStatus(t.to_state))
            for t in LOAN_REQUEST_WORKFLOW.transitions
        }
        assert listed == PUBLIC_MOVES | set(RESERVED_MOVES)

    def test_unknown_state_rejected_at_definition(self):
        with pytest.raises(ValueError):
            Workflow(
                name="broken",
                description="",
                initial_state="a",
                states=("a",),
                transitions=(Transition("a", "b", action="go"),),
            )


class TestGuards:
    """Guards describe reserved moves; the owning engine enforces them."""

    def test_guards_attached_to_reserved_moves(self):
        guards = {(t.from_state, t.to_state): t.guard for t in LOAN_REQUEST_WORKFLOW.transitions}

        assert guards[("approved", "packed")] is SELECTION_SPLIT
        assert guards[("ready-for-packing", "packed")] is SELECTION_SPLIT
        assert guards[("pending-to-return", "returned")] is ALL_RETURNED
        assert guards[("packed", "pending-to-return")] is None

    def test_check_transition_gates_on_owner_only(self):
        request = _request(RequestStatus.PENDING_TO_RETURN)

        transition = check_transition(request, RequestStatus.RETURNED, fired_by=RECONCILER)

        assert transition.guard is ALL_RETURNED
        with pytest.raises(IllegalTransitionError):
            check_transition(request, RequestStatus.RETURNED)


class TestApplyTransition:
    """Every pair of statuses is either allowed or refused."""

    @pytest.mark.parametrize("source", list(RequestStatus))
    @pytest.mark.parametrize("target", list(RequestStatus))
    def test_public_matrix(self, source, target):
        request = _request(source)
        if (source, target) in PUBLIC_MOVES:
            moved = apply_transition(request, target, actor="ops", at=AT)
            assert moved.status is target
        else:
            with pytest.raises(IllegalTransitionError) as exc_info:
                apply_transition(request, target, actor="ops", at=AT)
            assert exc_info.value.current_status == source.value
            assert exc_info.value.requested_status == target.value
            assert request.status is source

    @pytest.mark.parametrize(("move", "owner"), list(RESERVED_MOVES.items()))
    def test_reserved_moves_need_owner(self, move, owner):
        source, target = move
        request = _request(source)

        with pytest.raises(IllegalTransitionError) as exc_info:
            apply_transition(request, target, actor="ops", at=AT)
        assert "reserved" in exc_info.value.reason

        moved = apply_transition(request, target, actor="ops", at=AT, fired_by=owner)
        assert moved.status is target

    def test_wrong_owner_refused(self):
        request = _request(RequestStatus.APPROVED)

        with pytest.raises(IllegalTransitionError):
            apply_transition(request, RequestStatus.PACKED, actor="ops", at=AT, fired_by=RECONCILER)

    def test_audit_record_appended(self):
        request = _request(RequestStatus.PENDING_APPROVAL)

        moved = apply_transition(
            request, RequestStatus.APPROVED, actor="boss", at=AT, note="ok", approved_by="boss",
        )

        (record,) = moved.transitions
        assert record.from_status is RequestStatus.PENDING_APPROVAL
        assert record.to_status is RequestStatus.APPROVED
        assert record.action == "approve"
        assert record.actor == "boss"
        assert record.note == "ok"
        assert moved.approved_by == "boss"
        assert request.transitions == ()

    def test_allowed_targets(self):
        assert set(allowed_targets(RequestStatus.APPROVED)) == {
            RequestStatus.READY_FOR_PACKING,
            RequestStatus.REJECTED,
            RequestStatus.CANCELLED,
        }
        assert RequestStatus.PACKED in allowed_targets(RequestStatus.APPROVED, fired_by=SPLITTER)
