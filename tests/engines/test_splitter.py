"""
Tests for RequestSplitter.

Covers:
- Whole and partial splits
- Quantity conservation and item id preservation
- The justification gate
- Kit atomicity
- State checks and failure atomicity
- Child request numbering
"""

from dataclasses import replace
from datetime import date
from types import MappingProxyType
from uuid import uuid4

import pytest

from loan_engines.numbering import RequestNumberAllocator
from loan_engines.selection import Selection
from loan_engines.splitter import RequestSplitter, SplitResult
from loan_kernel.domain.clock import DeterministicClock
from loan_kernel.domain.models import (
    Article,
    LoanItem,
    LoanRequest,
    RequestStatus,
)
from loan_kernel.exceptions import (
    EmptySelectionError,
    IllegalTransitionError,
    KitSelectionError,
    MissingJustificationError,
    OutOfRangeError,
    UnknownItemError,
)


def _request(number="LR-2025-001", quantities=(5, 2), status=RequestStatus.APPROVED):
    items = tuple(
        LoanItem(id=uuid4(), article=Article(f"BIN-{i}", f"Article {i}"), requested_quantity=q)
        for i, q in enumerate(quantities)
    )
    return LoanRequest(
        id=uuid4(),
        request_number=number,
        requester="Ana Lopez",
        department="Engineering",
        project="Test Bench",
        requested_date=date(2025, 1, 15),
        expected_return_date=date(2025, 1, 29),
        status=status,
        items=items,
    )


def _selection(request, quantities, note=""):
    return Selection(
        request_id=request.id,
        quantities=MappingProxyType(dict(quantities)),
        justification=note,
        has_quantity_change=any(
            q != request.item(i).requested_quantity for i, q in quantities.items()
        ),
    )


class TestSplit:
    """Tests for successful splits."""

    def setup_method(self):
        self.clock = DeterministicClock()
        self.splitter = RequestSplitter(RequestNumberAllocator(), clock=self.clock)
        self.request = _request()
        self.first, self.second = self.request.items

    def test_whole_request_moves(self):
        selection = _selection(self.request, {self.first.id: 5, self.second.id: 2})

        result = self.splitter.split(self.request, selection, actor="packer")

        assert isinstance(result, SplitResult)
        assert result.remaining is None
        assert result.moved.id != self.request.id
        assert result.moved.status is RequestStatus.PACKED
        assert result.moved.parent_request_id == self.request.id
        assert result.moved.processed_by == "packer"
        assert [i.id for i in result.moved.items] == [self.first.id, self.second.id]

    def test_unselected_item_stays_whole(self):
        selection = _selection(self.request, {self.second.id: 2})

        result = self.splitter.split(self.request, selection)

        assert [i.id for i in result.moved.items] == [self.second.id]
        assert result.remaining.id == self.request.id
        assert result.remaining.request_number == self.request.request_number
        assert result.remaining.status is RequestStatus.APPROVED
        assert result.remaining.items == (self.first,)

    def test_partial_quantity_split_with_note(self):
        selection = _selection(self.request, {self.first.id: 3}, note="two units in calibration")

        result = self.splitter.split(self.request, selection)

        assert result.moved.item(self.first.id).requested_quantity == 3
        assert result.moved.quantity_note == "two units in calibration"
        assert result.remaining.item(self.first.id).requested_quantity == 2
        assert result.remaining.item(self.second.id).requested_quantity == 2

    def test_quantities_conserved(self):
        selection = _selection(
            self.request, {self.first.id: 4, self.second.id: 1}, note="short stock",
        )

        result = self.splitter.split(self.request, selection)

        for original in self.request.items:
            moved = result.moved.item(original.id)
            left = result.remaining.item(original.id)
            total = (moved.requested_quantity if moved else 0) + (left.requested_quantity if left else 0)
            assert total == original.requested_quantity

    def test_zero_quantity_item_not_moved(self):
        selection = _selection(self.request, {self.first.id: 5, self.second.id: 0})

        result = self.splitter.split(self.request, selection)

        assert result.moved.item(self.second.id) is None
        assert result.remaining.items == (self.second,)

    def test_split_from_ready_for_packing(self):
        request = replace(self.request, status=RequestStatus.READY_FOR_PACKING)
        selection = _selection(request, {self.first.id: 5})

        result = self.splitter.split(request, selection)

        assert result.moved.status is RequestStatus.PACKED
        assert result.remaining.status is RequestStatus.READY_FOR_PACKING

    def test_pack_transition_recorded(self):
        selection = _selection(self.request, {self.first.id: 5, self.second.id: 2})

        result = self.splitter.split(self.request, selection, actor="packer")

        last = result.moved.transitions[-1]
        assert last.from_status is RequestStatus.APPROVED
        assert last.to_status is RequestStatus.PACKED
        assert last.action == "pack"
        assert last.actor == "packer"
        assert last.at == self.clock.now()

    def test_justification_not_required_when_disabled(self):
        splitter = RequestSplitter(
            RequestNumberAllocator(), clock=self.clock, require_justification=False,
        )
        selection = _selection(self.request, {self.first.id: 1})

        result = splitter.split(self.request, selection)

        assert result.moved.total_requested == 1


class TestChildNumbering:
    """Split-off requests get fresh, never-reused numbers."""

    def setup_method(self):
        self.splitter = RequestSplitter(RequestNumberAllocator(), clock=DeterministicClock())

    def test_successive_splits_get_increasing_numbers(self):
        request = _request()
        first, second = request.items

        r1 = self.splitter.split(request, _selection(request, {first.id: 5}))
        r2 = self.splitter.split(r1.remaining, _selection(r1.remaining, {second.id: 2}))

        assert r1.moved.request_number == "LR-2025-001-P1"
        assert r2.moved.request_number == "LR-2025-001-P2"
        assert r2.remaining is None


class TestSplitRejections:
    """Invalid selections raise typed errors and change nothing."""

    def setup_method(self):
        self.allocator = RequestNumberAllocator()
        self.splitter = RequestSplitter(self.allocator, clock=DeterministicClock())
        self.request = _request()
        self.first, self.second = self.request.items

    def test_empty_selection(self):
        with pytest.raises(EmptySelectionError):
            self.splitter.split(self.request, _selection(self.request, {}))

    def test_all_zero_selection_is_empty(self):
        with pytest.raises(EmptySelectionError):
            self.splitter.split(self.request, _selection(self.request, {self.first.id: 0}))

    def test_reduced_quantity_needs_note(self):
        selection = _selection(self.request, {self.first.id: 3, self.second.id: 2})

        with pytest.raises(MissingJustificationError) as exc_info:
            self.splitter.split(self.request, selection)

        assert exc_info.value.item_ids == (self.first.id,)

    def test_blank_note_is_missing(self):
        selection = _selection(self.request, {self.first.id: 3}, note="   ")

        with pytest.raises(MissingJustificationError):
            self.splitter.split(self.request, selection)

    def test_unknown_item(self):
        selection = Selection(
            request_id=self.request.id,
            quantities=MappingProxyType({uuid4(): 1}),
        )
        with pytest.raises(UnknownItemError):
            self.splitter.split(self.request, selection)

    def test_quantity_above_requested(self):
        selection = Selection(
            request_id=self.request.id,
            quantities=MappingProxyType({self.first.id: 6}),
        )
        with pytest.raises(OutOfRangeError):
            self.splitter.split(self.request, selection)

    @pytest.mark.parametrize(
        "status",
        [
            RequestStatus.PENDING_APPROVAL,
            RequestStatus.PACKED,
            RequestStatus.PENDING_TO_RETURN,
            RequestStatus.COMPLETED,
            RequestStatus.CANCELLED,
        ],
    )
    def test_wrong_state(self, status):
        request = replace(self.request, status=status)

        with pytest.raises(IllegalTransitionError) as exc_info:
            self.splitter.split(request, _selection(request, {self.first.id: 5}))

        assert exc_info.value.current_status == status.value
        assert exc_info.value.requested_status == "packed"

    def test_failure_consumes_no_number(self):
        with pytest.raises(MissingJustificationError):
            self.splitter.split(self.request, _selection(self.request, {self.first.id: 1}))

        result = self.splitter.split(self.request, _selection(self.request, {self.first.id: 5}))
        assert result.moved.request_number == "LR-2025-001-P1"

    def test_selection_for_other_request(self):
        other = _request(number="LR-2025-002")
        with pytest.raises(ValueError):
            self.splitter.split(self.request, _selection(other, {}))


class TestKitSplit:
    """Kit orders are packed whole."""

    def setup_method(self):
        self.splitter = RequestSplitter(RequestNumberAllocator(), clock=DeterministicClock())
        self.kit = _request(number="KIT-2025-001", quantities=(1, 1, 3))

    def test_whole_kit_moves(self):
        selection = _selection(self.kit, {i.id: i.requested_quantity for i in self.kit.items})

        result = self.splitter.split(self.kit, selection)

        assert result.remaining is None
        assert result.moved.request_number == "KIT-2025-001-P1"
        assert result.moved.total_requested == 5

    def test_missing_kit_item_rejected(self):
        selection = _selection(self.kit, {self.kit.items[0].id: 1})

        with pytest.raises(KitSelectionError):
            self.splitter.split(self.kit, selection)

    def test_reduced_kit_quantity_rejected_even_with_note(self):
        quantities = {i.id: i.requested_quantity for i in self.kit.items}
        quantities[self.kit.items[2].id] = 2

        with pytest.raises(KitSelectionError):
            self.splitter.split(self.kit, _selection(self.kit, quantities, note="short"))
