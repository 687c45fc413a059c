"""
loan_engines.splitter -- Split a request at packing time.

Responsibility:
    Turn an operator Selection into two requests: the *moved* request that
    goes to the packing list (status ``packed``) and the *remaining*
    request that stays where it was.  This is the only component allowed to
    fire the ``pack`` transition.

Architecture position:
    Engines -- depends on loan_kernel only.  Request numbers come from an
    injected RequestNumberAllocator, time from an injected Clock.

Invariants enforced:
    - Split conservation: for every item, moved + remaining == original.
    - The union of item ids across both results is the original id set.
    - Justification gate: a reduced quantity needs a non-blank note.
    - Kit atomicity: kit orders are packed whole or not at all.
    - Child request numbers are never reused.

Failure modes:
    - IllegalTransitionError when the request cannot be packed.
    - UnknownItemError for selected ids not on the request.
    - OutOfRangeError for a chosen quantity outside 0..requested.
    - EmptySelectionError when nothing is selected with quantity > 0.
    - KitSelectionError for a partial kit selection.
    - MissingJustificationError for an unexplained reduced quantity.
    Every failure leaves the input request untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from uuid import uuid4

from loan_engines.numbering import RequestNumberAllocator
from loan_engines.selection import Selection
from loan_engines.tracer import traced_engine
from loan_kernel.domain.clock import Clock, SystemClock
from loan_kernel.domain.lifecycle import SPLITTER, apply_transition, check_transition
from loan_kernel.domain.models import KIT_PREFIX, LoanItem, LoanRequest, RequestStatus
from loan_kernel.exceptions import (
    EmptySelectionError,
    KitSelectionError,
    MissingJustificationError,
    OutOfRangeError,
    UnknownItemError,
)
from loan_kernel.logging_config import get_logger

logger = get_logger("engines.splitter")


@dataclass(frozen=True)
class SplitResult:
    """Outcome of a split. ``remaining`` is None when everything moved."""
    moved: LoanRequest
    remaining: LoanRequest | None


class RequestSplitter:
    """Moves selected items and quantities into a new packed request."""

    def __init__(
        self,
        allocator: RequestNumberAllocator,
        clock: Clock | None = None,
        kit_prefix: str = KIT_PREFIX,
        require_justification: bool = True,
    ) -> None:
        self._allocator = allocator
        self._clock = clock or SystemClock()
        self._kit_prefix = kit_prefix
        self._require_justification = require_justification

    @traced_engine("splitter", "1.0", fingerprint_fields=("request", "selection"))
    def split(
        self,
        request: LoanRequest,
        selection: Selection,
        actor: str = "system",
    ) -> SplitResult:
        if selection.request_id != request.id:
            raise ValueError(
                f"selection for {selection.request_id} applied to request {request.id}"
            )
        check_transition(request, RequestStatus.PACKED, fired_by=SPLITTER)

        moved_quantities = self._validate(request, selection)
        note = selection.justification.strip()

        moved_items: list[LoanItem] = []
        remaining_items: list[LoanItem] = []
        for item in request.items:
            quantity = moved_quantities.get(item.id, 0)
            if quantity:
                moved_items.append(replace(item, requested_quantity=quantity))
            left = item.requested_quantity - quantity
            if left:
                remaining_items.append(replace(item, requested_quantity=left))

        child = replace(
            request,
            id=uuid4(),
            request_number=self._allocator.next_child_number(request.request_number),
            items=tuple(moved_items),
            parent_request_id=request.id,
            quantity_note=note,
        )
        moved = apply_transition(
            child,
            RequestStatus.PACKED,
            actor=actor,
            at=self._clock.now(),
            note=note,
            fired_by=SPLITTER,
            processed_by=actor,
        )
        remaining = replace(request, items=tuple(remaining_items)) if remaining_items else None

        logger.info(
            "request_split_completed",
            extra={
                "request_id": str(request.id),
                "request_number": request.request_number,
                "moved_request_id": str(moved.id),
                "moved_request_number": moved.request_number,
                "moved_item_count": len(moved_items),
                "moved_quantity": moved.total_requested,
                "remaining_quantity": remaining.total_requested if remaining else 0,
                "has_quantity_change": selection.has_quantity_change,
            },
        )
        return SplitResult(moved=moved, remaining=remaining)

    def _validate(self, request: LoanRequest, selection: Selection) -> dict:
        """Check the selection against the request; return item id -> moved qty (> 0)."""
        moved: dict = {}
        for item_id, quantity in selection.quantities.items():
            item = request.item(item_id)
            if item is None:
                raise UnknownItemError(request.id, item_id)
            if quantity < 0 or quantity > item.requested_quantity:
                raise OutOfRangeError(
                    request_id=request.id,
                    item_id=item_id,
                    value=quantity,
                    minimum=0,
                    maximum=item.requested_quantity,
                )
            if quantity > 0:
                moved[item_id] = quantity

        if not moved:
            raise EmptySelectionError(request.id)

        if request.is_kit_order(self._kit_prefix):
            whole = all(
                moved.get(item.id) == item.requested_quantity for item in request.items
            )
            if not whole:
                raise KitSelectionError(
                    request.id,
                    request.request_number,
                    "kit orders must be packed whole",
                )

        reduced = tuple(
            item.id
            for item in request.items
            if item.id in moved and moved[item.id] != item.requested_quantity
        )
        if reduced and self._require_justification and not selection.justification.strip():
            logger.warning(
                "split_rejected_missing_justification",
                extra={
                    "request_id": str(request.id),
                    "reduced_item_count": len(reduced),
                },
            )
            raise MissingJustificationError(request.id, reduced)
        return moved
