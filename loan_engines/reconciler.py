"""
loan_engines.reconciler -- Partial return reconciliation.

Responsibility:
    Apply PartialReturnRecords to a delivered request: accumulate good and
    defective quantities per item, keep the append-only return history and
    settle the request (``pending-to-return -> returned -> completed``) once
    every non-consumable item is back.  This is the only component allowed
    to fire the ``settle`` and ``complete`` transitions.

Architecture position:
    Engines -- depends on loan_kernel only.  Owns the return history keyed
    by request id; the request itself stays owned by RequestCatalog.

Invariants enforced:
    - No over-return: returned_good + returned_defective <= requested.
    - Idempotency: a record id is applied at most once per request.
    - Order independence: outstanding quantity depends only on the set of
      applied records, not on their order.
    - Consumables are settled at delivery and never take part in returns.

Failure modes (checked in this order, nothing is mutated on failure):
    - DuplicateReturnError: record id already in the request's history.
    - IllegalTransitionError: request is not pending-to-return.
    - InvalidReturnError: blank returned_by, no entries, zero-total entry.
    - OutOfRangeError: negative quantity on an entry.
    - UnknownItemError: entry for an item not on the request.
    - ConsumableReturnError: entry for a consumable item.
    - OverReturnError: cumulative return above the requested quantity.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from uuid import UUID

from loan_engines.tracer import traced_engine
from loan_kernel.domain.clock import Clock, SystemClock
from loan_kernel.domain.lifecycle import RECONCILER, apply_transition
from loan_kernel.domain.models import (
    ItemStatus,
    LoanItem,
    LoanRequest,
    PartialReturnRecord,
    RequestStatus,
)
from loan_kernel.exceptions import (
    ConsumableReturnError,
    DuplicateReturnError,
    IllegalTransitionError,
    InvalidReturnError,
    OutOfRangeError,
    OverReturnError,
    UnknownItemError,
)
from loan_kernel.logging_config import get_logger

logger = get_logger("engines.reconciler")


@dataclass(frozen=True)
class ReturnSummary:
    """Totals across every return recorded for a request."""
    request_id: UUID
    record_count: int
    total_good: int
    total_defective: int
    outstanding: Mapping[UUID, int] = field(default_factory=dict)

    @property
    def total_returned(self) -> int:
        return self.total_good + self.total_defective

    @property
    def total_outstanding(self) -> int:
        return sum(self.outstanding.values())

    @property
    def is_complete(self) -> bool:
        return self.total_outstanding == 0


class ReturnReconciler:
    """Applies partial returns and owns the return history."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._history: dict[UUID, list[PartialReturnRecord]] = defaultdict(list)

    @traced_engine("reconciler", "1.0", fingerprint_fields=("request", "record"))
    def record_return(
        self,
        request: LoanRequest,
        record: PartialReturnRecord,
    ) -> LoanRequest:
        """
        Apply ``record`` to ``request`` and return the updated request.

        The record is appended to the history only when the whole record is
        valid. The request is settled in the same call when nothing remains
        outstanding.
        """
        with self._lock:
            if any(r.id == record.id for r in self._history.get(request.id, ())):
                logger.warning(
                    "return_rejected_duplicate",
                    extra={"request_id": str(request.id), "return_id": str(record.id)},
                )
                raise DuplicateReturnError(request.id, record.id)

        if request.status is not RequestStatus.PENDING_TO_RETURN:
            raise IllegalTransitionError(
                request.id,
                request.status.value,
                RequestStatus.RETURNED.value,
                reason="returns are only accepted while pending-to-return",
            )

        attempted = self._validate(request, record)

        items = tuple(self._apply(item, attempted.get(item.id)) for item in request.items)
        updated = replace(request, items=items)
        updated = self._settle(updated, actor=record.processed_by)

        with self._lock:
            # Re-check under the lock; a concurrent caller may have won.
            if any(r.id == record.id for r in self._history.get(request.id, ())):
                raise DuplicateReturnError(request.id, record.id)
            self._history[request.id].append(record)

        logger.info(
            "return_recorded",
            extra={
                "request_id": str(request.id),
                "request_number": request.request_number,
                "return_id": str(record.id),
                "entry_count": len(record.returned_items),
                "quantity_good": sum(e.quantity_good for e in record.returned_items),
                "quantity_defective": sum(e.quantity_defective for e in record.returned_items),
                "outstanding": updated.total_outstanding,
                "status": updated.status.value,
            },
        )
        return updated

    def settle_if_reconciled(self, request: LoanRequest, actor: str) -> LoanRequest:
        """Settle a pending-to-return request with nothing outstanding.

        Used right after delivery, when every item is a consumable.
        """
        if request.status is not RequestStatus.PENDING_TO_RETURN:
            return request
        return self._settle(request, actor=actor)

    def outstanding(self, request: LoanRequest) -> dict[UUID, int]:
        """Outstanding quantity per non-consumable item."""
        return {
            item.id: item.outstanding_quantity
            for item in request.items
            if not item.is_consumable
        }

    def history(self, request_id: UUID) -> tuple[PartialReturnRecord, ...]:
        with self._lock:
            return tuple(self._history.get(request_id, ()))

    def summarize(self, request: LoanRequest) -> ReturnSummary:
        records = self.history(request.id)
        return ReturnSummary(
            request_id=request.id,
            record_count=len(records),
            total_good=sum(e.quantity_good for r in records for e in r.returned_items),
            total_defective=sum(e.quantity_defective for r in records for e in r.returned_items),
            outstanding=MappingProxyType(self.outstanding(request)),
        )

    def _validate(self, request: LoanRequest, record: PartialReturnRecord) -> dict[UUID, tuple[int, int]]:
        """Return item id -> (good, defective) summed across the record's entries."""
        if not record.returned_by.strip():
            raise InvalidReturnError(request.id, record.id, "returned_by is required")
        if not record.returned_items:
            raise InvalidReturnError(request.id, record.id, "no items returned")

        attempted: dict[UUID, tuple[int, int]] = {}
        for entry in record.returned_items:
            item = request.item(entry.item_id)
            for value in (entry.quantity_good, entry.quantity_defective):
                if value < 0:
                    raise OutOfRangeError(
                        request_id=request.id,
                        item_id=entry.item_id,
                        value=value,
                        minimum=0,
                        maximum=item.outstanding_quantity if item else 0,
                    )
            if entry.total == 0:
                raise InvalidReturnError(
                    request.id,
                    record.id,
                    f"entry for item {entry.item_id} returns nothing",
                )
            if item is None:
                raise UnknownItemError(request.id, entry.item_id)
            if item.is_consumable:
                raise ConsumableReturnError(request.id, entry.item_id)
            good, defective = attempted.get(entry.item_id, (0, 0))
            attempted[entry.item_id] = (good + entry.quantity_good, defective + entry.quantity_defective)

        for item_id, (good, defective) in attempted.items():
            item = request.item(item_id)
            if item.returned_total + good + defective > item.requested_quantity:
                logger.warning(
                    "return_rejected_over_return",
                    extra={
                        "request_id": str(request.id),
                        "item_id": str(item_id),
                        "requested_quantity": item.requested_quantity,
                        "already_returned": item.returned_total,
                        "attempted": good + defective,
                    },
                )
                raise OverReturnError(
                    request_id=request.id,
                    item_id=item_id,
                    requested_quantity=item.requested_quantity,
                    already_returned=item.returned_total,
                    attempted=good + defective,
                )
        return attempted

    @staticmethod
    def _apply(item: LoanItem, quantities: tuple[int, int] | None) -> LoanItem:
        if quantities is None:
            return item
        good, defective = quantities
        updated = replace(
            item,
            returned_good=item.returned_good + good,
            returned_defective=item.returned_defective + defective,
        )
        status = ItemStatus.RETURNED if updated.is_fully_reconciled else ItemStatus.PARTIAL
        return replace(updated, status=status)

    def _settle(self, request: LoanRequest, actor: str) -> LoanRequest:
        if request.total_outstanding:
            return request
        now = self._clock.now()
        request = apply_transition(
            request, RequestStatus.RETURNED, actor=actor, at=now, fired_by=RECONCILER,
        )
        request = apply_transition(
            request, RequestStatus.COMPLETED, actor=actor, at=now, fired_by=RECONCILER,
        )
        logger.info(
            "request_settled",
            extra={
                "request_id": str(request.id),
                "request_number": request.request_number,
            },
        )
        return request
