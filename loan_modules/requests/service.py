"""
Loan Request Lifecycle Service (``loan_modules.requests.service``).

Responsibility
--------------
Orchestrates the request lifecycle by composing the engines
(``ItemSelectionTracker``, ``RequestSplitter``, ``ReturnReconciler``,
``KitOrderFactory``) with the ``RequestCatalog``.  This is a **thin glue
layer**: the transition table lives in ``loan_kernel.domain.lifecycle``,
the quantity rules in the engines.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper.

1. Looks the request up in the catalog under its per-id lock.
2. Delegates the change to an engine or to ``apply_transition``.
3. Stores the result back in the catalog before releasing the lock.

Invariants
----------
- Single writer per request id: every mutating method holds
  ``catalog.lock_for(request_id)``.
- ``pack`` and settlement are only reachable through the splitter and the
  reconciler; ``transition()`` refuses reserved actions.
- Any failure leaves the stored request exactly as it was.

Failure Modes
-------------
- ``RequestNotFoundError`` for unknown ids.
- ``IllegalTransitionError`` for moves outside the lifecycle table.
- Engine errors (selection, split, return) propagate unchanged.

Usage::

    controller = LifecycleController(config=LoanRequestConfig.with_defaults())
    request = controller.create_request(
        requester="Ana", department="Lab", project="P-1",
        expected_return_date=date(2025, 2, 1),
        lines=[RequestLine(article, 3)],
    )
    controller.approve(request.id, actor="supervisor")
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import date
from uuid import UUID, uuid4

from loan_engines.kit_factory import KitOrderFactory
from loan_engines.numbering import RequestNumberAllocator
from loan_engines.reconciler import ReturnReconciler, ReturnSummary
from loan_engines.selection import ItemSelectionTracker
from loan_engines.splitter import RequestSplitter, SplitResult
from loan_kernel.domain.clock import Clock, SystemClock
from loan_kernel.domain.lifecycle import apply_transition, opening_record
from loan_kernel.domain.models import (
    Article,
    ItemStatus,
    Kit,
    LoanItem,
    LoanRequest,
    PartialReturnRecord,
    Priority,
    RequestStatus,
)
from loan_kernel.exceptions import EmptyRequestError, OutOfRangeError
from loan_kernel.logging_config import LogContext, get_logger
from loan_modules.requests.catalog import RequestCatalog
from loan_modules.requests.config import LoanRequestConfig

logger = get_logger("modules.requests.service")


@dataclass(frozen=True)
class RequestLine:
    """An article and quantity on a new manual request."""
    article: Article
    quantity: int


class LifecycleController:
    """
    Drives loan requests through approval, packing, delivery and returns.

    Contract
    --------
    Every public mutating method takes a request id and an actor, holds the
    request's lock for the whole operation and returns the stored result.

    Non-goals
    ---------
    - Does NOT validate quantities itself beyond request creation; the
      engines own those rules.
    - Does NOT persist anything; hosts snapshot through
      ``loan_modules.requests.orm``.
    """

    def __init__(
        self,
        config: LoanRequestConfig | None = None,
        catalog: RequestCatalog | None = None,
        clock: Clock | None = None,
    ):
        self._config = config or LoanRequestConfig.with_defaults()
        self._clock = clock or SystemClock()
        self._catalog = catalog if catalog is not None else RequestCatalog()

        self._allocator = RequestNumberAllocator(
            request_prefix=self._config.request_prefix,
            kit_prefix=self._config.kit_prefix,
            sequence_width=self._config.sequence_width,
            child_marker=self._config.split_child_marker,
        )
        for existing in self._catalog.all():
            self._allocator.observe(existing.request_number)

        self._tracker = ItemSelectionTracker(
            self._catalog.get, kit_prefix=self._config.kit_prefix,
        )
        self._splitter = RequestSplitter(
            self._allocator,
            clock=self._clock,
            kit_prefix=self._config.kit_prefix,
            require_justification=self._config.require_quantity_justification,
        )
        self._reconciler = ReturnReconciler(clock=self._clock)
        self._kit_factory = KitOrderFactory(
            self._allocator,
            clock=self._clock,
            approver=self._config.kit_approver,
            default_priority=self._config.default_priority,
        )

    @property
    def catalog(self) -> RequestCatalog:
        return self._catalog

    @property
    def tracker(self) -> ItemSelectionTracker:
        return self._tracker

    @property
    def reconciler(self) -> ReturnReconciler:
        return self._reconciler

    @property
    def config(self) -> LoanRequestConfig:
        return self._config

    # =========================================================================
    # Creation
    # =========================================================================

    def create_request(
        self,
        requester: str,
        department: str,
        project: str,
        expected_return_date: date,
        lines: Sequence[RequestLine],
        priority: Priority | None = None,
        notes: str = "",
        requester_email: str = "",
    ) -> LoanRequest:
        """Create a manual request in ``pending-approval``."""
        if not lines:
            raise EmptyRequestError(requester)
        for line in lines:
            if line.quantity <= 0:
                raise OutOfRangeError(
                    request_id=None,
                    item_id=None,
                    value=line.quantity,
                    minimum=1,
                    maximum=None,
                )

        now = self._clock.now()
        request = LoanRequest(
            id=uuid4(),
            request_number=self._allocator.next_request_number(now.year),
            requester=requester,
            department=department,
            project=project,
            requested_date=now.date(),
            expected_return_date=expected_return_date,
            status=RequestStatus.PENDING_APPROVAL,
            priority=priority or self._config.default_priority,
            notes=notes,
            items=tuple(
                LoanItem(id=uuid4(), article=line.article, requested_quantity=line.quantity)
                for line in lines
            ),
            requester_email=requester_email,
            created_at=now,
            transitions=(
                opening_record(
                    RequestStatus.PENDING_APPROVAL,
                    action="create",
                    actor=requester,
                    at=now,
                ),
            ),
        )
        self._catalog.add(request)
        logger.info(
            "loan_request_created",
            extra={
                "request_id": str(request.id),
                "request_number": request.request_number,
                "item_count": len(request.items),
                "total_quantity": request.total_requested,
            },
        )
        return request

    def create_kit_order(
        self,
        kit: Kit,
        requester: str,
        department: str,
        project: str,
        return_date: date,
        requester_email: str = "",
    ) -> LoanRequest:
        """Create a pre-approved kit order from a kit template."""
        request = self._kit_factory.from_kit(
            kit,
            requester=requester,
            department=department,
            project=project,
            return_date=return_date,
            requester_email=requester_email,
        )
        self._catalog.add(request)
        return request

    # =========================================================================
    # Approval
    # =========================================================================

    def approve(self, request_id: UUID, actor: str, note: str = "") -> LoanRequest:
        return self._move(
            request_id, RequestStatus.APPROVED, actor, note, approved_by=actor,
        )

    def reject(self, request_id: UUID, actor: str, note: str = "") -> LoanRequest:
        return self._move(request_id, RequestStatus.REJECTED, actor, note)

    def cancel(self, request_id: UUID, actor: str, note: str = "") -> LoanRequest:
        return self._move(request_id, RequestStatus.CANCELLED, actor, note)

    def release_for_packing(self, request_id: UUID, actor: str, note: str = "") -> LoanRequest:
        return self._move(request_id, RequestStatus.READY_FOR_PACKING, actor, note)

    # =========================================================================
    # Packing
    # =========================================================================

    def pack(self, request_id: UUID, actor: str) -> SplitResult:
        """
        Split the operator's current selection off into a packed request.

        Kit orders are always packed whole, so their selection is made here.
        The selection is cleared once the split is stored.
        """
        with self._catalog.lock_for(request_id), LogContext.bind(
            request_id=str(request_id), actor_id=actor,
        ):
            request = self._catalog.get(request_id)
            if request.is_kit_order(self._config.kit_prefix):
                self._tracker.select_all(request_id, True)
            selection = self._tracker.snapshot(request_id)

            result = self._splitter.split(request, selection, actor=actor)

            self._catalog.add(result.moved)
            if result.remaining is None:
                self._catalog.discard(request_id)
            else:
                self._catalog.replace(result.remaining)
            self._tracker.clear(request_id)

        logger.info(
            "loan_request_packed",
            extra={
                "request_id": str(request_id),
                "moved_request_id": str(result.moved.id),
                "moved_request_number": result.moved.request_number,
                "remaining": result.remaining is not None,
            },
        )
        return result

    # =========================================================================
    # Delivery and returns
    # =========================================================================

    def mark_delivered(self, request_id: UUID, actor: str, note: str = "") -> LoanRequest:
        """
        Hand a packed request over to the borrower.

        Items go out on loan (``active``). A request of consumables only has
        nothing to bring back and is settled straight away.
        """
        with self._catalog.lock_for(request_id), LogContext.bind(
            request_id=str(request_id), actor_id=actor,
        ):
            request = self._catalog.get(request_id)
            delivered = apply_transition(
                request,
                RequestStatus.PENDING_TO_RETURN,
                actor=actor,
                at=self._clock.now(),
                note=note,
                processed_by=actor,
                items=tuple(replace(item, status=ItemStatus.ACTIVE) for item in request.items),
            )
            delivered = self._reconciler.settle_if_reconciled(delivered, actor=actor)
            self._catalog.replace(delivered)
        return delivered

    def record_return(self, request_id: UUID, record: PartialReturnRecord) -> LoanRequest:
        with self._catalog.lock_for(request_id), LogContext.bind(
            request_id=str(request_id),
            actor_id=record.processed_by,
            return_id=str(record.id),
        ):
            request = self._catalog.get(request_id)
            updated = self._reconciler.record_return(request, record)
            self._catalog.replace(updated)
        return updated

    def return_history(self, request_id: UUID) -> tuple[PartialReturnRecord, ...]:
        return self._reconciler.history(request_id)

    def return_summary(self, request_id: UUID) -> ReturnSummary:
        return self._reconciler.summarize(self._catalog.get(request_id))

    # =========================================================================
    # Generic transition and queries
    # =========================================================================

    def transition(
        self,
        request_id: UUID,
        to_status: RequestStatus,
        actor: str,
        note: str = "",
    ) -> LoanRequest:
        """Fire any non-reserved transition from the lifecycle table."""
        if to_status is RequestStatus.APPROVED:
            return self.approve(request_id, actor, note)
        if to_status is RequestStatus.PENDING_TO_RETURN:
            return self.mark_delivered(request_id, actor, note)
        return self._move(request_id, to_status, actor, note)

    def is_overdue(self, request_id: UUID, as_of: date | None = None) -> bool:
        self._catalog.get(request_id)
        return any(r.id == request_id for r in self.overdue(as_of))

    def overdue(self, as_of: date | None = None) -> tuple[LoanRequest, ...]:
        return self._catalog.overdue(
            as_of or self._clock.today(),
            grace_days=self._config.overdue_grace_days,
        )

    def _move(
        self,
        request_id: UUID,
        to_status: RequestStatus,
        actor: str,
        note: str,
        **changes,
    ) -> LoanRequest:
        with self._catalog.lock_for(request_id), LogContext.bind(
            request_id=str(request_id), actor_id=actor,
        ):
            request = self._catalog.get(request_id)
            updated = apply_transition(
                request,
                to_status,
                actor=actor,
                at=self._clock.now(),
                note=note,
                **changes,
            )
            self._catalog.replace(updated)
        return updated
