"""
loan_engines.kit_factory -- Kit order creation.

Builds a pre-approved LoanRequest from a kit template: one line item per
kit component with the quantity and article copied verbatim.  Kit orders
skip manual approval and are packed as one unit.
"""

from __future__ import annotations

from datetime import date
from uuid import uuid4

from loan_engines.numbering import RequestNumberAllocator
from loan_engines.tracer import traced_engine
from loan_kernel.domain.clock import Clock, SystemClock
from loan_kernel.domain.lifecycle import opening_record
from loan_kernel.domain.models import (
    ItemStatus,
    Kit,
    LoanItem,
    LoanRequest,
    Priority,
    RequestStatus,
)
from loan_kernel.exceptions import EmptyKitError
from loan_kernel.logging_config import get_logger

logger = get_logger("engines.kit_factory")


class KitOrderFactory:
    """Creates kit orders numbered ``KIT-<year>-<seq>``."""

    def __init__(
        self,
        allocator: RequestNumberAllocator,
        clock: Clock | None = None,
        approver: str = "system",
        default_priority: Priority = Priority.MEDIUM,
    ) -> None:
        self._allocator = allocator
        self._clock = clock or SystemClock()
        self._approver = approver
        self._default_priority = default_priority

    @traced_engine("kit_factory", "1.0", fingerprint_fields=("kit", "requester", "return_date"))
    def from_kit(
        self,
        kit: Kit,
        requester: str,
        department: str,
        project: str,
        return_date: date,
        requester_email: str = "",
    ) -> LoanRequest:
        if not kit.items:
            raise EmptyKitError(kit.id, kit.bin_code)

        now = self._clock.now()
        items = tuple(
            LoanItem(
                id=uuid4(),
                article=component.article,
                requested_quantity=component.quantity,
                status=ItemStatus.PENDING,
            )
            for component in kit.items
        )
        request = LoanRequest(
            id=uuid4(),
            request_number=self._allocator.next_kit_number(now.year),
            requester=requester,
            department=department,
            project=project,
            requested_date=now.date(),
            expected_return_date=return_date,
            status=RequestStatus.APPROVED,
            priority=self._default_priority,
            notes=f"Kit order: {kit.name}",
            items=items,
            requester_email=requester_email,
            approved_by=self._approver,
            created_at=now,
            transitions=(
                opening_record(
                    RequestStatus.APPROVED,
                    action="create_kit_order",
                    actor=self._approver,
                    at=now,
                ),
            ),
        )
        logger.info(
            "kit_order_created",
            extra={
                "request_id": str(request.id),
                "request_number": request.request_number,
                "kit_id": str(kit.id),
                "kit_bin_code": kit.bin_code,
                "item_count": len(items),
            },
        )
        return request
