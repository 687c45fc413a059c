"""
Request Catalog (``loan_modules.requests.catalog``).

Responsibility
--------------
In-memory store of LoanRequest instances and the overview queries the
console needs: stage partitions, active/inactive, per-department lists,
free-text search and the overdue listing.

Concurrency
-----------
One re-entrant lock per request id (``lock_for``). Every mutating
controller operation holds the lock of the request it touches; different
ids proceed in parallel, and a discarded request gives its lock up. The
catalog's own maps are guarded by a separate lock so reads never see a
half-applied replacement.

Invariants enforced
-------------------
* A request id is stored at most once.
* A request number is never reused, even after the request is discarded.
"""

from __future__ import annotations

import threading
from datetime import date, timedelta
from uuid import UUID

from loan_kernel.domain.models import CatalogStage, LoanRequest, RequestStatus
from loan_kernel.exceptions import RequestAlreadyExistsError, RequestNotFoundError
from loan_kernel.logging_config import get_logger

logger = get_logger("modules.requests.catalog")


class RequestCatalog:
    """Owns every LoanRequest known to the engine."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requests: dict[UUID, LoanRequest] = {}
        self._numbers: dict[str, UUID] = {}
        self._request_locks: dict[UUID, threading.RLock] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)

    def __contains__(self, request_id: object) -> bool:
        with self._lock:
            return request_id in self._requests

    def lock_for(self, request_id: UUID) -> threading.RLock:
        """The single-writer lock for ``request_id``."""
        with self._lock:
            lock = self._request_locks.get(request_id)
            if lock is None:
                lock = threading.RLock()
                self._request_locks[request_id] = lock
            return lock

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add(self, request: LoanRequest) -> None:
        with self._lock:
            if request.id in self._requests or request.request_number in self._numbers:
                raise RequestAlreadyExistsError(request.id, request.request_number)
            self._requests[request.id] = request
            self._numbers[request.request_number] = request.id
        logger.info(
            "request_added",
            extra={
                "request_id": str(request.id),
                "request_number": request.request_number,
                "status": request.status.value,
            },
        )

    def replace(self, request: LoanRequest) -> None:
        """Store a new version of an existing request (same id and number)."""
        with self._lock:
            current = self._requests.get(request.id)
            if current is None:
                raise RequestNotFoundError(request.id)
            if current.request_number != request.request_number:
                raise ValueError(
                    f"request {request.id} cannot change number "
                    f"{current.request_number} -> {request.request_number}"
                )
            self._requests[request.id] = request

    def discard(self, request_id: UUID) -> LoanRequest:
        """Remove a request. Its number stays reserved."""
        with self._lock:
            request = self._requests.pop(request_id, None)
            if request is not None:
                self._request_locks.pop(request_id, None)
        if request is None:
            raise RequestNotFoundError(request_id)
        logger.info(
            "request_discarded",
            extra={
                "request_id": str(request_id),
                "request_number": request.request_number,
            },
        )
        return request

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, request_id: UUID) -> LoanRequest:
        with self._lock:
            request = self._requests.get(request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        return request

    def find_by_number(self, request_number: str) -> LoanRequest | None:
        with self._lock:
            request_id = self._numbers.get(request_number)
            return self._requests.get(request_id) if request_id else None

    def all(self) -> tuple[LoanRequest, ...]:
        with self._lock:
            return tuple(self._requests.values())

    # ------------------------------------------------------------------
    # Overview queries
    # ------------------------------------------------------------------

    def in_stage(self, stage: CatalogStage) -> tuple[LoanRequest, ...]:
        return tuple(r for r in self.all() if r.stage is stage)

    def pending_approval(self) -> tuple[LoanRequest, ...]:
        return self.in_stage(CatalogStage.PENDING_APPROVAL)

    def ready_for_packing(self) -> tuple[LoanRequest, ...]:
        return self.in_stage(CatalogStage.READY_FOR_PACKING)

    def packed(self) -> tuple[LoanRequest, ...]:
        return self.in_stage(CatalogStage.PACKED)

    def pending_to_return(self) -> tuple[LoanRequest, ...]:
        return self.in_stage(CatalogStage.PENDING_TO_RETURN)

    def active(self) -> tuple[LoanRequest, ...]:
        return tuple(r for r in self.all() if r.stage is not CatalogStage.INACTIVE)

    def inactive(self) -> tuple[LoanRequest, ...]:
        return self.in_stage(CatalogStage.INACTIVE)

    def children_of(self, parent_id: UUID) -> tuple[LoanRequest, ...]:
        return tuple(r for r in self.all() if r.parent_request_id == parent_id)

    def by_department(self, department: str) -> tuple[LoanRequest, ...]:
        wanted = department.casefold()
        return tuple(r for r in self.all() if r.department.casefold() == wanted)

    def search(self, text: str) -> tuple[LoanRequest, ...]:
        """Case-insensitive match on number, requester, department, project or status."""
        needle = text.strip().casefold()
        if not needle:
            return self.all()
        return tuple(
            r
            for r in self.all()
            if any(
                needle in value.casefold()
                for value in (
                    r.request_number,
                    r.requester,
                    r.department,
                    r.project,
                    r.status.value,
                )
            )
        )

    def overdue(self, as_of: date, grace_days: int = 0) -> tuple[LoanRequest, ...]:
        """Requests out on loan whose expected return date has passed."""
        cutoff = as_of - timedelta(days=grace_days)
        return tuple(
            r
            for r in self.all()
            if r.status is RequestStatus.PENDING_TO_RETURN
            and r.expected_return_date < cutoff
        )
