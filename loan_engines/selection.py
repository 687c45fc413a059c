"""
loan_engines.selection -- Operator packing selection.

Responsibility:
    Track, per request, which items an operator has ticked for packing,
    any reduced quantity they entered and the justification note.  The
    tracker never mutates a LoanRequest; ``snapshot()`` produces the
    immutable Selection handed to RequestSplitter.

Invariants enforced:
    - Quantity overrides stay within ``0 .. requested_quantity``.
    - Kit orders are all-or-nothing: toggling any kit item toggles every
      item, and quantities cannot be overridden.

Failure modes:
    - OutOfRangeError for a quantity outside the allowed range.
    - UnknownItemError for an item id not on the request.
    - KitSelectionError when overriding a kit item's quantity.
    - RequestNotFoundError propagated from the lookup callable.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from uuid import UUID

from loan_kernel.domain.models import KIT_PREFIX, LoanItem, LoanRequest
from loan_kernel.exceptions import KitSelectionError, OutOfRangeError, UnknownItemError
from loan_kernel.logging_config import get_logger

logger = get_logger("engines.selection")


@dataclass(frozen=True)
class Selection:
    """An operator's packing choice for one request."""
    request_id: UUID
    quantities: Mapping[UUID, int] = field(default_factory=dict)
    justification: str = ""
    has_quantity_change: bool = False

    @property
    def item_ids(self) -> frozenset[UUID]:
        return frozenset(self.quantities)

    @property
    def total_quantity(self) -> int:
        return sum(self.quantities.values())


class ItemSelectionTracker:
    """
    In-memory selection state for an operator session.

    State is keyed by request id, then item id. Overrides are remembered
    for deselected items so re-ticking an item restores the entered value.
    """

    def __init__(
        self,
        lookup: Callable[[UUID], LoanRequest],
        kit_prefix: str = KIT_PREFIX,
    ) -> None:
        self._lookup = lookup
        self._kit_prefix = kit_prefix
        self._lock = threading.Lock()
        self._selected: dict[UUID, set[UUID]] = {}
        self._overrides: dict[UUID, dict[UUID, int]] = {}
        self._notes: dict[UUID, str] = {}

    def select(self, request_id: UUID, item_id: UUID) -> None:
        request = self._lookup(request_id)
        self._item(request, item_id)
        with self._lock:
            chosen = self._selected.setdefault(request_id, set())
            if request.is_kit_order(self._kit_prefix):
                chosen.update(item.id for item in request.items)
            else:
                chosen.add(item_id)

    def deselect(self, request_id: UUID, item_id: UUID) -> None:
        request = self._lookup(request_id)
        self._item(request, item_id)
        with self._lock:
            chosen = self._selected.setdefault(request_id, set())
            if request.is_kit_order(self._kit_prefix):
                chosen.clear()
            else:
                chosen.discard(item_id)

    def select_all(self, request_id: UUID, checked: bool) -> None:
        request = self._lookup(request_id)
        with self._lock:
            if checked:
                self._selected[request_id] = {item.id for item in request.items}
            else:
                self._selected[request_id] = set()

    def set_quantity(self, request_id: UUID, item_id: UUID, quantity: int) -> None:
        request = self._lookup(request_id)
        item = self._item(request, item_id)
        if request.is_kit_order(self._kit_prefix):
            raise KitSelectionError(
                request.id,
                request.request_number,
                "kit quantities cannot be changed",
            )
        if quantity < 0 or quantity > item.requested_quantity:
            raise OutOfRangeError(
                request_id=request.id,
                item_id=item_id,
                value=quantity,
                minimum=0,
                maximum=item.requested_quantity,
            )
        with self._lock:
            self._overrides.setdefault(request_id, {})[item_id] = quantity
        logger.debug(
            "selection_quantity_set",
            extra={
                "request_id": str(request_id),
                "item_id": str(item_id),
                "quantity": quantity,
                "requested_quantity": item.requested_quantity,
            },
        )

    def set_note(self, request_id: UUID, note: str) -> None:
        with self._lock:
            self._notes[request_id] = note

    def has_quantity_change(self, request_id: UUID) -> bool:
        """True when any entered quantity differs from the requested one."""
        request = self._lookup(request_id)
        with self._lock:
            overrides = dict(self._overrides.get(request_id, {}))
        return any(
            item.id in overrides and overrides[item.id] != item.requested_quantity
            for item in request.items
        )

    def quantity_for(self, request_id: UUID, item_id: UUID) -> int:
        """The quantity that would be packed for an item if it is selected."""
        request = self._lookup(request_id)
        item = self._item(request, item_id)
        with self._lock:
            return self._overrides.get(request_id, {}).get(item_id, item.requested_quantity)

    def selected_count(self, request_id: UUID) -> int:
        request = self._lookup(request_id)
        with self._lock:
            chosen = self._selected.get(request_id, set())
            return sum(1 for item in request.items if item.id in chosen)

    def all_selected(self, request_id: UUID) -> bool:
        request = self._lookup(request_id)
        with self._lock:
            chosen = self._selected.get(request_id, set())
            return bool(request.items) and all(item.id in chosen for item in request.items)

    def snapshot(self, request_id: UUID) -> Selection:
        """Freeze the current choice for ``request_id``."""
        request = self._lookup(request_id)
        with self._lock:
            chosen = set(self._selected.get(request_id, set()))
            overrides = dict(self._overrides.get(request_id, {}))
            note = self._notes.get(request_id, "")
        quantities = {
            item.id: overrides.get(item.id, item.requested_quantity)
            for item in request.items
            if item.id in chosen
        }
        changed = any(
            quantities[item.id] != item.requested_quantity
            for item in request.items
            if item.id in quantities
        )
        return Selection(
            request_id=request_id,
            quantities=MappingProxyType(quantities),
            justification=note,
            has_quantity_change=changed,
        )

    def clear(self, request_id: UUID) -> None:
        with self._lock:
            self._selected.pop(request_id, None)
            self._overrides.pop(request_id, None)
            self._notes.pop(request_id, None)

    def _item(self, request: LoanRequest, item_id: UUID) -> LoanItem:
        item = request.item(item_id)
        if item is None:
            raise UnknownItemError(request.id, item_id)
        return item
