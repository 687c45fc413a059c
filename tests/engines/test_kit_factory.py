"""Tests for KitOrderFactory."""

from datetime import date
from uuid import uuid4

import pytest

from loan_engines.kit_factory import KitOrderFactory
from loan_engines.numbering import RequestNumberAllocator
from loan_kernel.domain.clock import DeterministicClock
from loan_kernel.domain.models import (
    Article,
    ItemStatus,
    Kit,
    KitItem,
    Priority,
    RequestStatus,
)
from loan_kernel.exceptions import EmptyKitError


def _kit(*quantities):
    return Kit(
        id=uuid4(),
        bin_code="KIT-TECH-001",
        name="Presentation Kit",
        category="tech",
        items=tuple(
            KitItem(Article(f"BIN-TECH-{i:03d}", f"Component {i}"), q)
            for i, q in enumerate(quantities)
        ),
    )


class TestKitOrderFactory:
    """Tests for kit order creation."""

    def setup_method(self):
        self.clock = DeterministicClock()
        self.factory = KitOrderFactory(RequestNumberAllocator(), clock=self.clock)

    def test_creates_approved_kit_order(self):
        kit = _kit(1, 1, 2)

        request = self.factory.from_kit(
            kit, "Ana Lopez", "Marketing", "Launch", date(2025, 2, 1),
        )

        assert request.status is RequestStatus.APPROVED
        assert request.request_number == "KIT-2025-001"
        assert request.is_kit_order()
        assert request.approved_by == "system"
        assert request.priority is Priority.MEDIUM
        assert request.notes == "Kit order: Presentation Kit"
        assert request.requested_date == date(2025, 1, 15)
        assert request.expected_return_date == date(2025, 2, 1)

    def test_one_item_per_component_copied_verbatim(self):
        kit = _kit(1, 3)

        request = self.factory.from_kit(kit, "Ana", "Lab", "P", date(2025, 2, 1))

        assert [i.requested_quantity for i in request.items] == [1, 3]
        assert [i.article for i in request.items] == [c.article for c in kit.items]
        assert all(i.status is ItemStatus.PENDING for i in request.items)
        assert len({i.id for i in request.items}) == 2

    def test_opening_transition_recorded(self):
        request = self.factory.from_kit(_kit(1), "Ana", "Lab", "P", date(2025, 2, 1))

        (opening,) = request.transitions
        assert opening.from_status is None
        assert opening.to_status is RequestStatus.APPROVED
        assert opening.actor == "system"

    def test_numbers_increase(self):
        first = self.factory.from_kit(_kit(1), "Ana", "Lab", "P", date(2025, 2, 1))
        second = self.factory.from_kit(_kit(1), "Ana", "Lab", "P", date(2025, 2, 1))

        assert (first.request_number, second.request_number) == ("KIT-2025-001", "KIT-2025-002")

    def test_configured_approver(self):
        factory = KitOrderFactory(
            RequestNumberAllocator(), clock=self.clock, approver="kit-desk",
            default_priority=Priority.HIGH,
        )

        request = factory.from_kit(_kit(1), "Ana", "Lab", "P", date(2025, 2, 1))

        assert request.approved_by == "kit-desk"
        assert request.priority is Priority.HIGH

    def test_empty_kit_rejected(self):
        kit = _kit()

        with pytest.raises(EmptyKitError) as exc_info:
            self.factory.from_kit(kit, "Ana", "Lab", "P", date(2025, 2, 1))

        assert exc_info.value.kit_id == kit.id
        assert exc_info.value.bin_code == "KIT-TECH-001"

    def test_kit_item_quantity_must_be_positive(self):
        with pytest.raises(ValueError):
            KitItem(Article("BIN-1", "Thing"), 0)
