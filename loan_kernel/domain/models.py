"""
Loan Domain Models.

The nouns of the loan lifecycle: articles, requests, line items, return
records and kit templates. All records are frozen; every change produces
a new instance via ``dataclasses.replace``.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from uuid import UUID

KIT_PREFIX = "KIT-"


class RequestStatus(Enum):
    """Loan request lifecycle states."""
    PENDING_APPROVAL = "pending-approval"
    APPROVED = "approved"
    READY_FOR_PACKING = "ready-for-packing"
    PACKED = "packed"
    PENDING_TO_RETURN = "pending-to-return"
    RETURNED = "returned"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ItemStatus(Enum):
    """Per-item states."""
    PENDING = "pending"
    ACTIVE = "active"  # out on loan
    RETURNED = "returned"
    PARTIAL = "partial"
    LOST = "lost"
    DAMAGED = "damaged"


class ArticleType(Enum):
    """Article kinds known to the catalog/bin service."""
    CONSUMABLE = "consumable"
    NON_CONSUMABLE = "non-consumable"


class Priority(Enum):
    """Request priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class CatalogStage(Enum):
    """Partitions of the request catalog, as shown to operators."""
    PENDING_APPROVAL = "pending-approval"
    READY_FOR_PACKING = "ready-for-packing"
    PACKED = "packed"
    PENDING_TO_RETURN = "pending-to-return"
    INACTIVE = "inactive"


STAGE_BY_STATUS: dict[RequestStatus, CatalogStage] = {
    RequestStatus.PENDING_APPROVAL: CatalogStage.PENDING_APPROVAL,
    RequestStatus.APPROVED: CatalogStage.READY_FOR_PACKING,
    RequestStatus.READY_FOR_PACKING: CatalogStage.READY_FOR_PACKING,
    RequestStatus.PACKED: CatalogStage.PACKED,
    RequestStatus.PENDING_TO_RETURN: CatalogStage.PENDING_TO_RETURN,
    RequestStatus.RETURNED: CatalogStage.PENDING_TO_RETURN,
    RequestStatus.COMPLETED: CatalogStage.INACTIVE,
    RequestStatus.REJECTED: CatalogStage.INACTIVE,
    RequestStatus.CANCELLED: CatalogStage.INACTIVE,
}


@dataclass(frozen=True)
class Article:
    """Read-only article metadata supplied by the catalog/bin service."""
    bin_code: str
    name: str
    description: str = ""
    article_type: ArticleType = ArticleType.NON_CONSUMABLE
    unit: str = "units"

    @property
    def is_consumable(self) -> bool:
        return self.article_type is ArticleType.CONSUMABLE


@dataclass(frozen=True)
class LoanItem:
    """A line item on a loan request."""
    id: UUID
    article: Article
    requested_quantity: int
    status: ItemStatus = ItemStatus.PENDING
    returned_good: int = 0
    returned_defective: int = 0

    def __post_init__(self):
        if self.requested_quantity <= 0:
            raise ValueError(
                f"requested_quantity ({self.requested_quantity}) must be positive"
            )
        if self.returned_good < 0 or self.returned_defective < 0:
            raise ValueError("returned quantities cannot be negative")
        if self.returned_good + self.returned_defective > self.requested_quantity:
            raise ValueError(
                f"returned quantity ({self.returned_good + self.returned_defective}) "
                f"cannot exceed requested_quantity ({self.requested_quantity})"
            )
        if self.article.is_consumable and self.returned_good + self.returned_defective:
            raise ValueError("consumable items are never returned")

    @property
    def is_consumable(self) -> bool:
        return self.article.is_consumable

    @property
    def returned_total(self) -> int:
        return self.returned_good + self.returned_defective

    @property
    def outstanding_quantity(self) -> int:
        """Requested minus everything returned. Consumables are never outstanding."""
        if self.is_consumable:
            return 0
        return self.requested_quantity - self.returned_total

    @property
    def is_fully_reconciled(self) -> bool:
        return self.outstanding_quantity == 0


@dataclass(frozen=True)
class TransitionRecord:
    """One entry in a request's status audit trail."""
    from_status: RequestStatus | None
    to_status: RequestStatus
    action: str
    actor: str
    at: datetime
    note: str = ""


@dataclass(frozen=True)
class LoanRequest:
    """A loan request and its line items."""
    id: UUID
    request_number: str
    requester: str
    department: str
    project: str
    requested_date: date
    expected_return_date: date
    status: RequestStatus
    priority: Priority = Priority.MEDIUM
    notes: str = ""
    items: tuple[LoanItem, ...] = field(default_factory=tuple)
    requester_email: str = ""
    approved_by: str | None = None
    processed_by: str | None = None
    quantity_note: str = ""
    parent_request_id: UUID | None = None
    created_at: datetime | None = None
    transitions: tuple[TransitionRecord, ...] = field(default_factory=tuple)

    def __post_init__(self):
        ids = [item.id for item in self.items]
        if len(ids) != len(set(ids)):
            raise ValueError(
                f"request {self.request_number} has duplicate item ids"
            )

    def item(self, item_id: UUID) -> LoanItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def is_kit_order(self, kit_prefix: str = KIT_PREFIX) -> bool:
        return self.request_number.startswith(kit_prefix)

    @property
    def stage(self) -> CatalogStage:
        return STAGE_BY_STATUS[self.status]

    @property
    def total_requested(self) -> int:
        return sum(item.requested_quantity for item in self.items)

    @property
    def total_outstanding(self) -> int:
        return sum(item.outstanding_quantity for item in self.items)


@dataclass(frozen=True)
class ReturnEntry:
    """One item's quantities within a return event."""
    item_id: UUID
    quantity_good: int = 0
    quantity_defective: int = 0
    notes: str = ""
    article_bin_code: str = ""
    article_name: str = ""

    @property
    def total(self) -> int:
        return self.quantity_good + self.quantity_defective


@dataclass(frozen=True)
class PartialReturnRecord:
    """A single physical return event. Immutable once created."""
    id: UUID
    return_date: date
    returned_by: str
    processed_by: str
    returned_items: tuple[ReturnEntry, ...] = field(default_factory=tuple)
    general_notes: str = ""


@dataclass(frozen=True)
class KitItem:
    """One component of a kit template."""
    article: Article
    quantity: int

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError(f"kit item quantity ({self.quantity}) must be positive")


@dataclass(frozen=True)
class Kit:
    """A named bundle issued and returned as one packing unit."""
    id: UUID
    bin_code: str
    name: str
    category: str
    description: str = ""
    items: tuple[KitItem, ...] = field(default_factory=tuple)
