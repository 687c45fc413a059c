"""
SQLAlchemy ORM persistence models for the loan request module.

Responsibility
--------------
Mirror the loan DTOs for hosts that want to store snapshots of the catalog
and the return history.  The lifecycle engine itself is in-memory; nothing
in ``LifecycleController`` reads or writes these tables.

Architecture position
---------------------
**Modules layer** -- ORM models.  Inherits from ``TrackedBase`` /
``Base`` (kernel db layer).

Invariants enforced
-------------------
* Quantities are whole units (Integer) -- never float.
* Enum fields stored as String(50) using their outward vocabulary.
* ``(request_id, item_id)`` is unique; item ids repeat across split-off
  requests, so every line item row has its own primary key.
* Transition records, return records and return entries are append-only
  (``AppendOnly`` + ``loan_kernel.db.immutability``).
* ``parent_request_id`` carries no foreign key: a parent that was packed
  whole no longer exists in the catalog.
"""

from datetime import UTC, date, datetime
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Index, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from loan_kernel.db.base import AppendOnly, Base, TrackedBase
from loan_kernel.domain.models import (
    Article,
    ArticleType,
    ItemStatus,
    LoanItem,
    LoanRequest,
    PartialReturnRecord,
    Priority,
    RequestStatus,
    ReturnEntry,
    TransitionRecord,
)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops the offset; stored values are always UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


# ---------------------------------------------------------------------------
# LoanRequestModel
# ---------------------------------------------------------------------------


class LoanRequestModel(TrackedBase):
    """
    A loan request header.

    Maps to the ``LoanRequest`` DTO in ``loan_kernel.domain.models``.

    Guarantees:
        - ``request_number`` is unique.
        - ``status`` uses the outward status vocabulary.
    """

    __tablename__ = "loan_requests"

    __table_args__ = (
        UniqueConstraint("request_number", name="uq_loan_request_number"),
        Index("idx_loan_request_status", "status"),
        Index("idx_loan_request_department", "department"),
        Index("idx_loan_request_parent", "parent_request_id"),
    )

    request_number: Mapped[str] = mapped_column(String(50), nullable=False)
    requester: Mapped[str] = mapped_column(String(200), nullable=False)
    requester_email: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    department: Mapped[str] = mapped_column(String(100), nullable=False)
    project: Mapped[str] = mapped_column(String(200), nullable=False)
    requested_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_return_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    approved_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    processed_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    quantity_note: Mapped[str] = mapped_column(Text, nullable=False, default="")
    parent_request_id: Mapped[UUID | None]
    opened_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    items: Mapped[list["LoanItemModel"]] = relationship(
        "LoanItemModel",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="LoanItemModel.position",
        lazy="selectin",
    )
    transitions: Mapped[list["LoanTransitionModel"]] = relationship(
        "LoanTransitionModel",
        back_populates="request",
        order_by="LoanTransitionModel.sequence",
        lazy="selectin",
    )
    returns: Mapped[list["PartialReturnRecordModel"]] = relationship(
        "PartialReturnRecordModel",
        back_populates="request",
        order_by="PartialReturnRecordModel.created_at",
        lazy="selectin",
    )

    def to_dto(self) -> LoanRequest:
        return LoanRequest(
            id=self.id,
            request_number=self.request_number,
            requester=self.requester,
            department=self.department,
            project=self.project,
            requested_date=self.requested_date,
            expected_return_date=self.expected_return_date,
            status=RequestStatus(self.status),
            priority=Priority(self.priority),
            notes=self.notes,
            items=tuple(item.to_dto() for item in self.items),
            requester_email=self.requester_email,
            approved_by=self.approved_by,
            processed_by=self.processed_by,
            quantity_note=self.quantity_note,
            parent_request_id=self.parent_request_id,
            created_at=_aware(self.opened_at),
            transitions=tuple(t.to_dto() for t in self.transitions),
        )

    @classmethod
    def from_dto(cls, dto: LoanRequest) -> "LoanRequestModel":
        model = cls(
            id=dto.id,
            request_number=dto.request_number,
            requester=dto.requester,
            requester_email=dto.requester_email,
            department=dto.department,
            project=dto.project,
            requested_date=dto.requested_date,
            expected_return_date=dto.expected_return_date,
            status=dto.status.value,
            priority=dto.priority.value,
            notes=dto.notes,
            approved_by=dto.approved_by,
            processed_by=dto.processed_by,
            quantity_note=dto.quantity_note,
            parent_request_id=dto.parent_request_id,
            opened_at=dto.created_at,
        )
        model.items = [
            LoanItemModel.from_dto(item, position) for position, item in enumerate(dto.items)
        ]
        model.transitions = [
            LoanTransitionModel.from_dto(t, sequence) for sequence, t in enumerate(dto.transitions)
        ]
        return model

    def __repr__(self) -> str:
        return f"<LoanRequestModel {self.request_number} [{self.status}]>"


# ---------------------------------------------------------------------------
# LoanItemModel
# ---------------------------------------------------------------------------


class LoanItemModel(TrackedBase):
    """
    A line item on a loan request, with the article snapshot it was
    requested against.

    Guarantees:
        - Belongs to exactly one ``LoanRequestModel``.
        - ``returned_good + returned_defective <= requested_quantity``
          (checked by the DTO on load).
    """

    __tablename__ = "loan_items"

    __table_args__ = (
        UniqueConstraint("request_id", "item_id", name="uq_loan_item_per_request"),
        Index("idx_loan_item_request", "request_id"),
        Index("idx_loan_item_bin", "bin_code"),
    )

    request_id: Mapped[UUID] = mapped_column(ForeignKey("loan_requests.id"), nullable=False)
    item_id: Mapped[UUID]
    position: Mapped[int]
    bin_code: Mapped[str] = mapped_column(String(50), nullable=False)
    article_name: Mapped[str] = mapped_column(String(200), nullable=False)
    article_description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    article_type: Mapped[str] = mapped_column(String(50), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="units")
    requested_quantity: Mapped[int]
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending")
    returned_good: Mapped[int] = mapped_column(default=0)
    returned_defective: Mapped[int] = mapped_column(default=0)

    request: Mapped["LoanRequestModel"] = relationship(
        "LoanRequestModel",
        back_populates="items",
    )

    def to_dto(self) -> LoanItem:
        return LoanItem(
            id=self.item_id,
            article=Article(
                bin_code=self.bin_code,
                name=self.article_name,
                description=self.article_description,
                article_type=ArticleType(self.article_type),
                unit=self.unit,
            ),
            requested_quantity=self.requested_quantity,
            status=ItemStatus(self.status),
            returned_good=self.returned_good,
            returned_defective=self.returned_defective,
        )

    @classmethod
    def from_dto(cls, dto: LoanItem, position: int) -> "LoanItemModel":
        return cls(
            item_id=dto.id,
            position=position,
            bin_code=dto.article.bin_code,
            article_name=dto.article.name,
            article_description=dto.article.description,
            article_type=dto.article.article_type.value,
            unit=dto.article.unit,
            requested_quantity=dto.requested_quantity,
            status=dto.status.value,
            returned_good=dto.returned_good,
            returned_defective=dto.returned_defective,
        )

    def __repr__(self) -> str:
        return f"<LoanItemModel {self.bin_code} x{self.requested_quantity} [{self.status}]>"


# ---------------------------------------------------------------------------
# LoanTransitionModel
# ---------------------------------------------------------------------------


class LoanTransitionModel(AppendOnly, Base):
    """One status change of a request. Append-only."""

    __tablename__ = "loan_request_transitions"
    __append_only_entity__ = "LoanTransition"

    __table_args__ = (
        UniqueConstraint("request_id", "sequence", name="uq_loan_transition_sequence"),
    )

    request_id: Mapped[UUID] = mapped_column(ForeignKey("loan_requests.id"), nullable=False)
    sequence: Mapped[int]
    from_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    to_status: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    actor: Mapped[str] = mapped_column(String(200), nullable=False)
    at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")

    request: Mapped["LoanRequestModel"] = relationship(
        "LoanRequestModel",
        back_populates="transitions",
    )

    def to_dto(self) -> TransitionRecord:
        return TransitionRecord(
            from_status=RequestStatus(self.from_status) if self.from_status else None,
            to_status=RequestStatus(self.to_status),
            action=self.action,
            actor=self.actor,
            at=_aware(self.at),
            note=self.note,
        )

    @classmethod
    def from_dto(cls, dto: TransitionRecord, sequence: int) -> "LoanTransitionModel":
        return cls(
            sequence=sequence,
            from_status=dto.from_status.value if dto.from_status else None,
            to_status=dto.to_status.value,
            action=dto.action,
            actor=dto.actor,
            at=dto.at,
            note=dto.note,
        )


# ---------------------------------------------------------------------------
# PartialReturnRecordModel
# ---------------------------------------------------------------------------


class PartialReturnRecordModel(AppendOnly, Base):
    """
    A single physical return event. Append-only.

    Maps to the ``PartialReturnRecord`` DTO; the record id is the DTO id,
    so storing the same return twice violates the primary key.
    """

    __tablename__ = "loan_return_records"
    __append_only_entity__ = "PartialReturnRecord"

    __table_args__ = (
        Index("idx_loan_return_request", "request_id"),
        Index("idx_loan_return_date", "return_date"),
    )

    request_id: Mapped[UUID] = mapped_column(ForeignKey("loan_requests.id"), nullable=False)
    return_date: Mapped[date] = mapped_column(Date, nullable=False)
    returned_by: Mapped[str] = mapped_column(String(200), nullable=False)
    processed_by: Mapped[str] = mapped_column(String(200), nullable=False)
    general_notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    request: Mapped["LoanRequestModel"] = relationship(
        "LoanRequestModel",
        back_populates="returns",
    )
    entries: Mapped[list["ReturnEntryModel"]] = relationship(
        "ReturnEntryModel",
        back_populates="record",
        order_by="ReturnEntryModel.position",
        lazy="selectin",
    )

    def to_dto(self) -> PartialReturnRecord:
        return PartialReturnRecord(
            id=self.id,
            return_date=self.return_date,
            returned_by=self.returned_by,
            processed_by=self.processed_by,
            returned_items=tuple(entry.to_dto() for entry in self.entries),
            general_notes=self.general_notes,
        )

    @classmethod
    def from_dto(cls, dto: PartialReturnRecord, request_id: UUID) -> "PartialReturnRecordModel":
        model = cls(
            id=dto.id,
            request_id=request_id,
            return_date=dto.return_date,
            returned_by=dto.returned_by,
            processed_by=dto.processed_by,
            general_notes=dto.general_notes,
        )
        model.entries = [
            ReturnEntryModel.from_dto(entry, position)
            for position, entry in enumerate(dto.returned_items)
        ]
        return model

    def __repr__(self) -> str:
        return f"<PartialReturnRecordModel {self.id} by {self.returned_by}>"


# ---------------------------------------------------------------------------
# ReturnEntryModel
# ---------------------------------------------------------------------------


class ReturnEntryModel(AppendOnly, Base):
    """One item's quantities within a stored return event. Append-only."""

    __tablename__ = "loan_return_entries"
    __append_only_entity__ = "ReturnEntry"

    __table_args__ = (
        UniqueConstraint("return_id", "position", name="uq_loan_return_entry_position"),
        Index("idx_loan_return_entry_item", "item_id"),
    )

    return_id: Mapped[UUID] = mapped_column(ForeignKey("loan_return_records.id"), nullable=False)
    position: Mapped[int]
    item_id: Mapped[UUID]
    quantity_good: Mapped[int] = mapped_column(default=0)
    quantity_defective: Mapped[int] = mapped_column(default=0)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    article_bin_code: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    article_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    record: Mapped["PartialReturnRecordModel"] = relationship(
        "PartialReturnRecordModel",
        back_populates="entries",
    )

    def to_dto(self) -> ReturnEntry:
        return ReturnEntry(
            item_id=self.item_id,
            quantity_good=self.quantity_good,
            quantity_defective=self.quantity_defective,
            notes=self.notes,
            article_bin_code=self.article_bin_code,
            article_name=self.article_name,
        )

    @classmethod
    def from_dto(cls, dto: ReturnEntry, position: int) -> "ReturnEntryModel":
        return cls(
            position=position,
            item_id=dto.item_id,
            quantity_good=dto.quantity_good,
            quantity_defective=dto.quantity_defective,
            notes=dto.notes,
            article_bin_code=dto.article_bin_code,
            article_name=dto.article_name,
        )
