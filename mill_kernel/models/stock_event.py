"""
Module: mill_kernel.models.stock_event
Responsibility: ORM persistence for stock events -- the append-only store
    every ledger computation replays.
Architecture position: Kernel > Models. May import from db/base.py and
    exceptions.py only.

Invariants enforced:
    - Append-only: the before_update listener rejects any UPDATE of a
      persisted row.
    - kind is stored as free text so that rows written by a newer schema
      surface as UnsupportedEventKindError on read instead of being lost.

Failure modes:
    - ImmutabilityViolationError on any UPDATE to an existing row.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, DateTime, Index, String, event
from sqlalchemy.orm import Mapped, mapped_column

from mill_kernel.db.base import Base, UUIDString
from mill_kernel.exceptions import ImmutabilityViolationError


class StockEventModel(Base):
    """
    One persisted inventory-affecting fact.

    Contract:
        Rows are inserted once and never updated. Corrections are new rows.
        ``weight`` is in the store's configured unit (see
        ``MillingRules.store_weight_unit``); the selector normalizes it to
        quintals.
    """

    __tablename__ = "stock_events"

    __table_args__ = (
        Index("idx_stock_event_order", "event_date", "created_at"),
        Index("idx_stock_event_batch", "batch_id"),
        Index("idx_stock_event_source_location", "source_location_id"),
        Index("idx_stock_event_target_location", "target_location_id"),
    )

    event_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Fine-grained ordering tiebreak within a day
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    movement_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="approved")

    bags: Mapped[int | None] = mapped_column(nullable=True)
    weight: Mapped[Decimal | None] = mapped_column(nullable=True)

    variety: Mapped[str | None] = mapped_column(String(100), nullable=True)
    source_location_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    target_location_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    batch_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    packaging_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    source_packaging_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    target_packaging_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    product_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    shortage_kg: Mapped[Decimal | None] = mapped_column(nullable=True)
    paddy_bags_deducted: Mapped[int | None] = mapped_column(nullable=True)
    rate: Mapped[Decimal | None] = mapped_column(nullable=True)

    # Pairs the two halves of an inter-location shifting
    linked_event_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    created_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<StockEvent {self.kind}:{self.id} {self.event_date}>"


@event.listens_for(StockEventModel, "before_update")
def prevent_stock_event_update(mapper, connection, target):
    """Stock events are append-only; any UPDATE flush is rejected."""
    raise ImmutabilityViolationError(
        "StockEvent", str(target.id), "stock events are append-only"
    )
