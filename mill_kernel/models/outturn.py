"""
Module: mill_kernel.models.outturn
Responsibility: ORM persistence for production batches (outturns).

Unlike stock events, an outturn row is updated in place: once when it is
cleared, and whenever its denormalized yield or average rate is refreshed.
Those columns are caches; the stock events remain the source of truth.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from mill_kernel.db.base import Base, UUIDString


class OutturnModel(Base):
    """A production lot of paddy. Lifecycle is Open -> Cleared, once."""

    __tablename__ = "outturns"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    allotted_variety: Mapped[str | None] = mapped_column(String(100), nullable=True)

    is_cleared: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cleared_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cleared_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    remaining_bags: Mapped[int | None] = mapped_column(nullable=True)

    yield_percentage: Mapped[Decimal | None] = mapped_column(nullable=True)
    yield_computed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    average_rate: Mapped[Decimal | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        state = "cleared" if self.is_cleared else "open"
        return f"<Outturn {self.code} ({state})>"
