"""
Module: mill_kernel.models.location
Responsibility: ORM persistence for storage locations and packagings, the two
    pure key dimensions of the stock ledger.
"""

from decimal import Decimal

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from mill_kernel.db.base import Base


class LocationModel(Base):
    """A storage point (warehouse x sub-location)."""

    __tablename__ = "locations"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    warehouse: Mapped[str | None] = mapped_column(String(100), nullable=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def __repr__(self) -> str:
        return f"<Location {self.code}>"


class PackagingModel(Base):
    """A packaging type (brand, kg per bag)."""

    __tablename__ = "packagings"

    brand_name: Mapped[str] = mapped_column(String(100), nullable=False)
    kg_per_bag: Mapped[Decimal] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<Packaging {self.brand_name} {self.kg_per_bag}kg>"
