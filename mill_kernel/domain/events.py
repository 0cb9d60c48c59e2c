"""
Events -- The immutable stock event and its closed vocabularies.

Responsibility:
    Defines StockEvent, the single inventory-affecting fact every ledger
    computation consumes, and the closed enums that classify it: EventKind
    (drives pool arithmetic), MovementType (business origin, display only),
    ProductType / ProductCategory (milled outputs) and EventStatus.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Built by the selector from ORM rows, or directly by callers and tests.

Invariants enforced:
    - kind is one of the six EventKind members; anything else raises
      UnsupportedEventKindError at construction.
    - Product categories come from an explicit table, never from matching
      substrings of product names.

Failure modes:
    - UnsupportedEventKindError for an unknown kind string.
    - ValueError for an unknown movement type, product type or status.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from mill_kernel.domain.values import StockQuantity
from mill_kernel.exceptions import UnsupportedEventKindError


class EventKind(str, Enum):
    """Closed set of event kinds the resolver knows how to apply."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"
    TAG_TRANSFER = "tag_transfer"
    CONSUMPTION = "consumption"
    CONVERSION = "conversion"
    CLEARING = "clearing"

    @classmethod
    def parse(cls, value: Any, event_id: Any = None) -> EventKind:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedEventKindError(value, event_id) from None


class MovementType(str, Enum):
    """Business origin of an event as recorded by the mill."""

    PURCHASE = "purchase"
    SHIFTING = "shifting"
    LOOSE = "loose"
    PRODUCTION_SHIFTING = "production-shifting"
    FOR_PRODUCTION = "for-production"
    PRODUCTION = "production"
    SALE = "sale"
    LOADING = "loading"
    PALTI = "palti"
    CLEARING = "clearing"


class ProductCategory(str, Enum):
    MAIN = "main"
    BY_PRODUCT = "by_product"
    LOSS = "loss"


class ProductType(str, Enum):
    """Milled product types."""

    RICE = "Rice"
    BRAN = "Bran"
    FARM_BRAN = "Farm Bran"
    REJECTION_RICE = "Rejection Rice"
    SIZER_BROKEN = "Sizer Broken"
    REJECTION_BROKEN = "Rejection Broken"
    BROKEN = "Broken"
    ZERO_BROKEN = "Zero Broken"
    FARAM = "Faram"
    UNPOLISHED = "Unpolished"
    RJ_RICE_1 = "RJ Rice 1"
    RJ_RICE_2 = "RJ Rice 2"

    @property
    def category(self) -> ProductCategory:
        return PRODUCT_CATEGORIES[self]

    @property
    def deducts_paddy(self) -> bool:
        """Loss products (bran class) are not charged against the paddy pool."""
        return self.category is not ProductCategory.LOSS


PRODUCT_CATEGORIES: dict[ProductType, ProductCategory] = {
    ProductType.RICE: ProductCategory.MAIN,
    ProductType.BRAN: ProductCategory.LOSS,
    ProductType.FARM_BRAN: ProductCategory.LOSS,
    ProductType.FARAM: ProductCategory.LOSS,
    ProductType.REJECTION_RICE: ProductCategory.BY_PRODUCT,
    ProductType.SIZER_BROKEN: ProductCategory.BY_PRODUCT,
    ProductType.REJECTION_BROKEN: ProductCategory.BY_PRODUCT,
    ProductType.BROKEN: ProductCategory.BY_PRODUCT,
    ProductType.ZERO_BROKEN: ProductCategory.BY_PRODUCT,
    ProductType.UNPOLISHED: ProductCategory.BY_PRODUCT,
    ProductType.RJ_RICE_1: ProductCategory.BY_PRODUCT,
    ProductType.RJ_RICE_2: ProductCategory.BY_PRODUCT,
}


class EventStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class StockEvent:
    """
    One inventory-affecting fact.

    Contract:
        Append-only: an event is never edited in place. Corrections are new
        events. Ordering across events is (event_date, created_at, event_id).

    Guarantees:
        - kind, movement_type, product_type and status are enum members
        - quantity weight is quintals (normalized at the store boundary)

    Non-goals:
        - Does NOT validate references; see event_validator.validate_event
    """

    event_id: UUID | str
    event_date: date
    created_at: datetime
    kind: EventKind
    quantity: StockQuantity | None
    variety: str | None = None
    movement_type: MovementType | None = None
    source_location_id: UUID | str | None = None
    target_location_id: UUID | str | None = None
    batch_id: UUID | str | None = None
    packaging_id: UUID | str | None = None
    source_packaging_id: UUID | str | None = None
    target_packaging_id: UUID | str | None = None
    product_type: ProductType | None = None
    shortage_kg: Decimal = Decimal("0")
    paddy_bags_deducted: int | None = None
    rate: Decimal | None = None
    status: EventStatus = EventStatus.APPROVED
    linked_event_id: UUID | str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", EventKind.parse(self.kind, self.event_id))
        if self.movement_type is not None and not isinstance(
            self.movement_type, MovementType
        ):
            object.__setattr__(self, "movement_type", MovementType(self.movement_type))
        if self.product_type is not None and not isinstance(
            self.product_type, ProductType
        ):
            object.__setattr__(self, "product_type", ProductType(self.product_type))
        if not isinstance(self.status, EventStatus):
            object.__setattr__(self, "status", EventStatus(self.status))
        if not isinstance(self.shortage_kg, Decimal):
            object.__setattr__(self, "shortage_kg", Decimal(str(self.shortage_kg or 0)))
        if self.rate is not None and not isinstance(self.rate, Decimal):
            object.__setattr__(self, "rate", Decimal(str(self.rate)))

    @property
    def sort_key(self) -> tuple[date, datetime, str]:
        return (self.event_date, self.created_at, str(self.event_id))

    @property
    def is_approved(self) -> bool:
        return self.status is EventStatus.APPROVED

    @property
    def is_purchase(self) -> bool:
        return self.kind is EventKind.INBOUND and self.movement_type in (
            None,
            MovementType.PURCHASE,
        )


def sort_events(events: list[StockEvent] | tuple[StockEvent, ...]) -> list[StockEvent]:
    """Return events in canonical ledger order."""
    return sorted(events, key=lambda e: e.sort_key)
