"""
Reference data DTOs: locations, packagings and batches (outturns).

Pure frozen snapshots loaded by the selector and handed to the engines.
Engines resolve every event reference against a ReferenceData instance and
never touch the database.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from types import MappingProxyType
from typing import Any
from uuid import UUID

Ref = UUID | str


def _ref(value: Any) -> str:
    return str(value)


@dataclass(frozen=True, slots=True)
class Location:
    """A physical storage point (warehouse x sub-location)."""

    id: Ref
    code: str
    warehouse: str | None = None
    name: str | None = None


@dataclass(frozen=True, slots=True)
class Packaging:
    """Bag type; conversion ratios depend on kg_per_bag."""

    id: Ref
    brand_name: str
    kg_per_bag: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.kg_per_bag, Decimal):
            object.__setattr__(self, "kg_per_bag", Decimal(str(self.kg_per_bag)))
        if self.kg_per_bag <= 0:
            raise ValueError(
                f"Packaging {self.brand_name} kg_per_bag must be positive: "
                f"{self.kg_per_bag}"
            )


@dataclass(frozen=True, slots=True)
class Batch:
    """
    A production lot (outturn).

    Lifecycle is Open -> Cleared, once. ``cleared_at`` is the closure
    timestamp; events dated after its calendar day are excluded from every
    balance.
    """

    id: Ref
    code: str
    allotted_variety: str | None = None
    is_cleared: bool = False
    cleared_at: datetime | None = None
    yield_percentage: Decimal | None = None
    average_rate: Decimal | None = None
    yield_computed_at: datetime | None = None

    @property
    def cleared_on(self) -> date | None:
        """
        UTC calendar day of clearing, or None while the batch is open.

        Naive timestamps (SQLite drops the offset) are taken as UTC.
        """
        if not self.is_cleared or self.cleared_at is None:
            return None
        if self.cleared_at.tzinfo is None:
            return self.cleared_at.date()
        return self.cleared_at.astimezone(timezone.utc).date()


@dataclass(frozen=True)
class ReferenceData:
    """
    Immutable id -> entity mappings used to resolve event references.

    Keys are normalized to ``str`` so UUID and string ids resolve alike.
    """

    locations: Mapping[str, Location] = field(default_factory=dict)
    batches: Mapping[str, Batch] = field(default_factory=dict)
    packagings: Mapping[str, Packaging] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in ("locations", "batches", "packagings"):
            value = getattr(self, name)
            object.__setattr__(
                self,
                name,
                MappingProxyType({_ref(k): v for k, v in dict(value).items()}),
            )

    @classmethod
    def build(
        cls,
        locations: Iterable[Location] = (),
        batches: Iterable[Batch] = (),
        packagings: Iterable[Packaging] = (),
    ) -> ReferenceData:
        return cls(
            locations={_ref(x.id): x for x in locations},
            batches={_ref(x.id): x for x in batches},
            packagings={_ref(x.id): x for x in packagings},
        )

    def location(self, location_id: Ref | None) -> Location | None:
        return None if location_id is None else self.locations.get(_ref(location_id))

    def batch(self, batch_id: Ref | None) -> Batch | None:
        return None if batch_id is None else self.batches.get(_ref(batch_id))

    def packaging(self, packaging_id: Ref | None) -> Packaging | None:
        return None if packaging_id is None else self.packagings.get(_ref(packaging_id))
