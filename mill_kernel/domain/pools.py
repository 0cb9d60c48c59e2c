"""
Pools -- Stock pool keys, immutable snapshots and ledger scopes.

Responsibility:
    Defines the composite PoolKey, the two ledger views that choose key
    granularity, the PoolSnapshot shared between a day's closing and the next
    day's opening, and the LedgerScope used to query the event store.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Key granularity per view:
    PADDY  untagged  (variety, location, -, -, -)
           tagged    (variety, -, batch, -, -)
    RICE             (variety, location, -, packaging, product)
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from mill_kernel.domain.values import ZERO, StockQuantity


class LedgerView(str, Enum):
    """Which ledger is being reconstructed."""

    PADDY = "paddy"
    RICE = "rice"


@dataclass(frozen=True, slots=True)
class PoolKey:
    """
    Composite key of one stock pool.

    Components not used by a view are None. Ids are stored as ``str`` so keys
    built from UUIDs and from strings compare equal and sort deterministically.
    """

    variety: str | None = None
    location_id: str | None = None
    batch_id: str | None = None
    packaging_id: str | None = None
    product: str | None = None

    def __post_init__(self) -> None:
        for name in ("location_id", "batch_id", "packaging_id", "product"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                object.__setattr__(self, name, str(getattr(value, "value", value)))

    @classmethod
    def untagged(cls, variety: str | None, location_id: Any) -> PoolKey:
        return cls(variety=variety, location_id=location_id)

    @classmethod
    def tagged(cls, variety: str | None, batch_id: Any) -> PoolKey:
        return cls(variety=variety, batch_id=batch_id)

    @classmethod
    def finished(
        cls, variety: str | None, location_id: Any, packaging_id: Any, product: Any
    ) -> PoolKey:
        return cls(
            variety=variety,
            location_id=location_id,
            packaging_id=packaging_id,
            product=product,
        )

    @property
    def is_tagged(self) -> bool:
        return self.batch_id is not None

    def sort_tuple(self) -> tuple[str, ...]:
        return tuple(
            "" if v is None else v
            for v in (
                self.variety,
                self.location_id,
                self.batch_id,
                self.packaging_id,
                self.product,
            )
        )


class PoolSnapshot(Mapping[PoolKey, StockQuantity]):
    """
    Immutable PoolKey -> StockQuantity mapping.

    A snapshot is frozen at construction. The replay engine hands the same
    object out as closing(D) and opening(D+1), and reuses it unchanged across
    days without events.
    """

    __slots__ = ("_data", "_total")

    def __init__(self, data: Mapping[PoolKey, StockQuantity] | None = None):
        self._data = MappingProxyType(dict(data or {}))
        total = ZERO
        for qty in self._data.values():
            total = total + qty
        self._total = total

    def __getitem__(self, key: PoolKey) -> StockQuantity:
        return self._data[key]

    def __iter__(self) -> Iterator[PoolKey]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"PoolSnapshot({len(self._data)} pools, total={self._total})"

    def get_or_zero(self, key: PoolKey) -> StockQuantity:
        return self._data.get(key, ZERO)

    @property
    def total(self) -> StockQuantity:
        return self._total

    def sorted_items(self) -> list[tuple[PoolKey, StockQuantity]]:
        return sorted(self._data.items(), key=lambda kv: kv[0].sort_tuple())

    def thaw(self) -> dict[PoolKey, StockQuantity]:
        """Mutable working copy for the next day's application."""
        return dict(self._data)


EMPTY_SNAPSHOT = PoolSnapshot()


@dataclass(frozen=True, slots=True)
class LedgerScope:
    """Entity filter for a ledger query."""

    view: LedgerView = LedgerView.PADDY
    location_id: Any = None
    variety: str | None = None
    batch_id: Any = None

    def describe(self) -> dict[str, Any]:
        return {
            "view": self.view.value,
            "location_id": None if self.location_id is None else str(self.location_id),
            "variety": self.variety,
            "batch_id": None if self.batch_id is None else str(self.batch_id),
        }
