"""
Pure domain layer.

Data transfer objects and value types with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (except the injectable Clock itself)
- I/O

All domain objects are immutable and deterministic.
"""

from mill_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from mill_kernel.domain.event_validator import VIEW_KINDS, in_view, validate_event
from mill_kernel.domain.events import (
    EventKind,
    EventStatus,
    MovementType,
    ProductCategory,
    ProductType,
    StockEvent,
    sort_events,
)
from mill_kernel.domain.pools import (
    EMPTY_SNAPSHOT,
    LedgerScope,
    LedgerView,
    PoolKey,
    PoolSnapshot,
)
from mill_kernel.domain.reference import Batch, Location, Packaging, ReferenceData
from mill_kernel.domain.values import (
    ZERO,
    StockQuantity,
    WeightUnit,
    bags_to_quintals,
    kg_to_quintals,
    round_half_up,
)
from mill_kernel.domain.warnings import LedgerWarning, WarningCode

__all__ = [
    "Batch",
    "Clock",
    "DeterministicClock",
    "EMPTY_SNAPSHOT",
    "EventKind",
    "EventStatus",
    "LedgerScope",
    "LedgerView",
    "LedgerWarning",
    "Location",
    "MovementType",
    "Packaging",
    "PoolKey",
    "PoolSnapshot",
    "ProductCategory",
    "ProductType",
    "ReferenceData",
    "StockEvent",
    "StockQuantity",
    "SystemClock",
    "VIEW_KINDS",
    "WarningCode",
    "WeightUnit",
    "ZERO",
    "bags_to_quintals",
    "in_view",
    "kg_to_quintals",
    "round_half_up",
    "sort_events",
    "validate_event",
]
