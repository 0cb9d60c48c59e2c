"""
Stock Pool Transfer Resolver -- one pure transform per event kind.

Responsibility:
    Maps one eligible event plus the current pool state to the list of pool
    deltas it causes (an EventEffect), and applies such effects to a working
    pool map. The replay engine and the point-in-time calculator both run
    every event through this module, so they cannot disagree on arithmetic.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Effects (paddy view):
    inbound        untagged(V, target) += q, or tagged(V, batch) += q when
                   the event carries a batch
    outbound       untagged(V, source) -= q
    tag_transfer   untagged(V, source) -= q ; tagged(V, batch) += q
    consumption    tagged(V, batch) -= deducted bags, where deducted is the
                   stored paddy_bags_deducted or round_half_up(output
                   quintals / paddy_bag_yield_quintals), 0 for loss
                   products; weight leaves at the pool's average per bag
    clearing       every tagged pool of the batch -= its whole remainder

Effects (finished-goods view):
    inbound / outbound / consumption   (V, location, packaging, product) +/- q
    conversion     source packaging -= (bags, bags x kg / 100);
                   target packaging += (floor(converted_kg / target kg),
                   converted_kg / 100) with converted_kg = source kg - shortage

Invariants enforced:
    - Tag-transfers net to zero across the whole map.
    - Bags and weight of a conversion shortage leave the system.

Failure modes:
    - KeyError/AttributeError only if called on an event that did not pass
      ``validate_event`` for the same view; callers screen first.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal

from mill_config.schema import MillingRules
from mill_kernel.domain.event_validator import conversion_location
from mill_kernel.domain.events import EventKind, StockEvent
from mill_kernel.domain.pools import LedgerView, PoolKey
from mill_kernel.domain.reference import ReferenceData
from mill_kernel.domain.values import (
    ZERO,
    StockQuantity,
    kg_to_quintals,
    round_half_up,
)
from mill_kernel.domain.warnings import LedgerWarning, WarningCode


@dataclass(frozen=True, slots=True)
class PoolDelta:
    key: PoolKey
    delta: StockQuantity


@dataclass(frozen=True, slots=True)
class EventEffect:
    """All pool mutations caused by one event."""

    event_id: str
    kind: EventKind
    deltas: tuple[PoolDelta, ...]

    @property
    def net(self) -> StockQuantity:
        total = ZERO
        for d in self.deltas:
            total = total + d.delta
        return total


Resolver = Callable[
    [Mapping[PoolKey, StockQuantity], StockEvent, ReferenceData, MillingRules],
    tuple[PoolDelta, ...],
]


def event_variety(event: StockEvent, refs: ReferenceData) -> str | None:
    """Variety of an event, falling back to its batch's allotted variety."""
    if event.variety is not None:
        return event.variety
    batch = refs.batch(event.batch_id)
    return batch.allotted_variety if batch is not None else None


def paddy_bags_deducted(event: StockEvent, rules: MillingRules) -> int:
    """Paddy bags charged against a batch for one milling output."""
    if event.paddy_bags_deducted is not None:
        return event.paddy_bags_deducted
    if event.product_type is None or not event.product_type.deducts_paddy:
        return 0
    return int(round_half_up(event.quantity.weight / rules.paddy_bag_yield_quintals))


# ---------------------------------------------------------------------------
# Paddy view
# ---------------------------------------------------------------------------


def _paddy_inbound(state, event, refs, rules):
    variety = event_variety(event, refs)
    if event.batch_id is not None:
        key = PoolKey.tagged(variety, event.batch_id)
    else:
        key = PoolKey.untagged(variety, event.target_location_id)
    return (PoolDelta(key, event.quantity),)


def _paddy_outbound(state, event, refs, rules):
    key = PoolKey.untagged(event_variety(event, refs), event.source_location_id)
    return (PoolDelta(key, -event.quantity),)


def _paddy_tag_transfer(state, event, refs, rules):
    variety = event_variety(event, refs)
    return (
        PoolDelta(PoolKey.untagged(variety, event.source_location_id), -event.quantity),
        PoolDelta(PoolKey.tagged(variety, event.batch_id), event.quantity),
    )


def _paddy_consumption(state, event, refs, rules):
    key = PoolKey.tagged(event_variety(event, refs), event.batch_id)
    bags = paddy_bags_deducted(event, rules)
    if bags == 0:
        return ()
    pool = state.get(key, ZERO)
    if pool.bags > 0:
        weight = pool.weight * Decimal(bags) / Decimal(pool.bags)
    else:
        weight = Decimal("0")
    return (PoolDelta(key, StockQuantity(-bags, -weight)),)


def _paddy_clearing(state, event, refs, rules):
    batch_id = str(event.batch_id)
    deltas = [
        PoolDelta(key, -qty)
        for key, qty in state.items()
        if key.batch_id == batch_id and not qty.is_zero
    ]
    deltas.sort(key=lambda d: d.key.sort_tuple())
    return tuple(deltas)


# ---------------------------------------------------------------------------
# Finished-goods view
# ---------------------------------------------------------------------------


def _rice_key(event, refs, location_id, packaging_id):
    return PoolKey.finished(
        event_variety(event, refs), location_id, packaging_id, event.product_type
    )


def _rice_inbound(state, event, refs, rules):
    key = _rice_key(event, refs, event.target_location_id, event.packaging_id)
    return (PoolDelta(key, event.quantity),)


def _rice_outbound(state, event, refs, rules):
    key = _rice_key(event, refs, event.source_location_id, event.packaging_id)
    return (PoolDelta(key, -event.quantity),)


def _rice_consumption(state, event, refs, rules):
    # Milling output lands in finished-goods stock
    key = _rice_key(event, refs, event.target_location_id, event.packaging_id)
    return (PoolDelta(key, event.quantity),)


def conversion_amounts(
    bags: int,
    source_kg_per_bag: Decimal,
    target_kg_per_bag: Decimal,
    shortage_kg: Decimal,
) -> tuple[StockQuantity, StockQuantity]:
    """
    Source reduction and target addition of a packaging conversion.

    Returns:
        (removed from source, added to target), both positive.
    """
    source_kg = Decimal(bags) * source_kg_per_bag
    converted_kg = source_kg - shortage_kg
    target_bags = int(
        (converted_kg / target_kg_per_bag).to_integral_value(rounding=ROUND_FLOOR)
    )
    return (
        StockQuantity(bags, kg_to_quintals(source_kg)),
        StockQuantity(target_bags, kg_to_quintals(converted_kg)),
    )


def _rice_conversion(state, event, refs, rules):
    location_id = conversion_location(event)
    source = refs.packaging(event.source_packaging_id)
    target = refs.packaging(event.target_packaging_id)
    removed, added = conversion_amounts(
        event.quantity.bags, source.kg_per_bag, target.kg_per_bag, event.shortage_kg
    )
    return (
        PoolDelta(_rice_key(event, refs, location_id, source.id), -removed),
        PoolDelta(_rice_key(event, refs, location_id, target.id), added),
    )


_RESOLVERS: dict[tuple[LedgerView, EventKind], Resolver] = {
    (LedgerView.PADDY, EventKind.INBOUND): _paddy_inbound,
    (LedgerView.PADDY, EventKind.OUTBOUND): _paddy_outbound,
    (LedgerView.PADDY, EventKind.TAG_TRANSFER): _paddy_tag_transfer,
    (LedgerView.PADDY, EventKind.CONSUMPTION): _paddy_consumption,
    (LedgerView.PADDY, EventKind.CLEARING): _paddy_clearing,
    (LedgerView.RICE, EventKind.INBOUND): _rice_inbound,
    (LedgerView.RICE, EventKind.OUTBOUND): _rice_outbound,
    (LedgerView.RICE, EventKind.CONSUMPTION): _rice_consumption,
    (LedgerView.RICE, EventKind.CONVERSION): _rice_conversion,
}


def resolve_effect(
    state: Mapping[PoolKey, StockQuantity],
    event: StockEvent,
    *,
    view: LedgerView,
    refs: ReferenceData,
    rules: MillingRules,
) -> EventEffect:
    """
    Pool deltas ``event`` causes against ``state`` in ``view``.

    Kinds outside the view resolve to an empty effect.
    """
    resolver = _RESOLVERS.get((view, event.kind))
    deltas = resolver(state, event, refs, rules) if resolver is not None else ()
    return EventEffect(event_id=str(event.event_id), kind=event.kind, deltas=deltas)


def apply_effect(
    pools: dict[PoolKey, StockQuantity], effect: EventEffect
) -> list[PoolKey]:
    """
    Apply ``effect`` to the working map in place.

    Returns:
        Keys the effect left negative.
    """
    negative: list[PoolKey] = []
    for d in effect.deltas:
        updated = pools.get(d.key, ZERO) + d.delta
        pools[d.key] = updated
        if updated.is_negative:
            negative.append(d.key)
    return negative


def apply_events(
    pools: dict[PoolKey, StockQuantity],
    events: Iterable[StockEvent],
    *,
    view: LedgerView,
    refs: ReferenceData,
    rules: MillingRules,
    negative_seen: set[PoolKey],
    warnings: list[LedgerWarning],
) -> int:
    """
    Resolve and apply screened events in order.

    A NEGATIVE_POOL warning is appended the first time an event drives a key
    below zero; ``negative_seen`` carries that memory across calls.

    Returns:
        Number of events applied.
    """
    count = 0
    for event in events:
        effect = resolve_effect(pools, event, view=view, refs=refs, rules=rules)
        for key in apply_effect(pools, effect):
            if key in negative_seen:
                continue
            negative_seen.add(key)
            if rules.warn_on_negative_pools:
                warnings.append(
                    LedgerWarning(
                        code=WarningCode.NEGATIVE_POOL,
                        message=(
                            f"Event {effect.event_id} drove pool below zero: "
                            f"{pools[key]}"
                        ),
                        event_id=effect.event_id,
                        key=key,
                        on_date=event.event_date,
                    )
                )
        count += 1
    return count
