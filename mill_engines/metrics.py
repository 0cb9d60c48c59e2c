"""
Derived Metrics -- weighted average purchase rate and batch yield.

Responsibility:
    Full-scan aggregators over the same screened event stream the ledger
    uses. Nothing is maintained incrementally; every call recomputes from
    the events it is given.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Rounding:
    Results are rounded half-up to ``rules.amount_places`` (2 by default).
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from mill_config.schema import MillingRules
from mill_engines.eligibility import screen_events
from mill_engines.tracer import traced_engine
from mill_kernel.domain.events import EventKind, ProductType, StockEvent
from mill_kernel.domain.pools import LedgerView
from mill_kernel.domain.reference import ReferenceData
from mill_kernel.domain.values import round_half_up
from mill_kernel.logging_config import get_logger

logger = get_logger("engines.metrics")

_HUNDRED = Decimal("100")

# Milled but not reported as outturn yield
YIELD_EXCLUDED_PRODUCTS = frozenset({ProductType.FARM_BRAN, ProductType.SIZER_BROKEN})


@traced_engine("weighted_average_rate", "1.0", fingerprint_fields=("events",))
def weighted_average_rate(
    events: Iterable[StockEvent],
    *,
    refs: ReferenceData,
    rules: MillingRules | None = None,
) -> Decimal:
    """
    Sum(rate x quintals) / Sum(quintals) over eligible purchase inbounds.

    Events without a rate do not qualify. Returns 0 when no quantity
    qualifies.
    """
    rules = rules or MillingRules()
    screened = screen_events(events, view=LedgerView.PADDY, refs=refs)

    weighted = Decimal("0")
    quantity = Decimal("0")
    for event in screened.eligible:
        if not event.is_purchase or event.rate is None:
            continue
        weighted += event.rate * event.quantity.weight
        quantity += event.quantity.weight

    if quantity == 0:
        return round_half_up(Decimal("0"), rules.amount_places)
    return round_half_up(weighted / quantity, rules.amount_places)


@traced_engine("yield_percentage", "1.0", fingerprint_fields=("events", "batch_id"))
def yield_percentage(
    events: Iterable[StockEvent],
    *,
    batch_id: Any,
    refs: ReferenceData,
    rules: MillingRules | None = None,
) -> Decimal:
    """
    100 x Sum(output quintals) / Sum(paddy quintals tagged to the batch).

    Output is every consumption of the batch except Farm Bran and Sizer
    Broken; Bran and Faram count. Clearing is not output. Input is
    tag-transfers into the batch plus batch-tagged inbound purchases.
    Returns 0 when there is no input.
    """
    rules = rules or MillingRules()
    target = str(batch_id)
    screened = screen_events(events, view=LedgerView.PADDY, refs=refs)

    tagged_in = Decimal("0")
    output = Decimal("0")
    for event in screened.eligible:
        if event.batch_id is None or str(event.batch_id) != target:
            continue
        if event.kind is EventKind.TAG_TRANSFER or (
            event.kind is EventKind.INBOUND and event.is_purchase
        ):
            tagged_in += event.quantity.weight
        elif (
            event.kind is EventKind.CONSUMPTION
            and event.product_type not in YIELD_EXCLUDED_PRODUCTS
        ):
            output += event.quantity.weight

    if tagged_in == 0:
        result = round_half_up(Decimal("0"), rules.amount_places)
    else:
        result = round_half_up(output / tagged_in * _HUNDRED, rules.amount_places)

    logger.debug(
        "yield_computed",
        extra={
            "batch_id": target,
            "input_quintals": tagged_in,
            "output_quintals": output,
            "yield_percentage": result,
        },
    )
    return result


def merge_weighted_average(
    existing_qty: Decimal,
    existing_rate: Decimal | None,
    added_qty: Decimal,
    added_rate: Decimal | None,
    places: int = 2,
) -> Decimal | None:
    """
    Rate of a destination pool after stock is shifted into it.

    An empty destination takes the incoming rate; an incoming lot without a
    rate leaves the destination rate unchanged.
    """
    if not added_rate:
        return existing_rate
    if existing_qty <= 0 or existing_rate is None:
        return added_rate
    total_qty = existing_qty + added_qty
    if total_qty == 0:
        return existing_rate
    merged = (existing_qty * existing_rate + added_qty * added_rate) / total_qty
    return round_half_up(merged, places)
