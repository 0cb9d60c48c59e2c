"""EventValidator -- Pure shape validation of stock events per ledger view."""

from mill_kernel.domain.events import EventKind, StockEvent
from mill_kernel.domain.pools import LedgerView
from mill_kernel.domain.reference import ReferenceData
from mill_kernel.exceptions import MalformedEventError, MissingEntityError
from mill_kernel.logging_config import get_logger

logger = get_logger("domain.event_validator")


# Which event kinds each ledger view applies - pure constant
VIEW_KINDS: dict[LedgerView, frozenset[EventKind]] = {
    LedgerView.PADDY: frozenset(
        {
            EventKind.INBOUND,
            EventKind.OUTBOUND,
            EventKind.TAG_TRANSFER,
            EventKind.CONSUMPTION,
            EventKind.CLEARING,
        }
    ),
    LedgerView.RICE: frozenset(
        {
            EventKind.INBOUND,
            EventKind.OUTBOUND,
            EventKind.CONSUMPTION,
            EventKind.CONVERSION,
        }
    ),
}


def in_view(event: StockEvent, view: LedgerView) -> bool:
    return event.kind in VIEW_KINDS[view]


def conversion_location(event: StockEvent):
    """Location a conversion happens at (repacking does not move stock)."""
    return event.source_location_id or event.target_location_id


def validate_event(event: StockEvent, view: LedgerView, refs: ReferenceData) -> None:
    """
    Check that ``event`` carries everything its kind needs in ``view``.

    Raises:
        MalformedEventError: quantity is missing.
        MissingEntityError: a required location/batch/packaging reference is
            absent or does not resolve in ``refs``.
    """
    if event.quantity is None:
        raise MalformedEventError(event.event_id, "quantity")

    kind = event.kind
    if view is LedgerView.PADDY:
        if kind is EventKind.INBOUND:
            if event.batch_id is not None:
                _require_batch(event, refs)
            else:
                _require_location(event, event.target_location_id, refs, "target location")
        elif kind is EventKind.OUTBOUND:
            _require_location(event, event.source_location_id, refs, "source location")
        elif kind is EventKind.TAG_TRANSFER:
            _require_location(event, event.source_location_id, refs, "source location")
            _require_batch(event, refs)
        elif kind is EventKind.CONSUMPTION:
            _require_batch(event, refs)
            _require_product(event)
        elif kind is EventKind.CLEARING:
            _require_batch(event, refs)
    else:
        if kind is EventKind.INBOUND:
            _require_location(event, event.target_location_id, refs, "target location")
            _require_packaging(event, event.packaging_id, refs, "packaging")
            _require_product(event)
        elif kind is EventKind.OUTBOUND:
            _require_location(event, event.source_location_id, refs, "source location")
            _require_packaging(event, event.packaging_id, refs, "packaging")
            _require_product(event)
        elif kind is EventKind.CONSUMPTION:
            _require_batch(event, refs)
            _require_location(event, event.target_location_id, refs, "target location")
            _require_packaging(event, event.packaging_id, refs, "packaging")
            _require_product(event)
        elif kind is EventKind.CONVERSION:
            _require_location(event, conversion_location(event), refs, "location")
            _require_packaging(event, event.source_packaging_id, refs, "source packaging")
            _require_packaging(event, event.target_packaging_id, refs, "target packaging")
            _require_product(event)


def _require_location(event, location_id, refs: ReferenceData, label: str) -> None:
    if location_id is None or refs.location(location_id) is None:
        _missing(event, label, location_id)


def _require_packaging(event, packaging_id, refs: ReferenceData, label: str) -> None:
    if packaging_id is None or refs.packaging(packaging_id) is None:
        _missing(event, label, packaging_id)


def _require_batch(event: StockEvent, refs: ReferenceData) -> None:
    if event.batch_id is None or refs.batch(event.batch_id) is None:
        _missing(event, "batch", event.batch_id)


def _require_product(event: StockEvent) -> None:
    if event.product_type is None:
        _missing(event, "product type", None)


def _missing(event: StockEvent, entity_type: str, entity_id) -> None:
    logger.debug(
        "event_reference_unresolved",
        extra={
            "event_id": str(event.event_id),
            "kind": event.kind.value,
            "entity_type": entity_type,
            "entity_id": None if entity_id is None else str(entity_id),
        },
    )
    raise MissingEntityError(event.event_id, entity_type, entity_id)
