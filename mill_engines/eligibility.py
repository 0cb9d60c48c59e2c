"""
Eligibility -- which events a ledger computation may apply.

Responsibility:
    Screens a raw event sequence into the eligible, canonically ordered
    subset for one ledger view, turning per-event problems into warnings.
    Shared by the replay engine, the point-in-time calculator and the
    metrics so that all of them agree on the same event set.

Rules, in order:
    1. status must be approved (others are skipped silently)
    2. kind must belong to the view (others are skipped silently)
    3. the event must pass ``validate_event`` (MISSING_ENTITY /
       MALFORMED_EVENT warning otherwise)
    4. cleared-batch exclusion: an event whose batch was cleared on day C
       and that is dated strictly after C is excluded with a
       POSTED_AFTER_CLEARING warning; events on or before C count normally
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from mill_kernel.domain.event_validator import in_view, validate_event
from mill_kernel.domain.events import StockEvent, sort_events
from mill_kernel.domain.pools import LedgerView
from mill_kernel.domain.reference import ReferenceData
from mill_kernel.domain.warnings import LedgerWarning, WarningCode
from mill_kernel.exceptions import EventShapeError
from mill_kernel.logging_config import get_logger

logger = get_logger("engines.eligibility")


@dataclass(frozen=True)
class ScreenedEvents:
    eligible: tuple[StockEvent, ...]
    warnings: tuple[LedgerWarning, ...]


def is_posted_after_clearing(event: StockEvent, refs: ReferenceData) -> bool:
    batch = refs.batch(event.batch_id)
    if batch is None:
        return False
    cleared_on = batch.cleared_on
    return cleared_on is not None and event.event_date > cleared_on


def screen_events(
    events: Iterable[StockEvent],
    *,
    view: LedgerView,
    refs: ReferenceData,
) -> ScreenedEvents:
    """Return the eligible events of ``view`` in canonical order, plus warnings."""
    eligible: list[StockEvent] = []
    warnings: list[LedgerWarning] = []

    for event in sort_events(list(events)):
        if not event.is_approved or not in_view(event, view):
            continue

        try:
            validate_event(event, view, refs)
        except EventShapeError as exc:
            warnings.append(LedgerWarning.from_shape_error(exc, on_date=event.event_date))
            logger.warning(
                "event_excluded",
                extra={
                    "event_id": str(event.event_id),
                    "reason": exc.code,
                    "detail": str(exc),
                },
            )
            continue

        if is_posted_after_clearing(event, refs):
            batch = refs.batch(event.batch_id)
            warnings.append(
                LedgerWarning(
                    code=WarningCode.POSTED_AFTER_CLEARING,
                    message=(
                        f"Event {event.event_id} dated {event.event_date} posted after "
                        f"batch {batch.code} was cleared on {batch.cleared_on}"
                    ),
                    event_id=str(event.event_id),
                    on_date=event.event_date,
                )
            )
            logger.info(
                "event_excluded",
                extra={
                    "event_id": str(event.event_id),
                    "reason": WarningCode.POSTED_AFTER_CLEARING.value,
                    "batch_id": str(event.batch_id),
                },
            )
            continue

        eligible.append(event)

    return ScreenedEvents(eligible=tuple(eligible), warnings=tuple(warnings))
