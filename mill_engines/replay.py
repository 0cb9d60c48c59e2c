"""
Ledger Replay Engine -- day-by-day opening/closing reconstruction.

Responsibility:
    Iterates a scoped event sequence and produces one LedgerDay per calendar
    day in a range: opening snapshot, the day's events grouped by kind, and
    closing snapshot. State is seeded from every eligible event dated before
    the range.

Architecture position:
    Engines -- pure calculation layer, zero I/O. Reads no clock; the result
    is a pure function of the inputs.

Invariants enforced:
    - Continuity: closing(D) and opening(D+1) are the same PoolSnapshot
      object. Days without events reuse the previous snapshot unchanged.
    - Every calendar day in the range is emitted, including empty ones.
    - Determinism: identical inputs yield identical output.

Failure modes:
    - ValueError if date_from > date_to.
    - Per-event shape problems become warnings (see eligibility).
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from types import MappingProxyType

from mill_config.schema import MillingRules
from mill_engines.eligibility import screen_events
from mill_engines.resolver import apply_events
from mill_engines.tracer import traced_engine
from mill_kernel.domain.events import EventKind, StockEvent
from mill_kernel.domain.pools import EMPTY_SNAPSHOT, LedgerView, PoolKey, PoolSnapshot
from mill_kernel.domain.reference import ReferenceData
from mill_kernel.domain.values import ZERO, StockQuantity
from mill_kernel.domain.warnings import LedgerWarning, WarningCode
from mill_kernel.logging_config import get_logger

logger = get_logger("engines.replay")


@dataclass(frozen=True)
class LedgerDay:
    """One reported day of the ledger."""

    date: date
    opening: PoolSnapshot
    events_by_kind: Mapping[EventKind, tuple[StockEvent, ...]]
    closing: PoolSnapshot

    @property
    def opening_total(self) -> StockQuantity:
        return self.opening.total

    @property
    def closing_total(self) -> StockQuantity:
        return self.closing.total

    @property
    def event_count(self) -> int:
        return sum(len(v) for v in self.events_by_kind.values())


@dataclass(frozen=True)
class LedgerReplay:
    """Result of a replay: the days in order plus every warning raised."""

    days: tuple[LedgerDay, ...]
    warnings: tuple[LedgerWarning, ...]
    seeded_event_count: int

    def day(self, on: date) -> LedgerDay:
        for d in self.days:
            if d.date == on:
                return d
        raise KeyError(on)

    @property
    def opening(self) -> PoolSnapshot:
        return self.days[0].opening if self.days else EMPTY_SNAPSHOT

    @property
    def closing(self) -> PoolSnapshot:
        return self.days[-1].closing if self.days else EMPTY_SNAPSHOT


def date_range(date_from: date, date_to: date) -> Iterable[date]:
    day = date_from
    while day <= date_to:
        yield day
        day += timedelta(days=1)


def check_continuity(days: Sequence[LedgerDay]) -> list[LedgerWarning]:
    """
    CONTINUITY_BREAK warnings for every key where closing(D) != opening(D+1).

    A key missing on one side counts as zero.
    """
    warnings: list[LedgerWarning] = []
    for prev, nxt in zip(days, days[1:]):
        if prev.closing is nxt.opening:
            continue
        keys = set(prev.closing) | set(nxt.opening)
        for key in sorted(keys, key=PoolKey.sort_tuple):
            before = prev.closing.get_or_zero(key)
            after = nxt.opening.get_or_zero(key)
            if before != after:
                warnings.append(
                    LedgerWarning(
                        code=WarningCode.CONTINUITY_BREAK,
                        message=(
                            f"Closing {before} on {prev.date} does not match "
                            f"opening {after} on {nxt.date}"
                        ),
                        key=key,
                        on_date=nxt.date,
                    )
                )
    return warnings


@traced_engine(
    "ledger_replay",
    "1.0",
    fingerprint_fields=("events", "date_from", "date_to", "view"),
)
def replay_ledger(
    events: Iterable[StockEvent],
    *,
    date_from: date,
    date_to: date,
    view: LedgerView,
    refs: ReferenceData,
    rules: MillingRules | None = None,
) -> LedgerReplay:
    """
    Reconstruct opening/closing stock for every day in [date_from, date_to].

    Args:
        events: Scoped events; ordering is re-established canonically.
        date_from: First reported day.
        date_to: Last reported day (inclusive).
        view: Which ledger (key granularity) to build.
        refs: Reference data to resolve event references.
        rules: Milling rules; defaults apply when omitted.
    """
    if date_from > date_to:
        raise ValueError(f"date_from {date_from} is after date_to {date_to}")
    rules = rules or MillingRules()

    screened = screen_events(
        (e for e in events if e.event_date <= date_to), view=view, refs=refs
    )
    warnings: list[LedgerWarning] = list(screened.warnings)
    negative_seen: set[PoolKey] = set()

    prior: list[StockEvent] = []
    by_day: dict[date, list[StockEvent]] = defaultdict(list)
    for event in screened.eligible:
        if event.event_date < date_from:
            prior.append(event)
        else:
            by_day[event.event_date].append(event)

    pools: dict[PoolKey, StockQuantity] = {}
    seeded = apply_events(
        pools,
        prior,
        view=view,
        refs=refs,
        rules=rules,
        negative_seen=negative_seen,
        warnings=warnings,
    )
    current = PoolSnapshot(pools) if pools else EMPTY_SNAPSHOT

    days: list[LedgerDay] = []
    for day in date_range(date_from, date_to):
        opening = current
        day_events = by_day.get(day, [])
        if day_events:
            working = opening.thaw()
            apply_events(
                working,
                day_events,
                view=view,
                refs=refs,
                rules=rules,
                negative_seen=negative_seen,
                warnings=warnings,
            )
            current = PoolSnapshot(working)
        grouped: dict[EventKind, list[StockEvent]] = defaultdict(list)
        for event in day_events:
            grouped[event.kind].append(event)
        days.append(
            LedgerDay(
                date=day,
                opening=opening,
                events_by_kind=MappingProxyType(
                    {kind: tuple(evts) for kind, evts in grouped.items()}
                ),
                closing=current,
            )
        )

    warnings.extend(check_continuity(days))

    logger.info(
        "ledger_replay_completed",
        extra={
            "view": view.value,
            "date_from": date_from,
            "date_to": date_to,
            "day_count": len(days),
            "seeded_event_count": seeded,
            "applied_event_count": sum(len(v) for v in by_day.values()),
            "warning_count": len(warnings),
            "closing_bags": days[-1].closing_total.bags if days else ZERO.bags,
        },
    )

    return LedgerReplay(
        days=tuple(days),
        warnings=tuple(warnings),
        seeded_event_count=seeded,
    )
