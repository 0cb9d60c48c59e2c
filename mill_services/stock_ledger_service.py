"""
StockLedgerService -- library boundary of the stock ledger.

Responsibility:
    Exposes replay, point-in-time balance, average rate and yield for a
    scope. Each call queries the event store once through the selector and
    hands the events to a pure engine.

Architecture position:
    Services -- imperative shell. Read-only: never writes or flushes.

Failure modes:
    - UnsupportedEventKindError propagates from the selector and aborts
      the call.
    - BatchNotFoundError from ``yield_percentage`` for an unknown batch.
    - ValueError from ``replay`` when date_from > date_to.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from mill_engines.balance import BalanceBoundary, BalanceResult, balance_as_of
from mill_engines.metrics import weighted_average_rate, yield_percentage
from mill_engines.replay import LedgerReplay, replay_ledger
from mill_kernel.domain.pools import LedgerScope
from mill_kernel.domain.values import round_half_up
from mill_kernel.exceptions import BatchNotFoundError
from mill_kernel.logging_config import LogContext, get_logger
from mill_services.base import BaseService

logger = get_logger("services.stock_ledger")


def _bind_scope(scope: LedgerScope):
    return LogContext.bind(
        ledger_view=scope.view.value,
        location_id=scope.location_id,
        batch_id=scope.batch_id,
    )


class StockLedgerService(BaseService):
    """
    Stateless recompute-on-read ledger queries.

    Contract:
        Every method recomputes from the event store; the only cache
        consulted is the batch's stored yield, and only when the caller
        allows it.

    Non-goals:
        - Does NOT validate writes (e.g. blocking a sale for insufficient
          stock); that is a write-time policy outside the ledger.
    """

    def replay(self, scope: LedgerScope, date_from: date, date_to: date) -> LedgerReplay:
        """Day-by-day opening/closing stock for ``scope`` over the range."""
        if date_from > date_to:
            raise ValueError(f"date_from {date_from} is after date_to {date_to}")
        with _bind_scope(scope):
            events = self.selector.events_for_scope(scope, through=date_to)
            refs = self.selector.reference_data()
            return replay_ledger(
                events,
                date_from=date_from,
                date_to=date_to,
                view=scope.view,
                refs=refs,
                rules=self.rules,
            )

    def balance_as_of(
        self,
        scope: LedgerScope,
        cutoff: date,
        boundary: BalanceBoundary = BalanceBoundary.CLOSING,
    ) -> BalanceResult:
        """Balance of every pool in ``scope`` at ``cutoff``."""
        boundary = BalanceBoundary(boundary)
        with _bind_scope(scope):
            if boundary is BalanceBoundary.OPENING:
                events = self.selector.events_for_scope(scope, before=cutoff)
            else:
                events = self.selector.events_for_scope(scope, through=cutoff)
            refs = self.selector.reference_data()
            return balance_as_of(
                events,
                cutoff=cutoff,
                view=scope.view,
                refs=refs,
                rules=self.rules,
                boundary=boundary,
            )

    def average_rate(self, scope: LedgerScope) -> Decimal:
        """Weighted average purchase rate over ``scope``."""
        events = self.selector.events_for_scope(scope)
        refs = self.selector.reference_data()
        return weighted_average_rate(events, refs=refs, rules=self.rules)

    def yield_percentage(self, batch_id: UUID | str, use_cache: bool = True) -> Decimal:
        """
        Yield of a batch.

        Returns the stored value when ``use_cache`` is true and a value has
        been computed; otherwise recomputes from the batch's events.
        """
        with LogContext.bind(batch_id=str(batch_id)):
            batch = self.selector.batch(batch_id)
            if batch is None:
                raise BatchNotFoundError(batch_id)

            if use_cache and batch.yield_percentage is not None:
                logger.debug(
                    "yield_cache_hit",
                    extra={"yield_computed_at": batch.yield_computed_at},
                )
                return round_half_up(batch.yield_percentage, self.rules.amount_places)

            events = self.selector.batch_events(batch_id)
            refs = self.selector.reference_data()
            return yield_percentage(
                events, batch_id=batch_id, refs=refs, rules=self.rules
            )
