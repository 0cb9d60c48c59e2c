"""
OutturnService -- batch (outturn) write path.

Responsibility:
    Clears a batch, closing its tagged paddy pool with a synthetic clearing
    event, and refreshes the denormalized yield and average-rate caches on
    the batch row.

Architecture position:
    Services -- imperative shell. Flush-only: never commits or rolls back.

Invariants enforced:
    - Clearing is terminal and happens once per batch.
    - The clearing event carries exactly the remaining tagged bags as of
      the clearing day, computed by the point-in-time calculator.
    - cleared_at is midnight UTC of the clearing day, so every event dated
      after that day falls under cleared-batch exclusion.
    - Concurrent clears of the same batch serialize on SELECT ... FOR UPDATE
      of the outturn row.

Failure modes:
    - BatchNotFoundError: unknown batch.
    - BatchAlreadyClearedError: batch already cleared.
    - NothingToClearError: remaining tagged bags <= 0.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from mill_config import MillingRules
from mill_engines.balance import balance_as_of
from mill_engines.metrics import weighted_average_rate, yield_percentage
from mill_kernel.domain.clock import Clock
from mill_kernel.domain.events import EventKind, EventStatus, MovementType
from mill_kernel.domain.pools import LedgerScope, LedgerView
from mill_kernel.domain.values import ZERO, StockQuantity
from mill_kernel.exceptions import (
    BatchAlreadyClearedError,
    BatchNotFoundError,
    NothingToClearError,
)
from mill_kernel.logging_config import LogContext, get_logger
from mill_kernel.models.outturn import OutturnModel
from mill_kernel.models.stock_event import StockEventModel
from mill_services.base import BaseService

logger = get_logger("services.outturn")


@dataclass(frozen=True)
class ClearingResult:
    batch_id: UUID
    clearing_event_id: UUID
    cleared_at: datetime
    remaining: StockQuantity


class OutturnService(BaseService):
    """
    Service for the batch lifecycle and its cached metrics.

    Contract:
        ``clear_outturn`` appends one approved clearing event and marks the
        batch cleared, within the caller's transaction.

    Non-goals:
        - Does NOT re-open a cleared batch.
        - Does NOT call ``session.commit()``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        rules: MillingRules | None = None,
    ):
        super().__init__(session, rules)
        self._clock = clock

    def _get_for_update(self, batch_id: UUID | str) -> OutturnModel:
        batch_uuid = batch_id if isinstance(batch_id, UUID) else UUID(str(batch_id))
        row = self.session.get(OutturnModel, batch_uuid, with_for_update=True)
        if row is None:
            raise BatchNotFoundError(batch_id)
        return row

    def remaining_tagged(self, batch_id: UUID | str, as_of: date) -> StockQuantity:
        """Tagged paddy left in a batch at the close of ``as_of``."""
        events = self.selector.events_for_scope(
            LedgerScope(view=LedgerView.PADDY, batch_id=batch_id), through=as_of
        )
        refs = self.selector.reference_data()
        result = balance_as_of(
            events,
            cutoff=as_of,
            view=LedgerView.PADDY,
            refs=refs,
            rules=self.rules,
        )
        remaining = ZERO
        for key, qty in result.balances.items():
            if key.batch_id == str(batch_id):
                remaining = remaining + qty
        return remaining

    def clear_outturn(
        self,
        batch_id: UUID | str,
        clear_date: date,
        actor_id: UUID,
    ) -> ClearingResult:
        """
        Clear a batch, consuming all remaining tagged paddy.

        Postconditions:
            - One approved ``clearing`` event dated ``clear_date`` carrying
              the remaining bags is appended.
            - The batch is cleared with cleared_at = clear_date 00:00 UTC,
              cleared_by = actor_id and remaining_bags recorded.

        Raises:
            BatchNotFoundError: If the batch does not exist.
            BatchAlreadyClearedError: If the batch is already cleared.
            NothingToClearError: If no tagged bags remain.
        """
        with LogContext.bind(batch_id=str(batch_id), actor_id=str(actor_id)):
            row = self._get_for_update(batch_id)
            if row.is_cleared:
                raise BatchAlreadyClearedError(batch_id, row.cleared_at)

            remaining = self.remaining_tagged(row.id, clear_date)
            if remaining.bags <= 0:
                logger.warning(
                    "outturn_clear_rejected",
                    extra={"remaining_bags": remaining.bags, "clear_date": clear_date},
                )
                raise NothingToClearError(batch_id, remaining.bags)

            event_id = uuid4()
            unit = self.rules.store_weight_unit
            self.session.add(
                StockEventModel(
                    id=event_id,
                    event_date=clear_date,
                    created_at=self._clock.now_utc(),
                    kind=EventKind.CLEARING.value,
                    movement_type=MovementType.CLEARING.value,
                    status=EventStatus.APPROVED.value,
                    bags=remaining.bags,
                    weight=remaining.weight * unit.per_quintal,
                    variety=row.allotted_variety,
                    batch_id=row.id,
                    paddy_bags_deducted=remaining.bags,
                    created_by_id=actor_id,
                )
            )

            cleared_at = datetime.combine(clear_date, time.min, tzinfo=timezone.utc)
            row.is_cleared = True
            row.cleared_at = cleared_at
            row.cleared_by = actor_id
            row.remaining_bags = remaining.bags
            self.session.flush()

            logger.info(
                "outturn_cleared",
                extra={
                    "outturn_code": row.code,
                    "clear_date": clear_date,
                    "remaining_bags": remaining.bags,
                    "remaining_quintals": remaining.weight,
                    "clearing_event_id": str(event_id),
                },
            )

            return ClearingResult(
                batch_id=row.id,
                clearing_event_id=event_id,
                cleared_at=cleared_at,
                remaining=remaining,
            )

    def refresh_yield(self, batch_id: UUID | str) -> Decimal:
        """Recompute the batch yield and store it with its computation time."""
        row = self._get_for_update(batch_id)
        events = self.selector.batch_events(row.id)
        refs = self.selector.reference_data()
        value = yield_percentage(events, batch_id=row.id, refs=refs, rules=self.rules)

        row.yield_percentage = value
        row.yield_computed_at = self._clock.now_utc()
        self.session.flush()

        logger.info(
            "outturn_yield_refreshed",
            extra={"outturn_code": row.code, "yield_percentage": value},
        )
        return value

    def refresh_average_rate(self, batch_id: UUID | str) -> Decimal:
        """Recompute the batch's weighted average purchase rate and store it."""
        row = self._get_for_update(batch_id)
        events = self.selector.batch_events(row.id)
        refs = self.selector.reference_data()
        value = weighted_average_rate(events, refs=refs, rules=self.rules)

        row.average_rate = value
        self.session.flush()

        logger.info(
            "outturn_average_rate_refreshed",
            extra={"outturn_code": row.code, "average_rate": value},
        )
        return value
