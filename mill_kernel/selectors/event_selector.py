"""
Module: mill_kernel.selectors.event_selector
Responsibility: Read-only query interface over the stock event store. Returns
    approved events of a scope in canonical ledger order, converted to domain
    StockEvent values with weights normalized to quintals, plus the reference
    data needed to resolve their keys.
Architecture position: Kernel > Selectors. May import from models/, domain/
    and selectors/base.py. MUST NOT import from engines or services.

Invariants enforced:
    - Ordering is (event_date ASC, created_at ASC, id ASC). This is the single
      source of determinism for every downstream computation.
    - Only status = approved rows are returned.
    - Store weights are converted to quintals here and nowhere else.
    - Kinds are NOT filtered in SQL, so an unknown kind in the store reaches
      the conversion step and raises instead of silently vanishing.

Failure modes:
    - UnsupportedEventKindError when a row carries a kind outside EventKind.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from mill_kernel.domain.events import EventKind, EventStatus, StockEvent
from mill_kernel.domain.pools import LedgerScope, LedgerView
from mill_kernel.domain.reference import Batch, Location, Packaging, ReferenceData
from mill_kernel.domain.values import StockQuantity, WeightUnit
from mill_kernel.logging_config import get_logger
from mill_kernel.models.location import LocationModel, PackagingModel
from mill_kernel.models.outturn import OutturnModel
from mill_kernel.models.stock_event import StockEventModel
from mill_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.event")


class StockEventSelector(BaseSelector[StockEventModel]):
    """
    Selector for stock events and their reference data.

    Contract:
        ``events_for_scope`` returns approved events matching the scope's
        entity filter, ordered canonically. A paddy-view location scope also
        pulls the consumption and clearing events of every batch that was
        tagged out of that location, since those deplete stock that
        originated there.

    Non-goals:
        - Does NOT check event shape or eligibility; the engines do.
    """

    def __init__(
        self,
        session: Session,
        store_unit: WeightUnit = WeightUnit.STORE_MILLI,
    ):
        super().__init__(session)
        self.store_unit = store_unit

    def events_for_scope(
        self,
        scope: LedgerScope,
        *,
        before: date | None = None,
        through: date | None = None,
    ) -> list[StockEvent]:
        """
        Approved events of ``scope`` in canonical order.

        Args:
            scope: Entity filter (view, location, variety, batch).
            before: Only events dated strictly before this day.
            through: Only events dated on or before this day.
        """
        m = StockEventModel
        conditions = [m.status == EventStatus.APPROVED.value]

        if scope.location_id is not None:
            loc = _as_uuid(scope.location_id)
            located = or_(m.source_location_id == loc, m.target_location_id == loc)
            if scope.view is LedgerView.PADDY:
                tagged_here = (
                    select(m.batch_id)
                    .where(
                        m.kind == EventKind.TAG_TRANSFER.value,
                        m.source_location_id == loc,
                        m.batch_id.is_not(None),
                    )
                )
                located = or_(
                    located,
                    and_(
                        m.kind.in_(
                            [EventKind.CONSUMPTION.value, EventKind.CLEARING.value]
                        ),
                        m.batch_id.in_(tagged_here),
                    ),
                )
            conditions.append(located)

        if scope.variety is not None:
            batches_of_variety = select(OutturnModel.id).where(
                OutturnModel.allotted_variety == scope.variety
            )
            conditions.append(
                or_(
                    m.variety == scope.variety,
                    and_(m.variety.is_(None), m.batch_id.in_(batches_of_variety)),
                )
            )

        if scope.batch_id is not None:
            conditions.append(m.batch_id == _as_uuid(scope.batch_id))

        if before is not None:
            conditions.append(m.event_date < before)
        if through is not None:
            conditions.append(m.event_date <= through)

        stmt = (
            select(m)
            .where(*conditions)
            .order_by(m.event_date.asc(), m.created_at.asc(), m.id.asc())
        )
        rows = self.session.execute(stmt).scalars().all()

        logger.debug(
            "events_selected",
            extra={
                **scope.describe(),
                "before": before,
                "through": through,
                "row_count": len(rows),
            },
        )
        return [self._to_event(row) for row in rows]

    def batch_events(self, batch_id: UUID | str) -> list[StockEvent]:
        """Approved paddy events tagged to one batch, in canonical order."""
        return self.events_for_scope(LedgerScope(view=LedgerView.PADDY, batch_id=batch_id))

    def reference_data(self) -> ReferenceData:
        """Load every location, batch and packaging."""
        locations = [
            Location(id=row.id, code=row.code, warehouse=row.warehouse, name=row.name)
            for row in self.session.execute(select(LocationModel)).scalars()
        ]
        packagings = [
            Packaging(id=row.id, brand_name=row.brand_name, kg_per_bag=row.kg_per_bag)
            for row in self.session.execute(select(PackagingModel)).scalars()
        ]
        batches = [
            _to_batch(row)
            for row in self.session.execute(select(OutturnModel)).scalars()
        ]
        return ReferenceData.build(
            locations=locations, batches=batches, packagings=packagings
        )

    def batch(self, batch_id: UUID | str) -> Batch | None:
        row = self.session.get(OutturnModel, _as_uuid(batch_id))
        return None if row is None else _to_batch(row)

    def _to_event(self, row: StockEventModel) -> StockEvent:
        """Convert a row to a StockEvent, normalizing weight to quintals."""
        kind = EventKind.parse(row.kind, row.id)

        if row.bags is None and row.weight is None:
            quantity = None
        else:
            quantity = StockQuantity(
                bags=int(row.bags or 0),
                weight=self.store_unit.to_quintals(row.weight or Decimal("0")),
            )

        return StockEvent(
            event_id=row.id,
            event_date=row.event_date,
            created_at=row.created_at,
            kind=kind,
            quantity=quantity,
            variety=row.variety,
            movement_type=row.movement_type,
            source_location_id=row.source_location_id,
            target_location_id=row.target_location_id,
            batch_id=row.batch_id,
            packaging_id=row.packaging_id,
            source_packaging_id=row.source_packaging_id,
            target_packaging_id=row.target_packaging_id,
            product_type=row.product_type,
            shortage_kg=row.shortage_kg or Decimal("0"),
            paddy_bags_deducted=row.paddy_bags_deducted,
            rate=row.rate,
            status=row.status,
            linked_event_id=row.linked_event_id,
        )


def _to_batch(row: OutturnModel) -> Batch:
    return Batch(
        id=row.id,
        code=row.code,
        allotted_variety=row.allotted_variety,
        is_cleared=bool(row.is_cleared),
        cleared_at=row.cleared_at,
        yield_percentage=row.yield_percentage,
        average_rate=row.average_rate,
        yield_computed_at=row.yield_computed_at,
    )


def _as_uuid(value: UUID | str) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))
