"""
Pytest fixtures for the mill kernel test suite.

Provides:
- Structured logging configuration and log capture
- Reference data (locations, packagings, batches) with stable ids
- An event builder with monotonically increasing created_at
- In-memory SQLite sessions and a store helper that writes ORM rows
- A deterministic clock
"""

import json
import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import mill_kernel.models  # noqa: F401
from mill_config import MillingRules
from mill_kernel.db.base import Base
from mill_kernel.domain.clock import DeterministicClock
from mill_kernel.domain.events import (
    EventKind,
    MovementType,
    ProductType,
    StockEvent,
)
from mill_kernel.domain.reference import Batch, Location, Packaging, ReferenceData
from mill_kernel.domain.values import StockQuantity, WeightUnit
from mill_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from mill_kernel.models import LocationModel, OutturnModel, PackagingModel, StockEventModel

# Stable identifiers shared by the whole suite
LOC_A = UUID("00000000-0000-0000-0000-00000000a001")
LOC_B = UUID("00000000-0000-0000-0000-00000000a002")
PACK_50 = UUID("00000000-0000-0000-0000-00000000b050")
PACK_26 = UUID("00000000-0000-0000-0000-00000000b026")
BATCH_1 = UUID("00000000-0000-0000-0000-00000000c001")
BATCH_2 = UUID("00000000-0000-0000-0000-00000000c002")
UNKNOWN_ID = UUID("00000000-0000-0000-0000-00000000dead")

VARIETY = "Sona"
TEST_ACTOR_ID = uuid4()

DAY1 = date(2024, 4, 1)
DAY2 = date(2024, 4, 2)
DAY3 = date(2024, 4, 3)
DAY4 = date(2024, 4, 4)
DAY5 = date(2024, 4, 5)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture mill_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            replay_ledger(...)
            logs = captured_logs()
            assert any(r["message"] == "ledger_replay_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("mill_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: long-running property or concurrency tests")


# =============================================================================
# Reference data and events
# =============================================================================


def build_refs(
    *,
    cleared: dict[UUID, datetime] | None = None,
) -> ReferenceData:
    cleared = cleared or {}
    return ReferenceData.build(
        locations=[
            Location(id=LOC_A, code="A1", warehouse="Main", name="Godown A"),
            Location(id=LOC_B, code="B1", warehouse="Main", name="Godown B"),
        ],
        packagings=[
            Packaging(id=PACK_50, brand_name="Gold 50", kg_per_bag=Decimal("50")),
            Packaging(id=PACK_26, brand_name="Gold 26", kg_per_bag=Decimal("26")),
        ],
        batches=[
            Batch(
                id=batch_id,
                code=code,
                allotted_variety=VARIETY,
                is_cleared=batch_id in cleared,
                cleared_at=cleared.get(batch_id),
            )
            for batch_id, code in ((BATCH_1, "OT-1"), (BATCH_2, "OT-2"))
        ],
    )


@pytest.fixture
def refs() -> ReferenceData:
    return build_refs()


@pytest.fixture
def rules() -> MillingRules:
    return MillingRules()


class EventBuilder:
    """Builds StockEvents with unique ids and increasing created_at."""

    def __init__(self):
        self._seq = 0

    def _stamp(self) -> datetime:
        self._seq += 1
        return datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=self._seq)

    def make(self, kind, on: date, bags: int | None = 0, qtl="0", **fields) -> StockEvent:
        quantity = None if bags is None else StockQuantity.of(bags, qtl)
        fields.setdefault("variety", VARIETY)
        return StockEvent(
            event_id=fields.pop("event_id", uuid4()),
            event_date=on,
            created_at=fields.pop("created_at", self._stamp()),
            kind=kind,
            quantity=quantity,
            **fields,
        )

    def inbound(self, on, bags, qtl, *, location=LOC_A, **fields) -> StockEvent:
        fields.setdefault("movement_type", MovementType.PURCHASE)
        return self.make(
            EventKind.INBOUND, on, bags, qtl, target_location_id=location, **fields
        )

    def outbound(self, on, bags, qtl, *, location=LOC_A, **fields) -> StockEvent:
        fields.setdefault("movement_type", MovementType.SHIFTING)
        return self.make(
            EventKind.OUTBOUND, on, bags, qtl, source_location_id=location, **fields
        )

    def tag_transfer(
        self, on, bags, qtl, *, batch=BATCH_1, location=LOC_A, **fields
    ) -> StockEvent:
        fields.setdefault("movement_type", MovementType.PRODUCTION_SHIFTING)
        return self.make(
            EventKind.TAG_TRANSFER,
            on,
            bags,
            qtl,
            source_location_id=location,
            batch_id=batch,
            **fields,
        )

    def consumption(
        self,
        on,
        output_qtl,
        *,
        batch=BATCH_1,
        product=ProductType.RICE,
        bags=0,
        **fields,
    ) -> StockEvent:
        fields.setdefault("movement_type", MovementType.PRODUCTION)
        return self.make(
            EventKind.CONSUMPTION,
            on,
            bags,
            output_qtl,
            batch_id=batch,
            product_type=product,
            **fields,
        )

    def conversion(
        self,
        on,
        bags,
        *,
        shortage_kg="0",
        source=PACK_50,
        target=PACK_26,
        location=LOC_A,
        product=ProductType.RICE,
        **fields,
    ) -> StockEvent:
        fields.setdefault("movement_type", MovementType.PALTI)
        return self.make(
            EventKind.CONVERSION,
            on,
            bags,
            "0",
            source_location_id=location,
            source_packaging_id=source,
            target_packaging_id=target,
            product_type=product,
            shortage_kg=Decimal(shortage_kg),
            **fields,
        )

    def clearing(self, on, *, batch=BATCH_1, bags=0, qtl="0", **fields) -> StockEvent:
        fields.setdefault("movement_type", MovementType.CLEARING)
        return self.make(EventKind.CLEARING, on, bags, qtl, batch_id=batch, **fields)


@pytest.fixture
def events() -> EventBuilder:
    return EventBuilder()


@pytest.fixture
def scenario_a(events) -> list[StockEvent]:
    """
    Day1 inbound 100 bags at A; Day2 tag 40 bags into B1;
    Day3 milling output of 8.93 qtl Rice (19 paddy bags).
    """
    return [
        events.inbound(DAY1, 100, "75"),
        events.tag_transfer(DAY2, 40, "30"),
        events.consumption(DAY3, "8.93"),
    ]


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return DeterministicClock(
        fixed_time=datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc),
    )


class StoreWriter:
    """Writes reference rows and stock events the way the mill application does."""

    def __init__(self, session, unit: WeightUnit = WeightUnit.STORE_MILLI):
        self.session = session
        self.unit = unit

    def seed_reference(self) -> None:
        self.session.add_all(
            [
                LocationModel(id=LOC_A, code="A1", warehouse="Main", name="Godown A"),
                LocationModel(id=LOC_B, code="B1", warehouse="Main", name="Godown B"),
                PackagingModel(id=PACK_50, brand_name="Gold 50", kg_per_bag=Decimal("50")),
                PackagingModel(id=PACK_26, brand_name="Gold 26", kg_per_bag=Decimal("26")),
                OutturnModel(id=BATCH_1, code="OT-1", allotted_variety=VARIETY),
                OutturnModel(id=BATCH_2, code="OT-2", allotted_variety=VARIETY),
            ]
        )
        self.session.flush()

    def add(self, event: StockEvent, *, kind: str | None = None) -> StockEventModel:
        """Persist a domain event; ``kind`` overrides the stored kind text."""
        qty = event.quantity
        row = StockEventModel(
            id=event.event_id,
            event_date=event.event_date,
            created_at=event.created_at,
            kind=kind or event.kind.value,
            movement_type=event.movement_type.value if event.movement_type else None,
            status=event.status.value,
            bags=None if qty is None else qty.bags,
            weight=None if qty is None else qty.weight * self.unit.per_quintal,
            variety=event.variety,
            source_location_id=event.source_location_id,
            target_location_id=event.target_location_id,
            batch_id=event.batch_id,
            packaging_id=event.packaging_id,
            source_packaging_id=event.source_packaging_id,
            target_packaging_id=event.target_packaging_id,
            product_type=event.product_type.value if event.product_type else None,
            shortage_kg=event.shortage_kg,
            paddy_bags_deducted=event.paddy_bags_deducted,
            rate=event.rate,
            linked_event_id=event.linked_event_id,
        )
        self.session.add(row)
        self.session.flush()
        return row

    def add_all(self, events) -> None:
        for event in events:
            self.add(event)


@pytest.fixture
def store(db_session) -> StoreWriter:
    writer = StoreWriter(db_session)
    writer.seed_reference()
    return writer
