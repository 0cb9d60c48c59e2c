"""
Tests for OutturnService: clearing a batch and refreshing its cached
metrics.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from mill_kernel.domain.events import EventKind
from mill_kernel.domain.pools import LedgerScope, PoolKey
from mill_kernel.domain.values import StockQuantity
from mill_kernel.domain.warnings import WarningCode
from mill_kernel.exceptions import (
    BatchAlreadyClearedError,
    BatchNotFoundError,
    NothingToClearError,
)
from mill_kernel.models import OutturnModel, StockEventModel
from mill_services import ClearingResult, OutturnService, StockLedgerService
from tests.conftest import (
    BATCH_1,
    BATCH_2,
    DAY1,
    DAY2,
    DAY3,
    DAY4,
    DAY5,
    TEST_ACTOR_ID,
    VARIETY,
)


@pytest.fixture
def outturns(db_session, clock, rules):
    return OutturnService(db_session, clock, rules=rules)


@pytest.fixture
def ledger(db_session, rules):
    return StockLedgerService(db_session, rules=rules)


@pytest.fixture
def scenario_store(store, scenario_a):
    store.add_all(scenario_a)
    return store


class TestRemainingTagged:
    def test_remaining_after_milling(self, scenario_store, outturns):
        assert outturns.remaining_tagged(BATCH_1, DAY3) == StockQuantity.of(21, "15.75")
        assert outturns.remaining_tagged(BATCH_1, DAY2) == StockQuantity.of(40, "30")

    def test_untouched_batch(self, scenario_store, outturns):
        assert outturns.remaining_tagged(BATCH_2, DAY3).is_zero


class TestClearOutturn:
    def test_clears_remaining_bags(self, scenario_store, outturns, db_session, clock):
        result = outturns.clear_outturn(BATCH_1, DAY3, TEST_ACTOR_ID)

        assert isinstance(result, ClearingResult)
        assert result.remaining == StockQuantity.of(21, "15.75")
        assert result.cleared_at == datetime(2024, 4, 3, tzinfo=timezone.utc)

        row = db_session.get(OutturnModel, BATCH_1)
        assert row.is_cleared
        assert row.cleared_by == TEST_ACTOR_ID
        assert row.remaining_bags == 21

        clearing = db_session.get(StockEventModel, result.clearing_event_id)
        assert clearing.kind == EventKind.CLEARING.value
        assert clearing.status == "approved"
        assert clearing.event_date == DAY3
        assert clearing.bags == 21
        assert clearing.weight == Decimal("15750")
        assert clearing.paddy_bags_deducted == 21
        assert clearing.created_by_id == TEST_ACTOR_ID
        assert clearing.variety == VARIETY

    def test_ledger_after_clearing(self, scenario_store, outturns, ledger):
        outturns.clear_outturn(BATCH_1, DAY3, TEST_ACTOR_ID)
        result = ledger.balance_as_of(LedgerScope(), DAY3)
        assert result.get(PoolKey.tagged(VARIETY, BATCH_1)).is_zero
        assert result.total.bags == 60

    def test_later_events_excluded_after_clearing(
        self, scenario_store, events, outturns, ledger
    ):
        outturns.clear_outturn(BATCH_1, DAY3, TEST_ACTOR_ID)
        scenario_store.add(events.consumption(DAY4, "4.7"))

        result = ledger.balance_as_of(LedgerScope(), DAY5)
        assert result.total.bags == 60
        assert [w.code for w in result.warnings] == [WarningCode.POSTED_AFTER_CLEARING]

    def test_clearing_on_the_day_does_not_touch_other_batches(
        self, scenario_store, events, outturns, ledger
    ):
        scenario_store.add(events.tag_transfer(DAY2, 10, "7.5", batch=BATCH_2))
        outturns.clear_outturn(BATCH_1, DAY3, TEST_ACTOR_ID)
        result = ledger.balance_as_of(LedgerScope(), DAY3)
        assert result.get(PoolKey.tagged(VARIETY, BATCH_2)) == StockQuantity.of(10, "7.5")

    def test_already_cleared(self, scenario_store, outturns):
        outturns.clear_outturn(BATCH_1, DAY3, TEST_ACTOR_ID)
        with pytest.raises(BatchAlreadyClearedError) as exc_info:
            outturns.clear_outturn(BATCH_1, DAY4, TEST_ACTOR_ID)
        assert exc_info.value.batch_id == str(BATCH_1)

    def test_nothing_to_clear(self, store, outturns, db_session):
        with pytest.raises(NothingToClearError) as exc_info:
            outturns.clear_outturn(BATCH_2, DAY3, TEST_ACTOR_ID)
        assert exc_info.value.remaining_bags == 0
        assert "No remaining bags to clear" in str(exc_info.value)
        assert not db_session.get(OutturnModel, BATCH_2).is_cleared
        assert db_session.execute(select(StockEventModel)).first() is None

    def test_fully_milled_batch_has_nothing_to_clear(self, store, events, outturns):
        store.add_all(
            [
                events.inbound(DAY1, 10, "7.5"),
                events.tag_transfer(DAY1, 10, "7.5"),
                events.consumption(DAY2, "4.7"),
            ]
        )
        with pytest.raises(NothingToClearError):
            outturns.clear_outturn(BATCH_1, DAY2, TEST_ACTOR_ID)

    def test_unknown_batch(self, store, outturns):
        with pytest.raises(BatchNotFoundError):
            outturns.clear_outturn(uuid4(), DAY3, TEST_ACTOR_ID)

    def test_logs_with_batch_context(self, scenario_store, outturns, captured_logs):
        outturns.clear_outturn(BATCH_1, DAY3, TEST_ACTOR_ID)
        cleared = [r for r in captured_logs() if r["message"] == "outturn_cleared"]
        assert len(cleared) == 1
        assert cleared[0]["batch_id"] == str(BATCH_1)
        assert cleared[0]["actor_id"] == str(TEST_ACTOR_ID)
        assert cleared[0]["remaining_bags"] == 21


class TestCachedMetrics:
    def test_refresh_yield(self, scenario_store, outturns, ledger, db_session, clock):
        value = outturns.refresh_yield(BATCH_1)
        assert value == Decimal("29.77")

        row = db_session.get(OutturnModel, BATCH_1)
        assert row.yield_percentage == Decimal("29.77")
        assert row.yield_computed_at == clock.now_utc()
        assert ledger.yield_percentage(BATCH_1) == Decimal("29.77")

    def test_refresh_restamps_computed_at(self, scenario_store, outturns, db_session, clock):
        outturns.refresh_yield(BATCH_1)
        later = clock.advance(3600)
        outturns.refresh_yield(BATCH_1)
        assert db_session.get(OutturnModel, BATCH_1).yield_computed_at == later

    def test_cache_refreshed_after_more_output(
        self, scenario_store, events, outturns, ledger
    ):
        outturns.refresh_yield(BATCH_1)
        scenario_store.add(events.consumption(DAY3, "3", product="Broken"))

        # later milling is not visible through the cache until refreshed
        assert ledger.yield_percentage(BATCH_1) == Decimal("29.77")
        assert ledger.yield_percentage(BATCH_1, use_cache=False) == Decimal("39.77")
        assert outturns.refresh_yield(BATCH_1) == Decimal("39.77")
        assert ledger.yield_percentage(BATCH_1) == Decimal("39.77")

    def test_refresh_average_rate(self, store, events, outturns, db_session):
        store.add_all(
            [
                events.inbound(DAY1, 20, "15", location=None, batch_id=BATCH_1, rate="2000"),
                events.inbound(DAY1, 20, "5", location=None, batch_id=BATCH_1, rate="2400"),
                events.inbound(DAY1, 20, "15", rate="9999"),
            ]
        )
        assert outturns.refresh_average_rate(BATCH_1) == Decimal("2100.00")
        assert db_session.get(OutturnModel, BATCH_1).average_rate == Decimal("2100.00")

    def test_refresh_unknown_batch(self, store, outturns):
        with pytest.raises(BatchNotFoundError):
            outturns.refresh_yield(uuid4())
