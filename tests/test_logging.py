"""Tests for the structured logging system (mill_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from mill_kernel.exceptions import NothingToClearError
from mill_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite configuration."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "mill_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("pool_updated", extra={"bags": 81, "view": "paddy"})

        record = _parse_log(stream)
        assert record["bags"] == 81
        assert record["view"] == "paddy"

    def test_domain_values_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "values",
            extra={"batch": uid, "on": date(2024, 4, 3), "weight": Decimal("15.75")},
        )

        record = _parse_log(stream)
        assert record["batch"] == str(uid)
        assert record["on"] == "2024-04-03"
        assert record["weight"] == "15.75"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", batch_id="batch-1")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["batch_id"] == "batch-1"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "batch_id" not in record

    def test_mill_exception_fields_extracted(self):
        """Kernel exceptions carry a code and structured attributes."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise NothingToClearError("batch-9", 0)
        except NothingToClearError:
            get_logger("test").error("clear_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "NOTHING_TO_CLEAR"
        assert record["exc_type"] == "NothingToClearError"
        assert record["exc_batch_id"] == "batch-9"
        assert record["exc_remaining_bags"] == 0
        assert "traceback" in record

    def test_level_filtering(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", event_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "event_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous(self):
        LogContext.set(batch_id="outer")
        with LogContext.bind(batch_id="inner"):
            assert LogContext.get_all()["batch_id"] == "inner"
        assert LogContext.get_all()["batch_id"] == "outer"

    def test_bind_restores_none(self):
        with LogContext.bind(actor_id="temp"):
            assert LogContext.get_all()["actor_id"] == "temp"
        assert "actor_id" not in LogContext.get_all()

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(producer="x", batch_id="b"):
            assert LogContext.get_all() == {"batch_id": "b"}

    def test_values_stored_as_text(self):
        batch = uuid4()
        LogContext.set(batch_id=batch, ledger_view="paddy")
        assert LogContext.get_all() == {"batch_id": str(batch), "ledger_view": "paddy"}

    def test_bind_inside_bind(self):
        with LogContext.bind(ledger_view="rice"):
            with LogContext.bind(location_id="loc-1"):
                assert LogContext.get_all() == {
                    "ledger_view": "rice",
                    "location_id": "loc-1",
                }
            assert LogContext.get_all() == {"ledger_view": "rice"}
        assert LogContext.get_all() == {}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            event_id="e",
            actor_id="a",
            batch_id="b",
            trace_id="t",
        )
        assert len(LogContext.get_all()) == 5


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert len(logging.getLogger("mill_kernel").handlers) == 1

    def test_get_logger_returns_child(self):
        assert get_logger("engines.replay").name == "mill_kernel.engines.replay"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "mill_kernel.deep.nested.module"
