"""Tests for the structured logging system (procurement_kernel/logging_config.py)."""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from procurement_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


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
        assert record["logger"] == "procurement_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("request_finalized", extra={"stage": 2, "request_type": "ISSUE"})

        record = _parse_log(stream)
        assert record["stage"] == 2
        assert record["request_type"] == "ISSUE"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(pending_id="TRX-000001-P", actor_id="m@example.com")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["pending_id"] == "TRX-000001-P"
        assert record["actor_id"] == "m@example.com"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_attributes_extracted(self):
        """Kernel exceptions carry a .code and structured attributes."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        from procurement_kernel.exceptions import StockInsufficientError

        try:
            raise StockInsufficientError("SKU-1", 2, 5)
        except StockInsufficientError:
            get_logger("test").error("stock_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == StockInsufficientError.code
        assert record["exc_type"] == "StockInsufficientError"
        assert record["exc_sku"] == "SKU-1"
        assert (record["exc_on_hand"], record["exc_requested"]) == (2, 5)

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "pending_id" not in record

    def test_non_json_types_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        when = datetime(2024, 1, 1, tzinfo=timezone.utc)
        get_logger("test").info(
            "typed",
            extra={"row_id": uid, "price": Decimal("2.50"), "when": when, "skus": ("A", "B")},
        )

        record = _parse_log(stream)
        assert record["row_id"] == str(uid)
        assert record["price"] == "2.50"
        assert record["when"] == when.isoformat()
        assert record["skus"] == ["A", "B"]

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # default level is INFO
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= set(record)


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", link_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "link_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(pending_id="outer")
        with LogContext.bind(pending_id="inner"):
            assert LogContext.get_all()["pending_id"] == "inner"
        assert LogContext.get_all()["pending_id"] == "outer"

    def test_bind_restores_none(self):
        assert "link_id" not in LogContext.get_all()
        with LogContext.bind(link_id="temp"):
            assert LogContext.get_all()["link_id"] == "temp"
        assert "link_id" not in LogContext.get_all()

    def test_bind_rejects_unknown_field(self):
        with pytest.raises(TypeError):
            LogContext.bind(event_id="nope")

    def test_all_fields(self):
        LogContext.set(correlation_id="c", pending_id="p", link_id="l", actor_id="a")
        ctx = LogContext.get_all()
        assert len(ctx) == 4
        assert ctx["link_id"] == "l"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert len(logging.getLogger("procurement_kernel").handlers) == 1

    def test_get_logger_returns_child(self):
        assert get_logger("services.approval_workflow").name == (
            "procurement_kernel.services.approval_workflow"
        )

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "procurement_kernel.deep.nested.module"
