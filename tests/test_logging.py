"""Tests for the structured logging system (revenue_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from revenue_kernel.logging_config import (
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
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "revenue_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("allocation_completed", extra={"pobs_created": 2, "strategy": "RELATIVE_SSP"})

        record = _parse_log(stream)
        assert record["pobs_created"] == 2
        assert record["strategy"] == "RELATIVE_SSP"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", company_id="co-1")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["company_id"] == "co-1"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_revenue_exception_code_extracted(self):
        """Revenue kernel exceptions carry a .code attribute and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from revenue_kernel.exceptions import SspNotFoundError

        try:
            raise SspNotFoundError("WIDGET", "EUR")
        except SspNotFoundError:
            logger.error("allocation_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "SSP_NOT_FOUND"
        assert record["exc_type"] == "SspNotFoundError"
        assert record["exc_product_id"] == "WIDGET"
        assert record["exc_currency"] == "EUR"
        assert record["exc_message"] == "No SSP found for product WIDGET"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "company_id" not in record

    def test_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        uid = uuid4()
        logger.info("with_uuid", extra={"pob_id": uid})

        record = _parse_log(stream)
        assert record["pob_id"] == str(uid)

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # default level is INFO, so the debug record is dropped
        assert len(logs) == 2
        for record in logs:
            assert "ts" in record
            assert "level" in record
            assert "logger" in record
            assert "message" in record

    def test_validation_error_field_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from revenue_kernel.exceptions import ValidationError

        try:
            raise ValidationError("closing_balance", "closing_balance is not numeric: 'lots'")
        except ValidationError:
            logger.error("rollforward_rejected", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "VALIDATION_ERROR"
        assert record["exc_field"] == "closing_balance"

    def test_unknown_method_error_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from revenue_engines.schedule import parse_recognition_method
        from revenue_kernel.exceptions import UnknownRecognitionMethodError

        try:
            parse_recognition_method("WEEKLY")
        except UnknownRecognitionMethodError:
            logger.error("change_order_rejected", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "UNKNOWN_RECOGNITION_METHOD"
        assert record["exc_method"] == "WEEKLY"
        assert record["exc_message"] == "Unknown recognition method: WEEKLY"

    def test_money_and_period_extras_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from revenue_modules.ssp.models import SspMethod

        logger.info(
            "ssp_entry_upserted",
            extra={
                "amount": Decimal("1234.50"),
                "valid_from": date(2024, 1, 1),
                "method": SspMethod.BENCHMARK,
            },
        )

        record = _parse_log(stream)
        assert record["amount"] == "1234.50"
        assert record["valid_from"] == "2024-01-01"
        assert record["method"] == "BENCHMARK"

    def test_extra_does_not_override_context(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        with LogContext.bind(run_id="run-1"):
            logger.info("allocation_started", extra={"run_id": "other"})

        record = _parse_log(stream)
        assert record["run_id"] == "run-1"

    def test_failed_side_write_logged_with_original_error(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("modules.allocation.service")

        try:
            raise RuntimeError("audit store down")
        except RuntimeError:
            logger.exception("allocation_failure_audit_failed", extra={
                "allocation_error": "Invoice not found",
            })

        record = _parse_log(stream)
        assert record["level"] == "ERROR"
        assert record["exc_type"] == "RuntimeError"
        assert record["allocation_error"] == "Invoice not found"
        assert "exc_code" not in record


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", run_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "run_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(company_id="outer")
        with LogContext.bind(company_id="inner"):
            assert LogContext.get_all()["company_id"] == "inner"
        assert LogContext.get_all()["company_id"] == "outer"

    def test_bind_restores_none(self):
        assert "change_order_id" not in LogContext.get_all()
        with LogContext.bind(change_order_id="temp"):
            assert LogContext.get_all()["change_order_id"] == "temp"
        assert "change_order_id" not in LogContext.get_all()

    def test_bind_stringifies_uuids(self):
        uid = uuid4()
        with LogContext.bind(actor_id=uid):
            assert LogContext.get_all()["actor_id"] == str(uid)

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(company_id="c", not_a_field="ignored"):
            assert LogContext.get_all() == {"company_id": "c"}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            company_id="co",
            actor_id="a",
            run_id="r",
            change_order_id="o",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["change_order_id"] == "o"

    def test_nested_bind_restores_outer_run(self):
        with LogContext.bind(company_id="co", run_id="outer"):
            with LogContext.bind(run_id="inner", change_order_id="chg"):
                assert LogContext.get_all() == {
                    "company_id": "co", "run_id": "inner", "change_order_id": "chg",
                }
            assert LogContext.get_all() == {"company_id": "co", "run_id": "outer"}
        assert LogContext.get_all() == {}

    def test_bind_restores_after_exception(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(run_id="failing"):
                raise RuntimeError("allocation failed")
        assert "run_id" not in LogContext.get_all()

    def test_bind_skips_none_values(self):
        LogContext.set(change_order_id="kept")
        with LogContext.bind(change_order_id=None, run_id="r"):
            assert LogContext.get_all()["change_order_id"] == "kept"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        root = logging.getLogger("revenue_kernel")
        assert h1 in root.handlers
        assert h2 not in root.handlers
        structured = [h for h in root.handlers if isinstance(h.formatter, StructuredFormatter)]
        assert structured == [h1]

    def test_get_logger_returns_child(self):
        logger = get_logger("modules.allocation.service")
        assert logger.name == "revenue_kernel.modules.allocation.service"

    def test_engine_trace_uses_kernel_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        from revenue_engines.constraint import constrain_estimate

        constrain_estimate(estimate=Decimal("100"), confidence=Decimal("0.9"))

        traces = [r for r in _parse_all_logs(stream) if r["message"] == "REVENUE_ENGINE_TRACE"]
        assert len(traces) == 1
        assert traces[0]["engine_name"] == "variable_consideration.constraint"
        assert len(traces[0]["input_fingerprint"]) == 16
