"""JSON log lines, request context and logger setup in ownership_kernel.logging_config."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from ownership_kernel.exceptions import InsufficientOwnershipError, OverpaymentRejectedError
from ownership_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


class JsonSink:
    """Handler target that hands back each emitted line as a dict."""

    def __init__(self):
        self.stream = StringIO()
        self.handler = logging.StreamHandler(self.stream)
        self.handler.setFormatter(StructuredFormatter())

    def records(self) -> list[dict]:
        return [json.loads(line) for line in self.stream.getvalue().splitlines() if line]

    def last(self) -> dict:
        return self.records()[-1]


@pytest.fixture
def sink():
    reset_logging()
    out = JsonSink()
    configure_logging(handler=out.handler)
    yield out
    # put back the suite-wide setup from conftest
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def log():
    return get_logger("tests.logging")


class TestLineShape:

    def test_base_fields(self, sink, log):
        log.info("lot_created")

        line = sink.last()
        assert line["message"] == "lot_created"
        assert line["level"] == "INFO"
        assert line["logger"] == "ownership_kernel.tests.logging"
        assert line["ts"].endswith("+00:00")

    def test_extras_become_top_level_keys(self, sink, log):
        log.info("payment_allocation_completed", extra={"lots_paid": 3, "mode": "product"})

        line = sink.last()
        assert (line["lots_paid"], line["mode"]) == (3, "product")

    def test_decimal_uuid_values_written_as_strings(self, sink, log):
        lot_id = uuid4()
        log.info("share", extra={"lot_id": lot_id, "amount": Decimal("12.50")})

        line = sink.last()
        assert line["lot_id"] == str(lot_id)
        assert line["amount"] == "12.50"

    def test_info_threshold_drops_debug(self, sink, log):
        log.debug("hidden")
        log.info("shown")
        log.warning("also_shown", extra={"k": "v"})

        assert [r["message"] for r in sink.records()] == ["shown", "also_shown"]


class TestExceptionFields:

    def test_plain_exception(self, sink, log):
        try:
            raise ValueError("boom")
        except ValueError:
            log.error("failed", exc_info=True)

        line = sink.last()
        assert line["exc_type"] == "ValueError"
        assert line["exc_message"] == "boom"
        assert "exc_code" not in line
        assert "Traceback" in line["traceback"]

    def test_overpayment_fields(self, sink, log):
        try:
            raise OverpaymentRejectedError("RING@BR-1/SUP-1", Decimal("100.00"), Decimal("99.99"))
        except OverpaymentRejectedError:
            log.error("payment_error", exc_info=True)

        line = sink.last()
        assert line["exc_code"] == "OVERPAYMENT_REJECTED"
        assert line["exc_bucket"] == "RING@BR-1/SUP-1"
        assert line["exc_payment_amount"] == "100.00"
        assert line["exc_total_outstanding"] == "99.99"

    def test_shortfall_fields(self, sink, log):
        try:
            raise InsufficientOwnershipError("RING@BR-1", Decimal("4"), Decimal("3"))
        except InsufficientOwnershipError:
            log.warning("depletion_rejected", exc_info=True)

        line = sink.last()
        assert line["exc_type"] == "InsufficientOwnershipError"
        assert line["exc_code"] == "INSUFFICIENT_OWNERSHIP"
        assert line["exc_shortfall"] == "1"
        assert line["exc_measure"] == "quantity"


class TestContextOnLines:

    def test_bound_fields_appear(self, sink, log):
        with LogContext.bind(bucket="RING@BR-1/SUP-1", operation="allocate_payment"):
            log.info("inside")
        log.info("outside")

        inside, outside = sink.records()
        assert inside["bucket"] == "RING@BR-1/SUP-1"
        assert inside["operation"] == "allocate_payment"
        assert "bucket" not in outside
        assert "operation" not in outside

    def test_context_beats_extra(self, sink, log):
        with LogContext.bind(reference="PAY-ctx"):
            log.info("dup", extra={"reference": "PAY-extra"})

        assert sink.last()["reference"] == "PAY-ctx"


class TestLogContext:

    def test_set_merges(self):
        LogContext.set(correlation_id="c-1")
        LogContext.set(reference="PAY-1")
        assert LogContext.get_all() == {"correlation_id": "c-1", "reference": "PAY-1"}

    def test_get_all_in_field_order(self):
        LogContext.set(operation="o", actor_id="a", bucket="b", reference="r", correlation_id="c")
        assert list(LogContext.get_all()) == list(LogContext.FIELDS)

    def test_clear(self):
        LogContext.set(actor_id="clerk")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_nested_bind_unwinds(self):
        with LogContext.bind(operation="deplete"):
            with LogContext.bind(operation="validate", reference="SALE-9"):
                assert LogContext.get_all() == {"operation": "validate", "reference": "SALE-9"}
            assert LogContext.get_all() == {"operation": "deplete"}
        assert LogContext.get_all() == {}

    def test_none_does_not_overwrite(self):
        LogContext.set(reference="kept")
        with LogContext.bind(reference=None, operation="deplete"):
            assert LogContext.get_all()["reference"] == "kept"

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="supplier"):
            LogContext.set(supplier="SUP-1")
        with pytest.raises(TypeError):
            LogContext.bind(lot="x")
        assert LogContext.get_all() == {}


class TestSetup:

    def test_second_configure_is_ignored(self, sink):
        configure_logging(handler=logging.NullHandler())

        handlers = logging.getLogger("ownership_kernel").handlers
        assert sink.handler in handlers
        assert not any(isinstance(h, logging.NullHandler) for h in handlers)

    def test_namespace_does_not_propagate(self, sink):
        assert logging.getLogger("ownership_kernel").propagate is False

    def test_nested_child_reaches_handler(self, sink):
        get_logger("services.payment_allocator").info("from_child")
        assert sink.last()["logger"] == "ownership_kernel.services.payment_allocator"

    def test_reset_removes_handler(self, sink):
        reset_logging()
        assert sink.handler not in logging.getLogger("ownership_kernel").handlers
