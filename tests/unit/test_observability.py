"""Unit tests for tracing, metrics and logging setup."""

import logging
import os
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from pythonjsonlogger import jsonlogger

from campus_storefront.models.order_models import Session
from campus_storefront.observability import configure_logging, traced
from campus_storefront.observability.config import TraceContextFilter, get_service_resource
from campus_storefront.observability.metrics import (
    record_cart_addition,
    record_checkout_failure,
    record_order_placed,
    record_order_status_change,
)


def mock_tracer() -> tuple[MagicMock, MagicMock]:
    span = MagicMock()
    tracer = MagicMock()
    tracer.start_as_current_span.return_value.__enter__.return_value = span
    return tracer, span


@pytest.mark.unit
class TestTraced:
    """Test suite for the traced decorator."""

    @pytest.mark.asyncio
    async def test_async_function_span(self, customer_session: Session) -> None:
        """Test that async calls are wrapped in a span tagged with the caller."""
        tracer, span = mock_tracer()

        with patch("campus_storefront.observability.decorators.trace.get_tracer",
                   return_value=tracer):

            @traced("cart.add")
            async def add(session: Session, quantity: int) -> int:
                return quantity * 2

            assert await add(customer_session, quantity=3) == 6

        tracer.start_as_current_span.assert_called_once_with("cart.add")
        span.set_attribute.assert_any_call("enduser.id", "user_1")
        span.set_attribute.assert_any_call("success", True)

    def test_sync_failure_is_recorded(self) -> None:
        """Test that exceptions are recorded on the span and re-raised."""
        tracer, span = mock_tracer()

        with patch("campus_storefront.observability.decorators.trace.get_tracer",
                   return_value=tracer):

            @traced()
            def explode() -> None:
                raise ValueError("bad input")

            with pytest.raises(ValueError, match="bad input"):
                explode()

        tracer.start_as_current_span.assert_called_once()
        assert tracer.start_as_current_span.call_args.args[0].endswith("explode")
        span.set_attribute.assert_any_call("success", False)
        span.set_attribute.assert_any_call("error.type", "ValueError")
        span.record_exception.assert_called_once()


@pytest.mark.unit
class TestMetrics:
    """Test suite for metric helpers."""

    def test_record_order_placed(self) -> None:
        """Test that order counters and value histogram are updated."""
        with patch("campus_storefront.observability.metrics.orders_placed_counter") as counter, \
                patch("campus_storefront.observability.metrics.order_value_histogram") as histogram:
            record_order_placed("upi", Decimal("240.50"))

        counter.add.assert_called_once_with(1, {"payment_method": "upi"})
        histogram.record.assert_called_once_with(240.5, {"payment_method": "upi"})

    def test_other_counters(self) -> None:
        """Test failure, status and cart counters."""
        with patch("campus_storefront.observability.metrics.checkout_failure_counter") as failures, \
                patch("campus_storefront.observability.metrics.order_status_counter") as statuses, \
                patch("campus_storefront.observability.metrics.cart_additions_counter") as carts:
            record_checkout_failure("empty_cart")
            record_order_status_change("ready")
            record_cart_addition("evening", True)

        failures.add.assert_called_once_with(1, {"reason": "empty_cart"})
        statuses.add.assert_called_once_with(1, {"status": "ready"})
        carts.add.assert_called_once_with(1, {"time_window": "evening", "discounted": True})


@pytest.mark.unit
class TestConfig:
    """Test suite for observability configuration."""

    @patch.dict(os.environ, {"OTEL_SERVICE_NAME": "storefront-test", "ENVIRONMENT": "test"})
    def test_service_resource(self) -> None:
        """Test resource attributes come from the environment."""
        attributes = get_service_resource().attributes

        assert attributes["service.name"] == "storefront-test"
        assert attributes["deployment.environment"] == "test"

    @patch.dict(os.environ, {"LOG_LEVEL": "WARNING"})
    def test_configure_logging_uses_json(self) -> None:
        """Test that the root logger gets one JSON handler at the configured level."""
        root_logger = logging.getLogger()
        saved_handlers = root_logger.handlers[:]
        saved_level = root_logger.level

        try:
            configure_logging("DEBUG")

            assert root_logger.level == logging.WARNING
            assert len(root_logger.handlers) == 1
            assert isinstance(root_logger.handlers[0].formatter, jsonlogger.JsonFormatter)
            assert any(isinstance(f, TraceContextFilter) for f in root_logger.handlers[0].filters)
        finally:
            root_logger.handlers = saved_handlers
            root_logger.setLevel(saved_level)

    def test_trace_context_filter_without_span(self) -> None:
        """Test that records outside a span get empty trace fields."""
        record = logging.LogRecord("test", logging.INFO, __file__, 1, "hello", None, None)

        assert TraceContextFilter().filter(record) is True
        assert record.trace_id is None
        assert record.span_id is None
