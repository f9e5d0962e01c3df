"""OpenTelemetry tracing decorators."""

import asyncio
import functools
from collections.abc import Callable
from typing import Any, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Span

from campus_storefront.models.order_models import Session

F = TypeVar("F", bound=Callable[..., Any])


def _annotate_caller(span: Span, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
    # Tag the span with the acting user when a Session is passed in
    for value in (*args, *kwargs.values()):
        if isinstance(value, Session):
            span.set_attribute("enduser.id", value.user_id)
            return


def _record_failure(span: Span, error: Exception) -> None:
    span.set_attribute("success", False)
    span.set_attribute("error.type", type(error).__name__)
    span.set_attribute("error.message", str(error))
    span.record_exception(error)


def traced(span_name: str | None = None, service_name: str = "campus-storefront") -> Callable[[F], F]:
    """Decorator to add OpenTelemetry tracing to a function.

    Opens a span around each call, tags it with the acting user when a
    Session argument is present, and records exceptions before re-raising.
    Both plain and async functions are supported.

    Args:
        span_name: Name for the span (defaults to the function name)
        service_name: Tracer name and ``service.name`` span attribute

    Returns:
        Decorated function with tracing

    Example:
        @traced("checkout.place_order")
        async def place_order(self, session: Session, details: CheckoutDetails) -> CheckoutResult:
            ...
    """

    def decorator(func: F) -> F:
        name = span_name or func.__qualname__
        tracer = trace.get_tracer(service_name)

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(name) as span:
                span.set_attribute("service.name", service_name)
                _annotate_caller(span, args, kwargs)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _record_failure(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(name) as span:
                span.set_attribute("service.name", service_name)
                _annotate_caller(span, args, kwargs)
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    _record_failure(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper  # type: ignore
        return sync_wrapper  # type: ignore

    return decorator
