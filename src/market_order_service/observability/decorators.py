"""OpenTelemetry tracing decorators."""

import asyncio
import functools
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Span

from market_order_service.errors import OrderingError

# Type variable for generic function signatures
F = TypeVar("F", bound=Callable[..., Any])


@contextmanager
def _span(tracer: trace.Tracer, name: str, func_name: str, service_name: str) -> Iterator[Span]:
    with tracer.start_as_current_span(name) as span:
        span.set_attribute("service.name", service_name)
        span.set_attribute("function.name", func_name)
        try:
            yield span
            span.set_attribute("success", True)
        except OrderingError as e:
            # Expected business outcome (not found, conflict, ...), not a fault.
            span.set_attribute("success", False)
            span.set_attribute("error.type", type(e).__name__)
            span.set_attribute("http.status_code", e.status_code)
            raise
        except Exception as e:
            span.set_attribute("success", False)
            span.set_attribute("error.type", type(e).__name__)
            span.record_exception(e)
            raise


def traced(span_name: str | None = None, service_name: str = "order-svc") -> Callable[[F], F]:
    """Decorator to add OpenTelemetry tracing to a function.

    Creates a new span for the decorated function. Ordering errors are tagged
    with their type and HTTP status; any other exception is also recorded on
    the span. Async functions are supported.

    Args:
        span_name: Name for the span (defaults to function name if not provided)
        service_name: Service name for span attributes

    Returns:
        Decorated function with tracing

    Example:
        @traced("order.create")
        async def create_order(vendor_id: str, lines: list[CartLine]) -> CreatedOrder:
            ...
    """

    def decorator(func: F) -> F:
        name = span_name or func.__name__
        tracer = trace.get_tracer(service_name)

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            with _span(tracer, name, func.__name__, service_name):
                return await func(*args, **kwargs)

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with _span(tracer, name, func.__name__, service_name):
                return func(*args, **kwargs)

        if asyncio.iscoroutinefunction(func):
            return async_wrapper  # type: ignore
        return sync_wrapper  # type: ignore

    return decorator
