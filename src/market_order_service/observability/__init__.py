"""Logging, OpenTelemetry instrumentation and observability utilities."""

from market_order_service.observability.config import configure_logging, setup_observability
from market_order_service.observability.decorators import traced

__all__ = ["setup_observability", "configure_logging", "traced"]
