"""Shared pytest fixtures and configuration for all tests."""

import os
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import pytest

# Entry point modules skip building the real application in test mode.
os.environ["ENVIRONMENT"] = "test"

from market_order_service.clock import FixedClock  # noqa: E402
from market_order_service.models.catalog_models import MenuItem, Vendor  # noqa: E402
from market_order_service.models.order_models import (  # noqa: E402
    Order,
    OrderStatus,
    PaymentMethod,
    Ticket,
    TicketStatus,
)


@pytest.fixture
def fixed_now() -> datetime:
    """Fixture providing a fixed instant (12:00 in Lusaka)."""
    return datetime(2024, 6, 1, 10, 0, tzinfo=UTC)


@pytest.fixture
def clock(fixed_now: datetime) -> FixedClock:
    """Fixture providing a clock frozen at fixed_now."""
    return FixedClock(fixed_now)


@pytest.fixture
def vendor() -> Vendor:
    """Fixture providing an active vendor."""
    return Vendor(id="v1", name="Mama's Kitchen", slug="mamas-kitchen", active=True)


@pytest.fixture
def menu_items() -> list[MenuItem]:
    """Fixture providing orderable menu items of vendor v1."""
    return [
        MenuItem(id="m1", vendor_id="v1", name="Nshima & Beef", price_cents=2500),
        MenuItem(id="m2", vendor_id="v1", name="Chips", price_cents=1500),
    ]


@pytest.fixture
def ticket(fixed_now: datetime) -> Ticket:
    """Fixture providing an open ticket."""
    return Ticket(id="t1", ticket_code="WL-4821", status=TicketStatus.OPEN, created_at=fixed_now)


@pytest.fixture
def make_order(fixed_now: datetime) -> Callable[..., Order]:
    """Fixture providing a factory for Order records with sensible defaults."""

    def _make(**overrides: Any) -> Order:
        values: dict[str, Any] = {
            "id": "o1",
            "order_code": "MS-1234",
            "vendor_id": "v1",
            "ticket_id": "t1",
            "total_cents": 6500,
            "net_cents": 5603,
            "tax_cents": 897,
            "tax_rate": Decimal("16"),
            "status": OrderStatus.PREPARING,
            "payment_method": PaymentMethod.CASH,
            "created_at": fixed_now,
            "business_date": "2024-06-01",
            "preparing_at": fixed_now,
        }
        values.update(overrides)
        return Order(**values)

    return _make
