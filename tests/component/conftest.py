"""In-memory stores and catalog for component tests.

The fakes implement the same methods as the DynamoDB repositories and the
catalog client, including the conditional semantics the services rely on:
code claims fail on taken codes, order writes are all-or-nothing and status
updates are guarded by the expected current status.
"""

import random
from datetime import UTC, datetime
from typing import Any

import pytest

from market_order_service.clock import FixedClock
from market_order_service.errors import CodeCollisionError
from market_order_service.models.catalog_models import MenuItem, Vendor
from market_order_service.models.order_models import (
    CodeKind,
    Order,
    OrderEvent,
    OrderItem,
    OrderStatus,
    Ticket,
)
from market_order_service.services.aggregation_service import AggregationService
from market_order_service.services.code_generator import CodeGenerator
from market_order_service.services.lifecycle_service import LifecycleService
from market_order_service.services.order_service import OrderService
from market_order_service.services.report_service import ReportService
from market_order_service.services.ticket_service import TicketService


class InMemoryStore:
    """Shared tables of the fakes."""

    def __init__(self) -> None:
        self.codes: dict[str, tuple[CodeKind, str]] = {}
        self.tickets: dict[str, Ticket] = {}
        self.orders: dict[str, Order] = {}
        self.items: dict[str, list[OrderItem]] = {}
        self.events: dict[str, list[OrderEvent]] = {}

    def claim(self, code: str, kind: CodeKind, entity_id: str) -> None:
        if code in self.codes:
            raise CodeCollisionError(code)
        self.codes[code] = (kind, entity_id)

    def resolve(self, code: str, kind: CodeKind) -> str | None:
        entry = self.codes.get(code)
        if entry is None or entry[0] != kind:
            return None
        return entry[1]


class InMemoryTicketRepository:
    """Ticket repository over an InMemoryStore."""

    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    def create_ticket(self, ticket: Ticket) -> Ticket:
        self.store.claim(ticket.ticket_code, CodeKind.TICKET, ticket.id)
        self.store.tickets[ticket.id] = ticket
        return ticket

    def get_ticket(self, ticket_id: str) -> Ticket | None:
        return self.store.tickets.get(ticket_id)

    def get_ticket_by_code(self, ticket_code: str) -> Ticket | None:
        ticket_id = self.store.resolve(ticket_code, CodeKind.TICKET)
        return self.get_ticket(ticket_id) if ticket_id else None


class InMemoryOrderRepository:
    """Order repository over an InMemoryStore."""

    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.fail_event_appends = False

    def create_order(self, order: Order, items: list[OrderItem], event: OrderEvent) -> Order:
        self.store.claim(order.order_code, CodeKind.ORDER, order.id)
        self.store.orders[order.id] = order
        self.store.items[order.id] = list(items)
        self.store.events[order.id] = [event]
        return order

    def get_order(self, order_id: str) -> Order | None:
        return self.store.orders.get(order_id)

    def get_order_by_code(self, order_code: str) -> Order | None:
        order_id = self.store.resolve(order_code, CodeKind.ORDER)
        return self.get_order(order_id) if order_id else None

    def list_items(self, order_id: str) -> list[OrderItem]:
        return list(self.store.items.get(order_id, []))

    def list_items_for_day(self, business_date: str) -> list[OrderItem]:
        return [
            item
            for items in self.store.items.values()
            for item in items
            if item.business_date == business_date
        ]

    def list_orders_for_day(self, business_date: str, newest_first: bool = True) -> list[Order]:
        orders = [o for o in self.store.orders.values() if o.business_date == business_date]
        return sorted(orders, key=lambda o: o.created_at, reverse=newest_first)

    def list_orders_for_vendor(self, vendor_id: str, statuses: list[OrderStatus]) -> list[Order]:
        orders = [
            o for o in self.store.orders.values() if o.vendor_id == vendor_id and o.status in statuses
        ]
        return sorted(orders, key=lambda o: o.created_at)

    def list_orders_for_ticket(self, ticket_id: str) -> list[Order]:
        orders = [o for o in self.store.orders.values() if o.ticket_id == ticket_id]
        return sorted(orders, key=lambda o: o.created_at)

    def transition_status(
        self,
        order_id: str,
        from_status: OrderStatus,
        to_status: OrderStatus,
        timestamp_field: str,
        at: datetime,
    ) -> Order | None:
        current = self.store.orders[order_id]
        if current.status != from_status:
            return None

        update: dict[str, Any] = {"status": to_status}
        if getattr(current, timestamp_field) is None:
            update[timestamp_field] = at
        updated = current.model_copy(update=update)
        self.store.orders[order_id] = updated
        return updated

    def append_event(self, event: OrderEvent) -> bool:
        if self.fail_event_appends:
            return False
        self.store.events.setdefault(event.order_id, []).append(event)
        return True

    def list_events(self, order_id: str) -> list[OrderEvent]:
        return list(self.store.events.get(order_id, []))


class InMemoryCatalog:
    """Catalog client backed by dictionaries."""

    def __init__(self, vendors: list[Vendor], items: list[MenuItem]) -> None:
        self.vendors = {v.id: v for v in vendors}
        self.items = {i.id: i for i in items}

    async def get_vendor(self, vendor_id: str) -> Vendor | None:
        return self.vendors.get(vendor_id)

    async def get_menu_items(self, item_ids: list[str]) -> list[MenuItem]:
        return [self.items[i] for i in item_ids if i in self.items]

    async def get_vendor_names(self, vendor_ids: list[str]) -> dict[str, str]:
        return {v: self.vendors[v].name for v in vendor_ids if v in self.vendors}

    async def list_active_vendors(self) -> list[Vendor]:
        return sorted((v for v in self.vendors.values() if v.active), key=lambda v: v.name)

    async def get_vendor_by_slug(self, slug: str) -> Vendor | None:
        return next((v for v in self.vendors.values() if v.slug == slug), None)


@pytest.fixture
def component_clock() -> FixedClock:
    """Clock starting at 10:00 Lusaka time."""
    return FixedClock(datetime(2024, 6, 1, 8, 0, tzinfo=UTC))


@pytest.fixture
def store() -> InMemoryStore:
    """Empty in-memory tables."""
    return InMemoryStore()


@pytest.fixture
def order_repository(store: InMemoryStore) -> InMemoryOrderRepository:
    """In-memory order repository."""
    return InMemoryOrderRepository(store)


@pytest.fixture
def catalog() -> InMemoryCatalog:
    """Three vendors, one of them closed, with a small menu each."""
    return InMemoryCatalog(
        vendors=[
            Vendor(id="v1", name="Mama's Kitchen", slug="mamas-kitchen"),
            Vendor(id="v2", name="Zambezi Grill", slug="zambezi-grill"),
            Vendor(id="v3", name="Closed Stall", slug="closed-stall", active=False),
        ],
        items=[
            MenuItem(id="m1", vendor_id="v1", name="Nshima & Beef", price_cents=2500),
            MenuItem(id="m2", vendor_id="v1", name="Chips", price_cents=1500),
            MenuItem(id="g1", vendor_id="v2", name="T-Bone", price_cents=6000),
            MenuItem(id="g2", vendor_id="v2", name="Chips", price_cents=1500),
            MenuItem(id="g3", vendor_id="v2", name="Fish", price_cents=4500, available=False),
        ],
    )


@pytest.fixture
def services(
    store: InMemoryStore,
    order_repository: InMemoryOrderRepository,
    catalog: InMemoryCatalog,
    component_clock: FixedClock,
) -> dict[str, Any]:
    """Real services wired over the in-memory fakes."""
    code_generator = CodeGenerator(rng=random.Random(2024))
    ticket_service = TicketService(
        ticket_repository=InMemoryTicketRepository(store),  # type: ignore[arg-type]
        code_generator=code_generator,
        clock=component_clock,
    )
    order_service = OrderService(
        order_repository=order_repository,  # type: ignore[arg-type]
        ticket_service=ticket_service,
        catalog_client=catalog,  # type: ignore[arg-type]
        code_generator=code_generator,
        timezone="Africa/Lusaka",
        clock=component_clock,
    )
    lifecycle_service = LifecycleService(
        order_repository=order_repository,  # type: ignore[arg-type]
        clock=component_clock,
    )
    aggregation_service = AggregationService(
        order_repository=order_repository,  # type: ignore[arg-type]
        catalog_client=catalog,  # type: ignore[arg-type]
        timezone="Africa/Lusaka",
        clock=component_clock,
    )
    return {
        "ticket_service": ticket_service,
        "order_service": order_service,
        "lifecycle_service": lifecycle_service,
        "aggregation_service": aggregation_service,
        "report_service": ReportService(aggregation_service=aggregation_service),
        "catalog_client": catalog,
    }
