"""Daily operational and financial aggregates for management."""

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from market_order_service.clock import Clock, SystemClock, business_date
from market_order_service.errors import InternalError
from market_order_service.models.order_models import Order, OrderItem, OrderStatus
from market_order_service.models.summary_models import LatestOrder, Summary, TopItem, VendorSales
from market_order_service.observability import traced
from market_order_service.repositories.order_repositories import OrderRepository
from market_order_service.services.catalog_client import CatalogClient

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def to_major(cents: int) -> Decimal:
    """Convert minor currency units to major units."""
    return Decimal(cents) / 100


def vat_portion(gross: Decimal, rate_percent: Decimal) -> Decimal:
    """Tax embedded in a VAT-inclusive amount, to the nearest minor unit."""
    if gross <= 0 or rate_percent <= 0:
        return Decimal("0")
    return (gross - gross / (1 + rate_percent / 100)).quantize(CENTS, rounding=ROUND_HALF_UP)


class AggregationService:
    """Builds the summary of one calendar day from that day's orders.

    Read-only. A day with no data, or a failure to load the day's orders,
    yields a zero-valued summary so dashboards always render; failures to
    load vendor names or line items only blank out the parts that need them.
    Report generation asks for a strict summary instead, where an order-load
    failure is raised.
    """

    def __init__(
        self,
        order_repository: OrderRepository,
        catalog_client: CatalogClient,
        timezone: str = "UTC",
        default_vat_rate: Decimal = Decimal("16"),
        latest_orders_limit: int = 12,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the AggregationService.

        Args:
            order_repository: Repository for orders and items
            catalog_client: Client used to resolve vendor names
            timezone: Business timezone defining calendar days
            default_vat_rate: Rate in percent used when no order recorded tax
            latest_orders_limit: Default length of the latest-orders feed
            clock: Time source for "today"
        """
        self.order_repository = order_repository
        self.catalog_client = catalog_client
        self.timezone = timezone
        self.default_vat_rate = default_vat_rate
        self.latest_orders_limit = latest_orders_limit
        self.clock = clock or SystemClock()

    def today(self) -> date:
        """Current calendar day in the business timezone."""
        return business_date(self.clock.now(), self.timezone)

    @traced("summary.build")
    async def summarize(
        self,
        day: date | None = None,
        strict: bool = False,
        latest_limit: int | None = None,
    ) -> Summary:
        """Summarize the orders created on a calendar day.

        Args:
            day: Day to summarize; today in the business timezone when omitted
            strict: Raise instead of degrading when the orders cannot be loaded
            latest_limit: Length of the latest-orders feed

        Returns:
            Summary for the day

        Raises:
            InternalError: Only when strict and the orders cannot be loaded
        """
        day = day or self.today()

        try:
            orders = self.order_repository.list_orders_for_day(day.isoformat(), newest_first=True)
        except InternalError:
            if strict:
                raise
            logger.error(f"Orders for {day} could not be loaded, returning empty summary")
            return Summary.empty(day)

        if not orders:
            return Summary.empty(day)

        limit = self.latest_orders_limit if latest_limit is None else latest_limit
        revenue_cents = sum(order.total_cents for order in orders)
        revenue = to_major(revenue_cents)
        vendor_sales = await self._vendor_sales(orders)

        return Summary(
            day=day,
            orders_count=len(orders),
            revenue=revenue,
            tax=self._tax(orders, revenue),
            active_orders=sum(1 for order in orders if order.status != OrderStatus.COLLECTED),
            avg_prep_minutes=self._avg_prep_minutes(orders),
            vendor_sales=vendor_sales,
            top_vendor=vendor_sales[0] if vendor_sales else None,
            top_item=self._top_item(day, orders),
            latest_orders=[
                LatestOrder(
                    id=order.id,
                    code=order.order_code,
                    status=order.status,
                    total=to_major(order.total_cents),
                    created_at=order.created_at,
                )
                for order in orders[:limit]
            ],
        )

    def _tax(self, orders: list[Order], revenue: Decimal) -> Decimal:
        # Recorded tax is authoritative once any order carries some.
        if any(order.tax_cents != 0 for order in orders):
            return to_major(sum(order.tax_cents for order in orders))
        return vat_portion(revenue, self.default_vat_rate)

    @staticmethod
    def _avg_prep_minutes(orders: list[Order]) -> float | None:
        durations = [
            (order.ready_at - order.preparing_at).total_seconds() / 60
            for order in orders
            if order.preparing_at is not None
            and order.ready_at is not None
            and order.ready_at > order.preparing_at
        ]
        if not durations:
            return None
        return sum(durations) / len(durations)

    async def _vendor_sales(self, orders: list[Order]) -> list[VendorSales]:
        totals: dict[str, int] = {}
        for order in orders:
            totals[order.vendor_id] = totals.get(order.vendor_id, 0) + order.total_cents

        try:
            names = await self.catalog_client.get_vendor_names(list(totals))
        except Exception:
            logger.exception("Vendor names could not be loaded, falling back to vendor ids")
            names = {}

        sales = [
            VendorSales(vendor_id=vendor_id, vendor_name=names.get(vendor_id, vendor_id), total=to_major(cents))
            for vendor_id, cents in totals.items()
        ]
        # sorted() is stable, so equal totals keep first-seen order.
        return sorted(sales, key=lambda s: s.total, reverse=True)

    def _top_item(self, day: date, orders: list[Order]) -> TopItem | None:
        try:
            items = self.order_repository.list_items_for_day(day.isoformat())
        except InternalError:
            logger.error(f"Order items for {day} could not be loaded, skipping top item")
            return None

        return top_item(items, {order.id for order in orders})


def top_item(items: list[OrderItem], order_ids: set[str]) -> TopItem | None:
    """Best-selling item name by summed quantity.

    Ties go to the name encountered first.

    Args:
        items: Candidate line items
        order_ids: Orders whose items count

    Returns:
        TopItem, or None if there are no matching items
    """
    counts: dict[str, int] = {}
    for item in items:
        if item.order_id not in order_ids or not item.name_snapshot:
            continue
        counts[item.name_snapshot] = counts.get(item.name_snapshot, 0) + item.quantity

    best: TopItem | None = None
    for name, quantity in counts.items():
        if best is None or quantity > best.quantity:
            best = TopItem(name=name, quantity=quantity)
    return best
