"""Order engine: cart validation, pricing, atomic placement and lookups."""

import logging
import time
import uuid
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from market_order_service.clock import Clock, SystemClock, business_date
from market_order_service.errors import NotFoundError, UnavailableError, ValidationError
from market_order_service.models.order_models import (
    Actor,
    CartLine,
    CodeKind,
    CreatedOrder,
    Order,
    OrderDetail,
    OrderEvent,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    StatusLookup,
    TicketDetail,
)
from market_order_service.observability import traced
from market_order_service.observability.metrics import (
    record_order_created,
    record_order_creation_duration,
)
from market_order_service.repositories.order_repositories import (
    MAX_TRANSACTION_ACTIONS,
    OrderRepository,
)
from market_order_service.services.catalog_client import CatalogClient
from market_order_service.services.code_generator import CodeGenerator
from market_order_service.services.notification_service import ChangeNotifier
from market_order_service.services.ticket_service import TicketService

logger = logging.getLogger(__name__)

# Code claim, order row and initial event share the transaction with the lines.
MAX_ORDER_LINES = MAX_TRANSACTION_ACTIONS - 3

ACTIVE_STATUSES = [OrderStatus.PREPARING, OrderStatus.READY]

# Rates are stored as DynamoDB numbers; keep them to a percent with two decimals.
MAX_TAX_RATE = Decimal("100")
TAX_RATE_STEP = Decimal("0.01")


def split_tax(total_cents: int, tax_rate: Decimal) -> tuple[int, int]:
    """Split a tax-inclusive total into (net, tax).

    With a positive rate, net is total / (1 + rate/100) rounded half up to a
    whole minor unit and tax is the remainder. A zero rate extracts no tax.

    Args:
        total_cents: Tax-inclusive total in minor units
        tax_rate: Rate in percent, e.g. 16

    Returns:
        Tuple of (net_cents, tax_cents); they always sum to total_cents
    """
    if tax_rate <= 0:
        return total_cents, 0

    net = (Decimal(total_cents) / (1 + tax_rate / 100)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    net_cents = int(net)
    return net_cents, total_cents - net_cents


class OrderService:
    """Places vendor orders under a shared ticket and answers order lookups.

    Order placement validates the cart against the catalog, snapshots names
    and prices into line items, derives net and tax, allocates an order code
    and writes the order, its items and its first audit event in a single
    transaction.
    """

    def __init__(
        self,
        order_repository: OrderRepository,
        ticket_service: TicketService,
        catalog_client: CatalogClient,
        code_generator: CodeGenerator,
        order_code_prefix: str = "MS",
        timezone: str = "UTC",
        clock: Clock | None = None,
        notifier: ChangeNotifier | None = None,
    ) -> None:
        """Initialize the OrderService.

        Args:
            order_repository: Repository for orders, items and events
            ticket_service: Service that creates or resolves tickets
            catalog_client: Client for vendor and menu item records
            code_generator: Generator used to allocate order codes
            order_code_prefix: Prefix of order codes
            timezone: Business timezone used for calendar days
            clock: Time source for created_at/preparing_at
            notifier: Optional change notifier
        """
        self.order_repository = order_repository
        self.ticket_service = ticket_service
        self.catalog_client = catalog_client
        self.code_generator = code_generator
        self.order_code_prefix = order_code_prefix
        self.timezone = timezone
        self.clock = clock or SystemClock()
        self.notifier = notifier

    @traced("order.create")
    async def create_order(
        self,
        vendor_id: str,
        lines: list[CartLine],
        payment_method: PaymentMethod | None = None,
        tax_rate: Decimal | int | float | None = None,
        ticket_id: str | None = None,
    ) -> CreatedOrder:
        """Place one vendor's share of a cart.

        This method orchestrates the complete placement flow:
        1. Validate the request shape
        2. Resolve or issue the ticket
        3. Check the vendor exists and is trading
        4. Load and check every referenced menu item in one batch
        5. Snapshot lines and compute total, net and tax
        6. Allocate an order code and write order, items and event atomically

        Args:
            vendor_id: Vendor the order is for
            lines: Cart lines for this vendor
            payment_method: How the ticket is paid
            tax_rate: Tax rate in percent; None or 0 extracts no tax
            ticket_id: Ticket to attach to; a new ticket is issued when omitted

        Returns:
            CreatedOrder with the order and ticket identities and the totals

        Raises:
            ValidationError: Empty cart, missing vendor, too many lines or bad tax rate
            NotFoundError: Ticket, vendor or a menu item does not exist
            UnavailableError: Vendor inactive or a menu item not orderable
            ResourceExhaustedError: No free ticket or order code could be allocated
            InternalError: Store or catalog failure
        """
        started = time.perf_counter()

        # Step 1: Validate request shape
        if not lines:
            raise ValidationError("Order must contain at least one item.")
        if not vendor_id:
            raise ValidationError("vendor_id is required.")
        if len(lines) > MAX_ORDER_LINES:
            raise ValidationError(f"Order cannot contain more than {MAX_ORDER_LINES} lines.")
        rate = self._parse_tax_rate(tax_rate)

        # Step 2: Resolve or issue the ticket
        ticket = await self.ticket_service.ensure_ticket(ticket_id)

        # Step 3: Vendor must exist and be trading
        vendor = await self.catalog_client.get_vendor(vendor_id)
        if vendor is None:
            raise NotFoundError("Vendor not found.")
        if not vendor.active:
            raise UnavailableError("Vendor is not active.")

        # Step 4: Load menu items in one batch
        requested_ids = list(dict.fromkeys(line.menu_item_id for line in lines))
        menu_items = {item.id: item for item in await self.catalog_client.get_menu_items(requested_ids)}

        if len(menu_items) != len(requested_ids) or any(i not in menu_items for i in requested_ids):
            raise NotFoundError("Some menu items could not be found.")

        for item_id in requested_ids:
            if not menu_items[item_id].orderable:
                raise UnavailableError(f"Item '{menu_items[item_id].name}' is not available.")

        # Step 5: Snapshot lines and compute totals
        order_id = str(uuid.uuid4())
        now = self.clock.now()
        day = business_date(now, self.timezone).isoformat()

        items = [
            OrderItem(
                order_id=order_id,
                line_no=line_no,
                name_snapshot=menu_items[line.menu_item_id].name,
                unit_price_cents=menu_items[line.menu_item_id].price_cents,
                quantity=line.quantity,
                notes=line.notes,
                business_date=day,
            )
            for line_no, line in enumerate(lines)
        ]
        total_cents = sum(item.line_total_cents for item in items)
        net_cents, tax_cents = split_tax(total_cents, rate)

        event = OrderEvent.record(order_id, None, OrderStatus.PREPARING, Actor.CASHIER, now)

        # Step 6: Allocate a code and write everything in one transaction
        def claim(code: str) -> Order:
            order = Order(
                id=order_id,
                order_code=code,
                vendor_id=vendor_id,
                ticket_id=ticket.id,
                total_cents=total_cents,
                net_cents=net_cents,
                tax_cents=tax_cents,
                tax_rate=rate,
                status=OrderStatus.PREPARING,
                payment_method=payment_method,
                created_at=now,
                business_date=day,
                preparing_at=now,
            )
            return self.order_repository.create_order(order, items, event)

        order = self.code_generator.allocate(self.order_code_prefix, CodeKind.ORDER, claim)

        record_order_created(vendor_id, total_cents)
        record_order_creation_duration(time.perf_counter() - started)
        logger.info(
            f"Placed order {order.order_code} for vendor {vendor_id} on ticket "
            f"{ticket.ticket_code}: {total_cents} total, {tax_cents} tax"
        )

        if self.notifier is not None:
            self.notifier.order_changed(order, "created", now)

        return CreatedOrder(
            order_id=order.id,
            order_code=order.order_code,
            vendor_id=order.vendor_id,
            total_cents=order.total_cents,
            net_cents=order.net_cents,
            tax_cents=order.tax_cents,
            tax_rate=order.tax_rate,
            ticket_id=ticket.id,
            ticket_code=ticket.ticket_code,
        )

    @staticmethod
    def _parse_tax_rate(tax_rate: Decimal | int | float | None) -> Decimal:
        if tax_rate is None:
            return Decimal("0")
        try:
            rate = Decimal(str(tax_rate))
        except InvalidOperation as e:
            raise ValidationError("tax_rate must be a number.") from e
        if not rate.is_finite() or rate < 0:
            raise ValidationError("tax_rate must be a non-negative number.")
        if rate > MAX_TAX_RATE:
            raise ValidationError(f"tax_rate cannot exceed {MAX_TAX_RATE}.")

        quantized = rate.quantize(TAX_RATE_STEP)
        if quantized != rate:
            raise ValidationError("tax_rate cannot have more than two decimal places.")
        # "16.000" is accepted but stored as 16.00.
        return quantized if rate.as_tuple().exponent < -2 else rate

    async def get_order_by_code(self, order_code: str) -> OrderDetail:
        """Load a single order with its vendor name and items.

        Raises:
            NotFoundError: If no order has that code
        """
        order = self.order_repository.get_order_by_code(order_code)
        if order is None:
            raise NotFoundError("Order not found.")

        details = await self._with_details([order])
        return details[0]

    async def get_ticket_by_code(self, ticket_code: str) -> TicketDetail:
        """Load a ticket with all of its vendor orders.

        Raises:
            NotFoundError: If no ticket has that code
        """
        detail = await self._find_ticket(ticket_code)
        if detail is None:
            raise NotFoundError("Ticket not found.")
        return detail

    @traced("order.lookup_code")
    async def lookup_code(self, code: str) -> StatusLookup:
        """Resolve a code from a slip or receipt.

        The code is tried as a ticket code first and then as an order code.
        Ticket and order codes carry different prefixes, so at most one
        interpretation can match.

        Args:
            code: Code as typed or scanned

        Returns:
            StatusLookup of kind "ticket" or "order"

        Raises:
            ValidationError: If the code is blank
            NotFoundError: If neither a ticket nor an order has that code
        """
        code = code.strip()
        if not code:
            raise ValidationError("Missing code.")

        ticket = await self._find_ticket(code)
        if ticket is not None:
            return StatusLookup(kind=CodeKind.TICKET, ticket=ticket)

        order = self.order_repository.get_order_by_code(code)
        if order is not None:
            details = await self._with_details([order])
            return StatusLookup(kind=CodeKind.ORDER, order=details[0])

        raise NotFoundError("No ticket or order found for this code.")

    async def list_vendor_active_orders(self, vendor_id: str) -> list[OrderDetail]:
        """List a vendor's orders that are not yet collected, oldest first.

        Args:
            vendor_id: Vendor whose board is being rendered

        Returns:
            List of OrderDetail with line items
        """
        if not vendor_id:
            raise ValidationError("vendor_id is required.")

        orders = self.order_repository.list_orders_for_vendor(vendor_id, ACTIVE_STATUSES)
        return [
            OrderDetail(order=order, items=self.order_repository.list_items(order.id))
            for order in orders
        ]

    async def list_orders_for_day(self, day: date) -> list[Order]:
        """List every order created on a calendar day, oldest first.

        Args:
            day: Calendar day in the business timezone

        Returns:
            List of Order objects, empty list if none found
        """
        return self.order_repository.list_orders_for_day(day.isoformat(), newest_first=False)

    async def _find_ticket(self, ticket_code: str) -> TicketDetail | None:
        ticket = await self.ticket_service.get_ticket_by_code(ticket_code)
        if ticket is None:
            return None

        orders = self.order_repository.list_orders_for_ticket(ticket.id)
        return TicketDetail(ticket=ticket, orders=await self._with_details(orders))

    async def _with_details(self, orders: list[Order]) -> list[OrderDetail]:
        vendor_ids = list(dict.fromkeys(order.vendor_id for order in orders))
        names = await self.catalog_client.get_vendor_names(vendor_ids)

        return [
            OrderDetail(
                order=order,
                vendor_name=names.get(order.vendor_id),
                items=self.order_repository.list_items(order.id),
            )
            for order in orders
        ]
