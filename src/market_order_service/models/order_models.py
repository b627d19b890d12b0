"""Ticket, order, line item and audit event models.

These models represent the records owned by the ordering core and their
DynamoDB item representations. Money is always an integer number of minor
currency units; timestamps are stored as UTC ISO 8601 strings so they sort
lexicographically inside index range keys.
"""

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class TicketStatus(str, Enum):
    """Enumeration of ticket (pickup slip) status values."""

    OPEN = "open"
    PAID = "paid"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class OrderStatus(str, Enum):
    """Enumeration of vendor order lifecycle states."""

    PREPARING = "preparing"
    READY = "ready"
    COLLECTED = "collected"


class PaymentMethod(str, Enum):
    """Enumeration of accepted payment methods."""

    CASH = "cash"
    CARD = "card"
    MOMO = "momo"
    OTHER = "other"


class Actor(str, Enum):
    """Party responsible for a status transition."""

    VENDOR = "vendor"
    CASHIER = "cashier"
    SYSTEM = "system"


class CodeKind(str, Enum):
    """Namespace a human-readable code was allocated in."""

    TICKET = "ticket"
    ORDER = "order"


def to_iso(value: datetime) -> str:
    """Serialize a datetime as a UTC ISO 8601 string."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def _optional_datetime(item: dict[str, Any], key: str) -> datetime | None:
    raw = item.get(key)
    return datetime.fromisoformat(raw) if raw else None


class CartLine(BaseModel):
    """One requested line of a cart, before validation against the catalog."""

    menu_item_id: str = Field(..., min_length=1, description="Catalog menu item id")
    quantity: int = Field(..., gt=0, description="Number of units ordered")
    notes: str | None = Field(None, description="Free text, e.g. 'Option: Beef'")


class Ticket(BaseModel):
    """Shared pickup ticket grouping orders from several vendors.

    Stored in DynamoDB with id as partition key.
    """

    id: str = Field(..., description="Ticket identifier")
    ticket_code: str = Field(..., description="Short human-readable code, e.g. WL-4821")
    status: TicketStatus = Field(default=TicketStatus.OPEN, description="Ticket status")
    created_at: datetime = Field(..., description="Creation timestamp")

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        return {
            "id": self.id,
            "ticket_code": self.ticket_code,
            "status": self.status.value,
            "created_at": to_iso(self.created_at),
        }

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Ticket":
        """Create Ticket from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            Ticket: Parsed model instance
        """
        return cls(
            id=item["id"],
            ticket_code=item["ticket_code"],
            status=TicketStatus(item.get("status", TicketStatus.OPEN.value)),
            created_at=datetime.fromisoformat(item["created_at"]),
        )


class OrderItem(BaseModel):
    """Immutable line item snapshot of an order.

    Stored in DynamoDB with (order_id, line_no) as composite key.
    """

    order_id: str = Field(..., description="Owning order")
    line_no: int = Field(..., description="Position of the line within the order", ge=0)
    name_snapshot: str = Field(..., description="Menu item name at order time")
    unit_price_cents: int = Field(..., description="Menu item price at order time", ge=0)
    quantity: int = Field(..., description="Units ordered", gt=0)
    notes: str | None = Field(None, description="Free text notes")
    business_date: str | None = Field(None, description="Calendar day of the owning order")

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = {
            "order_id": self.order_id,
            "line_no": self.line_no,
            "name_snapshot": self.name_snapshot,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
        }

        if self.notes is not None:
            item["notes"] = self.notes

        if self.business_date is not None:
            item["business_date"] = self.business_date

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "OrderItem":
        """Create OrderItem from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            OrderItem: Parsed model instance
        """
        return cls(
            order_id=item["order_id"],
            line_no=int(item["line_no"]),
            name_snapshot=item["name_snapshot"],
            unit_price_cents=int(item["unit_price_cents"]),
            quantity=int(item["quantity"]),
            notes=item.get("notes"),
            business_date=item.get("business_date"),
        )


class Order(BaseModel):
    """One vendor's fulfillment unit under a ticket.

    Stored in DynamoDB with id as partition key and indexed by business date,
    vendor and ticket (each with created_at as range key).
    """

    id: str = Field(..., description="Order identifier")
    order_code: str = Field(..., description="Short human-readable code, e.g. MS-1234")
    vendor_id: str = Field(..., description="Vendor preparing the order")
    ticket_id: str = Field(..., description="Owning ticket")
    total_cents: int = Field(..., description="Sum of line totals", ge=0)
    net_cents: int = Field(..., description="Total minus extracted tax", ge=0)
    tax_cents: int = Field(..., description="Tax embedded in the total", ge=0)
    tax_rate: Decimal = Field(default=Decimal("0"), description="Tax rate in percent", ge=0)
    status: OrderStatus = Field(default=OrderStatus.PREPARING, description="Lifecycle state")
    payment_method: PaymentMethod | None = Field(None, description="How the ticket was paid")
    created_at: datetime = Field(..., description="Creation timestamp")
    business_date: str = Field(..., description="Calendar day of creation (YYYY-MM-DD)")
    preparing_at: datetime | None = Field(None, description="First entry into preparing")
    ready_at: datetime | None = Field(None, description="First entry into ready")
    collected_at: datetime | None = Field(None, description="First entry into collected")

    @field_validator("tax_cents")
    @classmethod
    def validate_tax_cents(cls, v: int) -> int:
        """Validate that tax is non-negative."""
        if v < 0:
            raise ValueError("tax_cents must be non-negative")
        return v

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = {
            "id": self.id,
            "order_code": self.order_code,
            "vendor_id": self.vendor_id,
            "ticket_id": self.ticket_id,
            "total_cents": self.total_cents,
            "net_cents": self.net_cents,
            "tax_cents": self.tax_cents,
            "tax_rate": self.tax_rate,
            "status": self.status.value,
            "created_at": to_iso(self.created_at),
            "business_date": self.business_date,
        }

        if self.payment_method is not None:
            item["payment_method"] = self.payment_method.value

        for field_name in ("preparing_at", "ready_at", "collected_at"):
            value = getattr(self, field_name)
            if value is not None:
                item[field_name] = to_iso(value)

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Order":
        """Create Order from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            Order: Parsed model instance
        """
        payment_method = item.get("payment_method")

        return cls(
            id=item["id"],
            order_code=item["order_code"],
            vendor_id=item["vendor_id"],
            ticket_id=item["ticket_id"],
            total_cents=int(item["total_cents"]),
            net_cents=int(item["net_cents"]),
            tax_cents=int(item["tax_cents"]),
            tax_rate=Decimal(str(item.get("tax_rate", 0))),
            status=OrderStatus(item["status"]),
            payment_method=PaymentMethod(payment_method) if payment_method else None,
            created_at=datetime.fromisoformat(item["created_at"]),
            business_date=item["business_date"],
            preparing_at=_optional_datetime(item, "preparing_at"),
            ready_at=_optional_datetime(item, "ready_at"),
            collected_at=_optional_datetime(item, "collected_at"),
        )


class OrderEvent(BaseModel):
    """Append-only audit row for an order status change.

    Stored in DynamoDB with (order_id, event_id) as composite key. event_id
    starts with the event timestamp so a query returns events in order.
    """

    order_id: str = Field(..., description="Order the event belongs to")
    event_id: str = Field(..., description="Sortable event identifier")
    from_status: OrderStatus | None = Field(None, description="Previous state, None on creation")
    to_status: OrderStatus = Field(..., description="New state")
    actor: Actor = Field(..., description="Party that made the change")
    created_at: datetime = Field(..., description="When the change happened")

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = {
            "order_id": self.order_id,
            "event_id": self.event_id,
            "to_status": self.to_status.value,
            "actor": self.actor.value,
            "created_at": to_iso(self.created_at),
        }

        if self.from_status is not None:
            item["from_status"] = self.from_status.value

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "OrderEvent":
        """Create OrderEvent from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            OrderEvent: Parsed model instance
        """
        from_status = item.get("from_status")

        return cls(
            order_id=item["order_id"],
            event_id=item["event_id"],
            from_status=OrderStatus(from_status) if from_status else None,
            to_status=OrderStatus(item["to_status"]),
            actor=Actor(item["actor"]),
            created_at=datetime.fromisoformat(item["created_at"]),
        )

    @classmethod
    def record(
        cls,
        order_id: str,
        from_status: OrderStatus | None,
        to_status: OrderStatus,
        actor: Actor,
        at: datetime,
    ) -> "OrderEvent":
        """Build a new event with a time-ordered event id."""
        return cls(
            order_id=order_id,
            event_id=f"{to_iso(at)}#{uuid.uuid4().hex[:8]}",
            from_status=from_status,
            to_status=to_status,
            actor=actor,
            created_at=at,
        )


class CreatedOrder(BaseModel):
    """Result of placing one vendor order, echoed back for cart fan-out."""

    order_id: str
    order_code: str
    vendor_id: str
    total_cents: int
    net_cents: int
    tax_cents: int
    tax_rate: Decimal
    ticket_id: str
    ticket_code: str


class OrderDetail(BaseModel):
    """An order with its vendor name and line item snapshots."""

    order: Order
    vendor_name: str | None = None
    items: list[OrderItem] = Field(default_factory=list)


class TicketDetail(BaseModel):
    """A ticket with all of its vendor orders."""

    ticket: Ticket
    orders: list[OrderDetail] = Field(default_factory=list)


class StatusLookup(BaseModel):
    """Result of resolving a code printed on a slip or receipt."""

    kind: CodeKind
    ticket: TicketDetail | None = None
    order: OrderDetail | None = None
