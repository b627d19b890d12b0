"""Daily aggregate models for the management dashboard and reports.

Money here is in major currency units (kwacha), converted from the stored
minor units at the aggregation boundary.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from market_order_service.models.order_models import OrderStatus


class VendorSales(BaseModel):
    """Revenue of one vendor over the day."""

    vendor_id: str
    vendor_name: str
    total: Decimal = Field(..., description="Revenue in major units")


class TopItem(BaseModel):
    """Best-selling item name and the quantity sold."""

    name: str
    quantity: int


class LatestOrder(BaseModel):
    """Row of the latest-orders feed."""

    id: str
    code: str
    status: OrderStatus
    total: Decimal = Field(..., description="Order total in major units")
    created_at: datetime


class Summary(BaseModel):
    """Operational and financial summary of one calendar day."""

    day: date
    orders_count: int = 0
    revenue: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    active_orders: int = 0
    avg_prep_minutes: float | None = None
    vendor_sales: list[VendorSales] = Field(default_factory=list)
    top_vendor: VendorSales | None = None
    top_item: TopItem | None = None
    latest_orders: list[LatestOrder] = Field(default_factory=list)

    @classmethod
    def empty(cls, day: date) -> "Summary":
        """Zero-valued summary used when there is nothing to aggregate."""
        return cls(day=day)
