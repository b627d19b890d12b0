"""Catalog data models.

These models represent vendors and menu items owned by the catalog service.
The ordering core only reads them; prices are integer minor currency units
(ngwee) and are snapshotted into order items when an order is placed.
"""

from pydantic import BaseModel, Field


class Vendor(BaseModel):
    """Vendor (stall) model."""

    id: str = Field(..., description="Unique identifier for the vendor")
    name: str = Field(default="", description="Display name")
    slug: str | None = Field(None, description="URL slug used by the vendor board")
    active: bool = Field(default=True, description="Whether the vendor is trading")


class MenuItem(BaseModel):
    """Menu item model."""

    id: str = Field(..., description="Unique identifier for the menu item")
    vendor_id: str | None = Field(None, description="Vendor this item belongs to")
    name: str = Field(..., description="Item name")
    price_cents: int = Field(..., description="Unit price in minor currency units", ge=0)
    active: bool = Field(default=True, description="Whether the item is on the menu")
    available: bool = Field(default=True, description="False when the item is 86'ed")

    @property
    def orderable(self) -> bool:
        """Whether the item can be put on a new order."""
        return self.active and self.available
