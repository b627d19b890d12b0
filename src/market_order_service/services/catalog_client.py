"""Client for the catalog service that owns vendors and menu items."""

import logging

import httpx

from market_order_service.errors import InternalError
from market_order_service.models.catalog_models import MenuItem, Vendor

logger = logging.getLogger(__name__)


class CatalogClient:
    """HTTP client for reading vendor and menu item records.

    The catalog is consumed read-only. Lookups on the order path raise
    InternalError on transport failures so order creation fails loudly;
    lookups that only decorate a response (vendor names) degrade to empty.
    """

    def __init__(self, base_url: str, api_key: str, timeout_seconds: float = 5.0) -> None:
        """Initialize the catalog client.

        Args:
            base_url: Base URL of the catalog API (e.g., "https://catalog.example.com")
            api_key: API key for service-to-service authentication
            timeout_seconds: Per-request timeout
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds

    @property
    def _headers(self) -> dict[str, str]:
        return {"X-API-Key": self.api_key}

    async def get_vendor(self, vendor_id: str) -> Vendor | None:
        """Fetch a single vendor.

        Args:
            vendor_id: The vendor to fetch

        Returns:
            Vendor, or None if the catalog has no such vendor

        Raises:
            InternalError: If the catalog cannot be reached or answers with an error
        """
        url = f"{self.base_url}/vendors/{vendor_id}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.get(url, headers=self._headers)
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                return Vendor(**response.json()["vendor"])

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Failed to fetch vendor {vendor_id}: {e}")
            raise InternalError("Failed to fetch vendor.") from e

    async def get_menu_items(self, item_ids: list[str]) -> list[MenuItem]:
        """Fetch menu items by id in one batch.

        Unknown ids are simply absent from the result.

        Args:
            item_ids: Menu item ids to fetch

        Returns:
            List of MenuItem objects

        Raises:
            InternalError: If the catalog cannot be reached or answers with an error
        """
        url = f"{self.base_url}/menu-items"
        params = {"ids": ",".join(item_ids)}

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.get(url, headers=self._headers, params=params)
                response.raise_for_status()
                data = response.json()

                return [MenuItem(**item_data) for item_data in data.get("items", [])]

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Failed to fetch menu items {item_ids}: {e}")
            raise InternalError("Failed to fetch menu items.") from e

    async def get_vendor_names(self, vendor_ids: list[str]) -> dict[str, str]:
        """Fetch display names for a set of vendors.

        Args:
            vendor_ids: Vendor ids to resolve

        Returns:
            Mapping of vendor id to name, empty on failure
        """
        if not vendor_ids:
            return {}

        url = f"{self.base_url}/vendors"
        params = {"ids": ",".join(vendor_ids)}

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.get(url, headers=self._headers, params=params)
                response.raise_for_status()
                data = response.json()

                return {v["id"]: v["name"] for v in data.get("vendors", [])}

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Failed to fetch vendor names: {e}")
            return {}
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"Catalog returned unusable vendor names: {e!r}")
            return {}

    async def list_active_vendors(self) -> list[Vendor]:
        """List trading vendors ordered by name.

        Raises:
            InternalError: If the catalog cannot be reached or answers with an error
        """
        url = f"{self.base_url}/vendors"

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.get(url, headers=self._headers, params={"active": "true"})
                response.raise_for_status()
                data = response.json()

                vendors = [Vendor(**v) for v in data.get("vendors", [])]
                return sorted((v for v in vendors if v.active), key=lambda v: v.name)

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Failed to list vendors: {e}")
            raise InternalError("Failed to load vendors.") from e

    async def get_vendor_by_slug(self, slug: str) -> Vendor | None:
        """Fetch a vendor by its URL slug.

        Returns:
            Vendor, or None if no vendor has that slug

        Raises:
            InternalError: If the catalog cannot be reached or answers with an error
        """
        url = f"{self.base_url}/vendors/by-slug/{slug}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.get(url, headers=self._headers)
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                return Vendor(**response.json()["vendor"])

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Failed to fetch vendor by slug {slug}: {e}")
            raise InternalError("Failed to fetch vendor.") from e
