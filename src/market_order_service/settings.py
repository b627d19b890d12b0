"""Service configuration read from environment variables."""

import os
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator


class Settings(BaseModel):
    """Runtime configuration for the order service.

    Built once at startup with ``Settings.from_env()`` and passed to the
    dependency factories in ``main`` and ``lambda_dependencies``.
    """

    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")
    aws_region: str = Field(default="us-east-1")
    dynamodb_endpoint: str | None = Field(default=None, description="Local DynamoDB endpoint")

    tickets_table: str = Field(default="market-tickets")
    orders_table: str = Field(default="market-orders")
    order_items_table: str = Field(default="market-order-items")
    order_events_table: str = Field(default="market-order-events")
    codes_table: str = Field(default="market-codes")

    catalog_base_url: str
    catalog_api_key: str
    event_bus_name: str = Field(default="default")

    business_timezone: str = Field(default="Africa/Lusaka")
    ticket_code_prefix: str = Field(default="WL")
    order_code_prefix: str = Field(default="MS")
    code_allocation_attempts: int = Field(default=5, gt=0)
    default_vat_rate: Decimal = Field(default=Decimal("16"), ge=0)
    latest_orders_limit: int = Field(default=12, gt=0)

    store_timeout_seconds: float = Field(default=5.0, gt=0)
    catalog_timeout_seconds: float = Field(default=5.0, gt=0)

    @model_validator(mode="after")
    def validate_code_prefixes(self) -> "Settings":
        """Ticket and order codes must be structurally distinguishable."""
        if self.ticket_code_prefix == self.order_code_prefix:
            raise ValueError("TICKET_CODE_PREFIX and ORDER_CODE_PREFIX must differ")
        return self

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment.

        Raises:
            ValueError: If the catalog service is not configured or a value is invalid
        """
        catalog_url = os.getenv("CATALOG_SERVICE_BASE_URL")
        catalog_key = os.getenv("CATALOG_SERVICE_API_KEY")

        if not catalog_url or not catalog_key:
            raise ValueError(
                "CATALOG_SERVICE_BASE_URL and CATALOG_SERVICE_API_KEY must be set in environment"
            )

        return cls(
            environment=os.getenv("ENVIRONMENT", "development"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            aws_region=os.getenv("AWS_REGION", "us-east-1"),
            dynamodb_endpoint=os.getenv("DYNAMODB_ENDPOINT") or None,
            tickets_table=os.getenv("DYNAMODB_TICKETS_TABLE", "market-tickets"),
            orders_table=os.getenv("DYNAMODB_ORDERS_TABLE", "market-orders"),
            order_items_table=os.getenv("DYNAMODB_ORDER_ITEMS_TABLE", "market-order-items"),
            order_events_table=os.getenv("DYNAMODB_ORDER_EVENTS_TABLE", "market-order-events"),
            codes_table=os.getenv("DYNAMODB_CODES_TABLE", "market-codes"),
            catalog_base_url=catalog_url,
            catalog_api_key=catalog_key,
            event_bus_name=os.getenv("EVENT_BUS_NAME", "default"),
            business_timezone=os.getenv("BUSINESS_TIMEZONE", "Africa/Lusaka"),
            ticket_code_prefix=os.getenv("TICKET_CODE_PREFIX", "WL"),
            order_code_prefix=os.getenv("ORDER_CODE_PREFIX", "MS"),
            code_allocation_attempts=int(os.getenv("CODE_ALLOCATION_ATTEMPTS", "5")),
            default_vat_rate=Decimal(os.getenv("DEFAULT_VAT_RATE", "16")),
            latest_orders_limit=int(os.getenv("LATEST_ORDERS_LIMIT", "12")),
            store_timeout_seconds=float(os.getenv("STORE_TIMEOUT_SECONDS", "5")),
            catalog_timeout_seconds=float(os.getenv("CATALOG_TIMEOUT_SECONDS", "5")),
        )
