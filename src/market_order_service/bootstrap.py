"""Construction of AWS resources, repositories and services from settings.

Shared by the local entry point (``main``) and the Lambda dependency cache.
"""

import logging
import os
import random
from typing import Any

import boto3
from botocore.config import Config

from market_order_service.clock import SystemClock
from market_order_service.repositories.order_repositories import (
    CodeRepository,
    OrderRepository,
    TicketRepository,
)
from market_order_service.services.aggregation_service import AggregationService
from market_order_service.services.catalog_client import CatalogClient
from market_order_service.services.code_generator import CodeGenerator
from market_order_service.services.lifecycle_service import LifecycleService
from market_order_service.services.notification_service import ChangeNotifier
from market_order_service.services.order_service import OrderService
from market_order_service.services.report_service import ReportService
from market_order_service.services.ticket_service import TicketService
from market_order_service.settings import Settings

logger = logging.getLogger(__name__)


def aws_client_config(settings: Settings) -> Config:
    """Bounded timeouts for store calls; retries are left to the caller."""
    return Config(
        region_name=settings.aws_region,
        connect_timeout=settings.store_timeout_seconds,
        read_timeout=settings.store_timeout_seconds,
        retries={"max_attempts": 1, "mode": "standard"},
    )


def get_dynamodb_resource(settings: Settings) -> Any:
    """Create DynamoDB resource with appropriate configuration.

    Args:
        settings: Service settings

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    config = aws_client_config(settings)

    if settings.dynamodb_endpoint:
        # Local DynamoDB - credentials come from the environment
        logger.info(f"Using local DynamoDB at {settings.dynamodb_endpoint}")
        return boto3.resource(
            "dynamodb",
            endpoint_url=settings.dynamodb_endpoint,
            region_name=settings.aws_region,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
            config=config,
        )

    logger.info(f"Using AWS DynamoDB in region {settings.aws_region}")
    return boto3.resource("dynamodb", region_name=settings.aws_region, config=config)


def get_events_client(settings: Settings) -> Any:
    """Create the EventBridge client used for change notifications."""
    return boto3.client("events", config=aws_client_config(settings))


def build_services(
    settings: Settings,
    dynamodb_resource: Any,
    events_client: Any,
    rng: random.Random | None = None,
) -> dict[str, Any]:
    """Wire repositories, clients and services.

    Args:
        settings: Service settings
        dynamodb_resource: Boto3 DynamoDB resource
        events_client: Boto3 EventBridge client
        rng: Random source for code generation

    Returns:
        Keyword arguments for ``create_app``
    """
    clock = SystemClock()

    code_repository = CodeRepository(
        dynamodb_resource=dynamodb_resource, table_name=settings.codes_table
    )
    ticket_repository = TicketRepository(
        dynamodb_resource=dynamodb_resource,
        table_name=settings.tickets_table,
        code_repository=code_repository,
    )
    order_repository = OrderRepository(
        dynamodb_resource=dynamodb_resource,
        orders_table_name=settings.orders_table,
        items_table_name=settings.order_items_table,
        events_table_name=settings.order_events_table,
        code_repository=code_repository,
    )

    logger.info(
        f"Repositories configured - tickets: {settings.tickets_table}, "
        f"orders: {settings.orders_table}, codes: {settings.codes_table}"
    )

    catalog_client = CatalogClient(
        base_url=settings.catalog_base_url,
        api_key=settings.catalog_api_key,
        timeout_seconds=settings.catalog_timeout_seconds,
    )
    logger.info(f"Catalog client configured - URL: {settings.catalog_base_url}")

    notifier = ChangeNotifier(events_client=events_client, event_bus_name=settings.event_bus_name)
    code_generator = CodeGenerator(max_attempts=settings.code_allocation_attempts, rng=rng)

    ticket_service = TicketService(
        ticket_repository=ticket_repository,
        code_generator=code_generator,
        ticket_code_prefix=settings.ticket_code_prefix,
        clock=clock,
        notifier=notifier,
    )
    order_service = OrderService(
        order_repository=order_repository,
        ticket_service=ticket_service,
        catalog_client=catalog_client,
        code_generator=code_generator,
        order_code_prefix=settings.order_code_prefix,
        timezone=settings.business_timezone,
        clock=clock,
        notifier=notifier,
    )
    lifecycle_service = LifecycleService(
        order_repository=order_repository, clock=clock, notifier=notifier
    )
    aggregation_service = AggregationService(
        order_repository=order_repository,
        catalog_client=catalog_client,
        timezone=settings.business_timezone,
        default_vat_rate=settings.default_vat_rate,
        latest_orders_limit=settings.latest_orders_limit,
        clock=clock,
    )
    report_service = ReportService(aggregation_service=aggregation_service)

    logger.info("Services initialized")

    return {
        "ticket_service": ticket_service,
        "order_service": order_service,
        "lifecycle_service": lifecycle_service,
        "aggregation_service": aggregation_service,
        "report_service": report_service,
        "catalog_client": catalog_client,
    }
