"""Shared dependency factory for the Lambda handler.

This module provides cached dependency initialization to optimize Lambda cold starts.
Dependencies are created once and reused across invocations within the same Lambda container.
"""

import logging
from typing import Any

from fastapi import FastAPI

from market_order_service.bootstrap import build_services, get_dynamodb_resource, get_events_client
from market_order_service.handlers.api_handler import create_app
from market_order_service.observability import configure_logging, setup_observability
from market_order_service.settings import Settings

logger = logging.getLogger(__name__)

# Module-level caches for Lambda container reuse
_settings: Settings | None = None
_dynamodb_resource: Any | None = None
_events_client: Any | None = None
_services: dict[str, Any] | None = None
_fastapi_app: FastAPI | None = None


def get_settings() -> Settings:
    """Create or retrieve cached settings.

    Raises:
        ValueError: If required configuration is missing
    """
    global _settings

    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def get_cached_dynamodb_resource() -> Any:
    """Create or retrieve cached DynamoDB resource.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    global _dynamodb_resource

    if _dynamodb_resource is None:
        _dynamodb_resource = get_dynamodb_resource(get_settings())
    return _dynamodb_resource


def get_cached_events_client() -> Any:
    """Create or retrieve cached EventBridge client."""
    global _events_client

    if _events_client is None:
        _events_client = get_events_client(get_settings())
    return _events_client


def get_services() -> dict[str, Any]:
    """Create or retrieve the cached service graph.

    Returns:
        Keyword arguments for ``create_app``
    """
    global _services

    if _services is not None:
        return _services

    _services = build_services(
        get_settings(), get_cached_dynamodb_resource(), get_cached_events_client()
    )
    return _services


def get_fastapi_app() -> FastAPI:
    """Create or retrieve cached FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    global _fastapi_app

    if _fastapi_app is not None:
        return _fastapi_app

    _fastapi_app = create_app(**get_services())
    setup_observability(_fastapi_app)

    logger.info("FastAPI application initialized")
    return _fastapi_app


def initialize_lambda_environment() -> None:
    """Initialize Lambda environment with logging.

    Should be called once during Lambda cold start.
    """
    configure_logging(get_settings().log_level)

    logger.info("Lambda environment initialized")
