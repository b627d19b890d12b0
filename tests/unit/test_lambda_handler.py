"""Unit tests for the AWS Lambda handler and its dependency cache."""

from unittest.mock import MagicMock, Mock, patch

import pytest

import lambda_dependencies
from lambda_handler import lambda_handler
from market_order_service.settings import Settings


@pytest.mark.unit
class TestLambdaHandler:
    """Tests for lambda_handler."""

    @pytest.fixture
    def context(self) -> MagicMock:
        """A Lambda context object."""
        context = MagicMock()
        context.aws_request_id = "request-id"
        return context

    def test_routes_to_mangum(self, context: MagicMock) -> None:
        """Test that API Gateway events are served by the ASGI adapter."""
        event = {"rawPath": "/health", "requestContext": {"http": {"method": "GET"}}}
        mock_mangum = MagicMock(return_value={"statusCode": 200, "body": '{"status":"healthy"}'})

        with patch("lambda_handler.mangum_handler", mock_mangum):
            result = lambda_handler(event, context)

        assert result["statusCode"] == 200
        mock_mangum.assert_called_once_with(event, context)

    def test_unhandled_error_is_generic(self, context: MagicMock) -> None:
        """Test that unexpected failures return a generic 500."""
        mock_mangum = MagicMock(side_effect=RuntimeError("boom"))

        with patch("lambda_handler.mangum_handler", mock_mangum):
            result = lambda_handler({}, context)

        assert result["statusCode"] == 500
        assert "boom" not in result["body"]


@pytest.mark.unit
class TestLambdaDependencies:
    """Tests for the cached dependency getters."""

    @pytest.fixture(autouse=True)
    def reset_caches(self) -> None:
        """Clear module-level caches between tests."""
        lambda_dependencies._settings = None
        lambda_dependencies._dynamodb_resource = None
        lambda_dependencies._events_client = None
        lambda_dependencies._services = None
        lambda_dependencies._fastapi_app = None

    @pytest.fixture
    def settings(self) -> Settings:
        """Settings pointing at a test catalog."""
        return Settings(catalog_base_url="http://catalog:8000", catalog_api_key="catalog-key")

    @patch("lambda_dependencies.get_dynamodb_resource")
    def test_dynamodb_resource_is_cached(self, mock_get: Mock, settings: Settings) -> None:
        """Test that the resource is created once per container."""
        lambda_dependencies._settings = settings

        first = lambda_dependencies.get_cached_dynamodb_resource()
        second = lambda_dependencies.get_cached_dynamodb_resource()

        assert first is second
        mock_get.assert_called_once_with(settings)

    @patch("lambda_dependencies.setup_observability")
    @patch("lambda_dependencies.get_events_client")
    @patch("lambda_dependencies.get_dynamodb_resource")
    def test_fastapi_app_is_cached(
        self,
        mock_get_dynamodb: Mock,
        mock_get_events: Mock,
        mock_setup_observability: Mock,
        settings: Settings,
    ) -> None:
        """Test that the application is built once per container."""
        lambda_dependencies._settings = settings

        first = lambda_dependencies.get_fastapi_app()
        second = lambda_dependencies.get_fastapi_app()

        assert first is second
        mock_setup_observability.assert_called_once_with(first)
        mock_get_events.assert_called_once_with(settings)
