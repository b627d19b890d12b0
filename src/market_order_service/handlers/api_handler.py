"""FastAPI application for the cashier, vendor board, status and admin endpoints."""

import logging
from datetime import date
from decimal import Decimal

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from market_order_service.errors import InternalError, OrderingError
from market_order_service.models.catalog_models import Vendor
from market_order_service.models.order_models import (
    Actor,
    CartLine,
    CreatedOrder,
    Order,
    OrderDetail,
    OrderEvent,
    OrderStatus,
    PaymentMethod,
    StatusLookup,
    Ticket,
)
from market_order_service.models.summary_models import Summary
from market_order_service.services.aggregation_service import AggregationService
from market_order_service.services.catalog_client import CatalogClient
from market_order_service.services.lifecycle_service import LifecycleService
from market_order_service.services.order_service import OrderService
from market_order_service.services.report_service import ReportService, ReportType
from market_order_service.services.ticket_service import TicketService

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Unexpected server error"


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class CreateOrderRequest(BaseModel):
    """Request body for placing one vendor's share of a cart."""

    vendor_id: str = Field(..., min_length=1)
    items: list[CartLine]
    payment_method: PaymentMethod | None = None
    tax_rate: Decimal | None = Field(None, ge=0)
    ticket_id: str | None = None


class UpdateStatusRequest(BaseModel):
    """Request body for a status transition."""

    order_id: str | None = None
    order_code: str | None = None
    to_status: OrderStatus
    actor: Actor = Actor.VENDOR


def parse_day(raw: str | None) -> date | None:
    """Parse a YYYY-MM-DD query value; unparseable values mean "today"."""
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        logger.warning(f"Ignoring unparseable date {raw!r}, using today")
        return None


def create_app(
    ticket_service: TicketService,
    order_service: OrderService,
    lifecycle_service: LifecycleService,
    aggregation_service: AggregationService,
    report_service: ReportService,
    catalog_client: CatalogClient,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        ticket_service: Service issuing and resolving tickets
        order_service: Service placing and looking up orders
        lifecycle_service: Service applying status transitions
        aggregation_service: Service building daily summaries
        report_service: Service rendering CSV reports
        catalog_client: Client for vendor records

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Market Order Service API",
        description="Multi-vendor ordering under shared pickup tickets",
        version="1.0.0",
    )

    # Store services in app state for access in route handlers
    app.state.ticket_service = ticket_service
    app.state.order_service = order_service
    app.state.lifecycle_service = lifecycle_service
    app.state.aggregation_service = aggregation_service
    app.state.report_service = report_service
    app.state.catalog_client = catalog_client

    @app.exception_handler(OrderingError)
    async def handle_ordering_error(request: Request, exc: OrderingError) -> JSONResponse:
        if isinstance(exc, InternalError):
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
            return JSONResponse(status_code=exc.status_code, content={"detail": GENERIC_ERROR})

        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"{request.method} {request.url.path} failed unexpectedly: {exc}")
        return JSONResponse(status_code=500, content={"detail": GENERIC_ERROR})

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # Malformed bodies are client errors like any other ValidationError.
        return JSONResponse(
            status_code=400,
            content={"detail": "Invalid request.", "errors": jsonable_encoder(exc.errors())},
        )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy")

    @app.get("/vendors", response_model=list[Vendor], tags=["Vendors"])
    async def list_vendors() -> list[Vendor]:
        """List trading vendors for the cashier screen."""
        vendors: list[Vendor] = await app.state.catalog_client.list_active_vendors()
        return vendors

    @app.get("/vendors/by-slug/{slug}", response_model=Vendor, tags=["Vendors"])
    async def get_vendor_by_slug(slug: str) -> Vendor:
        """Resolve the vendor behind a vendor board URL.

        Raises:
            HTTPException: 404 if no vendor has that slug
        """
        vendor: Vendor | None = await app.state.catalog_client.get_vendor_by_slug(slug)
        if vendor is None:
            raise HTTPException(status_code=404, detail="Vendor not found")
        return vendor

    @app.get(
        "/vendors/{vendor_id}/orders/active",
        response_model=list[OrderDetail],
        tags=["Orders"],
    )
    async def list_vendor_active_orders(vendor_id: str) -> list[OrderDetail]:
        """Orders a vendor still has to prepare or hand over, oldest first."""
        orders: list[OrderDetail] = await app.state.order_service.list_vendor_active_orders(vendor_id)
        return orders

    @app.post("/tickets", response_model=Ticket, status_code=201, tags=["Tickets"])
    async def start_ticket() -> Ticket:
        """Issue a new empty ticket."""
        ticket: Ticket = await app.state.ticket_service.start_ticket()
        return ticket

    @app.post("/orders", response_model=CreatedOrder, status_code=201, tags=["Orders"])
    async def create_order(body: CreateOrderRequest) -> CreatedOrder:
        """Place one vendor's share of a cart.

        The cashier calls this once per vendor in the cart, passing the
        ticket_id from the first response into every later call.
        """
        logger.info(f"Creating order for vendor {body.vendor_id} with {len(body.items)} lines")

        created: CreatedOrder = await app.state.order_service.create_order(
            vendor_id=body.vendor_id,
            lines=body.items,
            payment_method=body.payment_method,
            tax_rate=body.tax_rate,
            ticket_id=body.ticket_id,
        )
        return created

    @app.post("/orders/status", response_model=Order, tags=["Orders"])
    async def update_status(body: UpdateStatusRequest) -> Order:
        """Move an order along preparing -> ready -> collected."""
        order: Order = await app.state.lifecycle_service.update_status(
            to_status=body.to_status,
            actor=body.actor,
            order_id=body.order_id,
            order_code=body.order_code,
        )
        return order

    @app.get("/orders", response_model=list[Order], tags=["Orders"])
    async def list_orders_for_day(date: str | None = None) -> list[Order]:
        """All orders of a day, oldest first, for cashier reconciliation."""
        day = parse_day(date) or app.state.aggregation_service.today()
        orders: list[Order] = await app.state.order_service.list_orders_for_day(day)
        return orders

    @app.get("/orders/by-code/{code}", response_model=OrderDetail, tags=["Orders"])
    async def get_order_by_code(code: str) -> OrderDetail:
        """Single order with vendor name and items."""
        detail: OrderDetail = await app.state.order_service.get_order_by_code(code)
        return detail

    @app.get("/orders/{order_id}/events", response_model=list[OrderEvent], tags=["Orders"])
    async def get_order_events(order_id: str) -> list[OrderEvent]:
        """Audit trail of an order, oldest first."""
        events: list[OrderEvent] = await app.state.lifecycle_service.get_history(order_id)
        return events

    @app.get("/status/{code}", response_model=StatusLookup, tags=["Status"])
    async def lookup_status(code: str) -> StatusLookup:
        """Resolve a ticket or order code for the customer status page."""
        lookup: StatusLookup = await app.state.order_service.lookup_code(code)
        return lookup

    @app.get("/admin/summary", response_model=Summary, tags=["Admin"])
    async def get_summary(date: str | None = None) -> Summary:
        """Dashboard summary of a day (today by default)."""
        summary: Summary = await app.state.aggregation_service.summarize(parse_day(date))
        return summary

    @app.get("/admin/reports", tags=["Admin"])
    async def get_report(date: str | None = None, type: str = "summary") -> Response:
        """Download a CSV report of a day.

        Raises:
            HTTPException: 400 for an unknown report type
        """
        try:
            report_type = ReportType(type)
        except ValueError:
            raise HTTPException(status_code=400, detail="Unknown report type") from None

        filename, body = await app.state.report_service.build(report_type, parse_day(date))

        return Response(
            content=body.encode("utf-8"),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    return app
