"""Change notifications for tickets and orders.

Writers publish an event to EventBridge after every successful change.
Publishing is fire-and-forget: it runs off the request path, failures are
logged and never reach the caller, and events may arrive late or out of
order. Consumers therefore treat a notification only as a hint to re-fetch,
and coalesce bursts with ChangeDebouncer before doing so.
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from market_order_service.models.order_models import Order, Ticket, to_iso

logger = logging.getLogger(__name__)

EVENT_SOURCE = "com.market.orders"
DEFAULT_DEBOUNCE_SECONDS = 0.3


class ChangeNotifier:
    """Publishes OrderChanged and TicketChanged events to an event bus."""

    def __init__(self, events_client: Any, event_bus_name: str, source: str = EVENT_SOURCE) -> None:
        """Initialize the notifier.

        Args:
            events_client: Boto3 EventBridge client
            event_bus_name: Bus to publish to
            source: Event source attribute
        """
        self.events_client = events_client
        self.event_bus_name = event_bus_name
        self.source = source
        self._pending: set[asyncio.Task[bool]] = set()

    def order_changed(self, order: Order, change: str, at: datetime) -> None:
        """Announce that an order was created or changed state.

        Args:
            order: Order after the change
            change: "created" or "status_changed"
            at: When the change happened
        """
        self._publish_nowait(
            "OrderChanged",
            {
                "change": change,
                "order_id": order.id,
                "order_code": order.order_code,
                "vendor_id": order.vendor_id,
                "ticket_id": order.ticket_id,
                "status": order.status.value,
                "at": to_iso(at),
            },
        )

    def ticket_changed(self, ticket: Ticket, change: str, at: datetime) -> None:
        """Announce that a ticket was issued."""
        self._publish_nowait(
            "TicketChanged",
            {
                "change": change,
                "ticket_id": ticket.id,
                "ticket_code": ticket.ticket_code,
                "status": ticket.status.value,
                "at": to_iso(at),
            },
        )

    def publish(self, detail_type: str, detail: dict[str, Any]) -> bool:
        """Publish one event synchronously.

        Args:
            detail_type: EventBridge detail-type
            detail: JSON-serializable event payload

        Returns:
            bool: True if EventBridge accepted the entry, False otherwise
        """
        entry = {
            "Source": self.source,
            "DetailType": detail_type,
            "Detail": json.dumps(detail),
            "EventBusName": self.event_bus_name,
        }

        try:
            response = self.events_client.put_events(Entries=[entry])
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to publish {detail_type}: {e}")
            return False

        if response.get("FailedEntryCount", 0):
            logger.error(f"EventBridge rejected {detail_type}: {response.get('Entries')}")
            return False

        return True

    def _publish_nowait(self, detail_type: str, detail: dict[str, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.publish(detail_type, detail)
            return

        task = loop.create_task(asyncio.to_thread(self.publish, detail_type, detail))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for publishes started from a running event loop to finish."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)


class ChangeDebouncer:
    """Coalesces bursts of change notifications into one refresh.

    Every call to ``notify`` restarts the quiet window; ``refresh`` runs once
    the window elapses with no further notifications.
    """

    def __init__(
        self,
        refresh: Callable[[], Awaitable[None]],
        delay_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self.refresh = refresh
        self.delay_seconds = delay_seconds
        self._handle: asyncio.TimerHandle | None = None
        self._running: set[asyncio.Task[None]] = set()

    def notify(self) -> None:
        """Register a change. Must be called from within a running event loop."""
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.delay_seconds, self._fire)

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.get_running_loop().create_task(self._run())
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _run(self) -> None:
        try:
            await self.refresh()
        except Exception:
            logger.exception("Debounced refresh failed")

    async def close(self) -> None:
        """Cancel any pending refresh and wait for a running one to finish."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)
