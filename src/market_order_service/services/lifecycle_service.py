"""Order status state machine: preparing -> ready -> collected."""

import logging
from datetime import datetime

from market_order_service.clock import Clock, SystemClock
from market_order_service.errors import ConflictError, NotFoundError, ValidationError
from market_order_service.models.order_models import Actor, Order, OrderEvent, OrderStatus
from market_order_service.observability import traced
from market_order_service.observability.metrics import record_status_transition
from market_order_service.repositories.order_repositories import OrderRepository
from market_order_service.services.notification_service import ChangeNotifier

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: frozenset[tuple[OrderStatus, OrderStatus]] = frozenset(
    {
        (OrderStatus.PREPARING, OrderStatus.READY),
        (OrderStatus.READY, OrderStatus.COLLECTED),
    }
)

TIMESTAMP_FIELDS: dict[OrderStatus, str] = {
    OrderStatus.PREPARING: "preparing_at",
    OrderStatus.READY: "ready_at",
    OrderStatus.COLLECTED: "collected_at",
}


def can_transition(from_status: OrderStatus, to_status: OrderStatus) -> bool:
    """Whether the lifecycle allows moving from one state to another."""
    return (from_status, to_status) in ALLOWED_TRANSITIONS


class LifecycleService:
    """Applies status transitions to orders and records their audit trail.

    Transitions are linear with no skipping and no way back. Asking for the
    state an order is already in is a no-op, so retried requests are safe.
    Each timestamp field is written only on the first entry into its state.
    """

    def __init__(
        self,
        order_repository: OrderRepository,
        clock: Clock | None = None,
        notifier: ChangeNotifier | None = None,
    ) -> None:
        """Initialize the LifecycleService.

        Args:
            order_repository: Repository for orders and events
            clock: Time source for transition timestamps
            notifier: Optional change notifier
        """
        self.order_repository = order_repository
        self.clock = clock or SystemClock()
        self.notifier = notifier

    @traced("order.update_status")
    async def update_status(
        self,
        to_status: OrderStatus,
        actor: Actor,
        order_id: str | None = None,
        order_code: str | None = None,
        at: datetime | None = None,
    ) -> Order:
        """Move an order to a new status.

        Args:
            to_status: Requested state
            actor: Party making the change
            order_id: Order to update (takes precedence over order_code)
            order_code: Order to update, by human-readable code
            at: Transition time; the clock's current time when omitted

        Returns:
            The order after the call (unchanged when already in to_status)

        Raises:
            ValidationError: If neither order_id nor order_code is given
            NotFoundError: If the order does not exist
            ConflictError: If the transition is not allowed
        """
        current = self._load(order_id, order_code)

        if current.status == to_status:
            return current

        if not can_transition(current.status, to_status):
            raise ConflictError(
                f"Invalid status transition {current.status.value} -> {to_status.value}"
            )

        at = at or self.clock.now()
        updated = self.order_repository.transition_status(
            current.id, current.status, to_status, TIMESTAMP_FIELDS[to_status], at
        )

        if updated is None:
            # Someone else changed the status between our read and the guarded write.
            latest = self.order_repository.get_order(current.id)
            if latest is not None and latest.status == to_status:
                return latest
            raise ConflictError(
                f"Invalid status transition {current.status.value} -> {to_status.value}: "
                "order was changed concurrently"
            )

        event = OrderEvent.record(updated.id, current.status, to_status, actor, at)
        if not self.order_repository.append_event(event):
            logger.warning(
                f"Order {updated.order_code} moved to {to_status.value} but its audit event "
                "was not recorded"
            )

        record_status_transition(current.status.value, to_status.value, actor.value)
        logger.info(
            f"Order {updated.order_code}: {current.status.value} -> {to_status.value} "
            f"by {actor.value}"
        )

        if self.notifier is not None:
            self.notifier.order_changed(updated, "status_changed", at)

        return updated

    async def get_history(self, order_id: str) -> list[OrderEvent]:
        """Return the audit trail of an order, oldest first."""
        return self.order_repository.list_events(order_id)

    def _load(self, order_id: str | None, order_code: str | None) -> Order:
        if not order_id and not order_code:
            raise ValidationError("order_id or order_code is required.")

        if order_id:
            order = self.order_repository.get_order(order_id)
        else:
            order = self.order_repository.get_order_by_code(order_code or "")

        if order is None:
            raise NotFoundError("Order not found.")

        return order
