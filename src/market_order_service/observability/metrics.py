"""Custom metrics for the order service."""

from opentelemetry import metrics

meter = metrics.get_meter("order-svc")

orders_created_counter = meter.create_counter(
    name="orders_created_total",
    description="Total number of vendor orders placed",
    unit="1",
)

tickets_created_counter = meter.create_counter(
    name="tickets_created_total",
    description="Total number of pickup tickets issued",
    unit="1",
)

status_transition_counter = meter.create_counter(
    name="order_status_transitions_total",
    description="Status transitions applied, by from/to state and actor",
    unit="1",
)

code_collision_counter = meter.create_counter(
    name="code_collisions_total",
    description="Generated ticket/order codes that were already taken",
    unit="1",
)

code_exhaustion_counter = meter.create_counter(
    name="code_allocation_exhausted_total",
    description="Code allocations that gave up after the retry bound",
    unit="1",
)

order_creation_duration = meter.create_histogram(
    name="order_creation_duration_seconds",
    description="Duration of order creation including catalog validation",
    unit="s",
)


def record_order_created(vendor_id: str, total_cents: int) -> None:  # noqa: ARG001
    """Record a placed vendor order.

    Args:
        vendor_id: Vendor the order was placed with
        total_cents: Order total in minor units
    """
    orders_created_counter.add(1, {"vendor_id": vendor_id})


def record_ticket_created() -> None:
    """Record an issued pickup ticket."""
    tickets_created_counter.add(1)


def record_status_transition(from_status: str, to_status: str, actor: str) -> None:
    """Record an applied status transition."""
    status_transition_counter.add(
        1, {"from_status": from_status, "to_status": to_status, "actor": actor}
    )


def record_code_collision(kind: str) -> None:
    """Record a code collision.

    Args:
        kind: Code namespace ("ticket" or "order")
    """
    code_collision_counter.add(1, {"kind": kind})


def record_code_exhaustion(kind: str) -> None:
    """Record a code allocation that ran out of attempts."""
    code_exhaustion_counter.add(1, {"kind": kind})


def record_order_creation_duration(duration_seconds: float) -> None:
    """Record how long order creation took.

    Args:
        duration_seconds: Duration in seconds
    """
    order_creation_duration.record(duration_seconds)
