"""Ticket (pickup slip) issuance and resolution."""

import logging
import uuid

from market_order_service.clock import Clock, SystemClock
from market_order_service.errors import NotFoundError
from market_order_service.models.order_models import CodeKind, Ticket, TicketStatus
from market_order_service.observability import traced
from market_order_service.observability.metrics import record_ticket_created
from market_order_service.repositories.order_repositories import TicketRepository
from market_order_service.services.code_generator import CodeGenerator
from market_order_service.services.notification_service import ChangeNotifier

logger = logging.getLogger(__name__)


class TicketService:
    """Creates or resolves the shared ticket that groups vendor orders.

    A cashier's cart fans out into one order per vendor. The first order
    creates the ticket; every later order of the same cart passes the
    returned ticket id back in so all orders land on one pickup slip.
    """

    def __init__(
        self,
        ticket_repository: TicketRepository,
        code_generator: CodeGenerator,
        ticket_code_prefix: str = "WL",
        clock: Clock | None = None,
        notifier: ChangeNotifier | None = None,
    ) -> None:
        """Initialize the TicketService.

        Args:
            ticket_repository: Repository for ticket records
            code_generator: Generator used to allocate ticket codes
            ticket_code_prefix: Prefix of ticket codes
            clock: Time source for created_at
            notifier: Optional change notifier
        """
        self.ticket_repository = ticket_repository
        self.code_generator = code_generator
        self.ticket_code_prefix = ticket_code_prefix
        self.clock = clock or SystemClock()
        self.notifier = notifier

    @traced("ticket.ensure")
    async def ensure_ticket(self, ticket_id: str | None = None) -> Ticket:
        """Load the given ticket, or issue a new one when no id is given.

        Args:
            ticket_id: Existing ticket to attach to, if any

        Returns:
            The existing or newly issued Ticket

        Raises:
            NotFoundError: If ticket_id is given but does not exist
            ResourceExhaustedError: If no free ticket code could be allocated
        """
        if ticket_id:
            ticket = self.ticket_repository.get_ticket(ticket_id)
            if ticket is None:
                raise NotFoundError("Ticket not found.")
            return ticket

        return await self.start_ticket()

    @traced("ticket.start")
    async def start_ticket(self) -> Ticket:
        """Issue a new open ticket under a freshly allocated code.

        Returns:
            The new Ticket

        Raises:
            ResourceExhaustedError: If no free ticket code could be allocated
        """
        ticket_id = str(uuid.uuid4())
        created_at = self.clock.now()

        def claim(code: str) -> Ticket:
            ticket = Ticket(
                id=ticket_id,
                ticket_code=code,
                status=TicketStatus.OPEN,
                created_at=created_at,
            )
            return self.ticket_repository.create_ticket(ticket)

        ticket = self.code_generator.allocate(self.ticket_code_prefix, CodeKind.TICKET, claim)

        record_ticket_created()
        logger.info(f"Issued ticket {ticket.ticket_code} ({ticket.id})")

        if self.notifier is not None:
            self.notifier.ticket_changed(ticket, "created", created_at)

        return ticket

    async def get_ticket_by_code(self, ticket_code: str) -> Ticket | None:
        """Resolve a ticket code.

        Args:
            ticket_code: Code printed on the slip

        Returns:
            Ticket if found, None otherwise
        """
        return self.ticket_repository.get_ticket_by_code(ticket_code)
