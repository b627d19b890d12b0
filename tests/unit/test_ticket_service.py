"""Unit tests for TicketService."""

import random
import re
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from market_order_service.clock import FixedClock
from market_order_service.errors import CodeCollisionError, NotFoundError, ResourceExhaustedError
from market_order_service.models.order_models import Ticket, TicketStatus
from market_order_service.repositories.order_repositories import TicketRepository
from market_order_service.services.code_generator import CodeGenerator
from market_order_service.services.notification_service import ChangeNotifier
from market_order_service.services.ticket_service import TicketService


@pytest.mark.unit
class TestTicketService:
    """Test suite for TicketService."""

    @pytest.fixture
    def mock_repository(self) -> MagicMock:
        """Create a mock ticket repository that stores what it is given."""
        repository = MagicMock(spec=TicketRepository)
        repository.create_ticket.side_effect = lambda ticket: ticket
        return repository

    @pytest.fixture
    def mock_notifier(self) -> MagicMock:
        """Create a mock change notifier."""
        return MagicMock(spec=ChangeNotifier)

    @pytest.fixture
    def service(
        self, mock_repository: MagicMock, mock_notifier: MagicMock, clock: FixedClock
    ) -> TicketService:
        """Create a TicketService with mocked dependencies."""
        return TicketService(
            ticket_repository=mock_repository,
            code_generator=CodeGenerator(rng=random.Random(7)),
            ticket_code_prefix="WL",
            clock=clock,
            notifier=mock_notifier,
        )

    @pytest.mark.asyncio
    async def test_start_ticket(
        self,
        service: TicketService,
        mock_repository: MagicMock,
        mock_notifier: MagicMock,
        fixed_now: datetime,
    ) -> None:
        """Test issuing a new open ticket."""
        ticket = await service.start_ticket()

        assert re.fullmatch(r"WL-\d{4}", ticket.ticket_code)
        assert ticket.status == TicketStatus.OPEN
        assert ticket.created_at == fixed_now
        mock_repository.create_ticket.assert_called_once_with(ticket)
        mock_notifier.ticket_changed.assert_called_once_with(ticket, "created", fixed_now)

    @pytest.mark.asyncio
    async def test_start_ticket_retries_collision_with_same_id(
        self, service: TicketService, mock_repository: MagicMock
    ) -> None:
        """Test that a taken code is retried for the same ticket."""
        attempts: list[Ticket] = []

        def create(ticket: Ticket) -> Ticket:
            attempts.append(ticket)
            if len(attempts) == 1:
                raise CodeCollisionError(ticket.ticket_code)
            return ticket

        mock_repository.create_ticket.side_effect = create

        ticket = await service.start_ticket()

        assert len(attempts) == 2
        assert attempts[0].id == attempts[1].id == ticket.id

    @pytest.mark.asyncio
    async def test_start_ticket_exhausted(
        self, service: TicketService, mock_repository: MagicMock, mock_notifier: MagicMock
    ) -> None:
        """Test giving up after the attempt bound."""
        mock_repository.create_ticket.side_effect = CodeCollisionError("WL-1000")

        with pytest.raises(ResourceExhaustedError):
            await service.start_ticket()

        assert mock_repository.create_ticket.call_count == 5
        mock_notifier.ticket_changed.assert_not_called()

    @pytest.mark.asyncio
    async def test_ensure_ticket_existing(
        self, service: TicketService, mock_repository: MagicMock, ticket: Ticket
    ) -> None:
        """Test attaching to an existing ticket."""
        mock_repository.get_ticket.return_value = ticket

        result = await service.ensure_ticket("t1")

        assert result == ticket
        mock_repository.get_ticket.assert_called_once_with("t1")
        mock_repository.create_ticket.assert_not_called()

    @pytest.mark.asyncio
    async def test_ensure_ticket_unknown_id(
        self, service: TicketService, mock_repository: MagicMock
    ) -> None:
        """Test that an unknown ticket id is not silently replaced."""
        mock_repository.get_ticket.return_value = None

        with pytest.raises(NotFoundError):
            await service.ensure_ticket("missing")

        mock_repository.create_ticket.assert_not_called()

    @pytest.mark.asyncio
    async def test_ensure_ticket_without_id_starts_new(
        self, service: TicketService, mock_repository: MagicMock
    ) -> None:
        """Test that a new ticket is issued when no id is given."""
        result = await service.ensure_ticket(None)

        assert result.status == TicketStatus.OPEN
        mock_repository.create_ticket.assert_called_once()

    @pytest.mark.asyncio
    async def test_get_ticket_by_code(
        self, service: TicketService, mock_repository: MagicMock, ticket: Ticket
    ) -> None:
        """Test resolving a ticket code."""
        mock_repository.get_ticket_by_code.return_value = ticket

        assert await service.get_ticket_by_code("WL-4821") == ticket
