"""
Ticket Application Services
===========================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: TicketService owns the lifecycle, NotificationService
  owns delivery
- Dependency Inversion: Depend on abstractions (repositories, transports),
  not concrete implementations
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Set

from helpdesk.config import TicketStatus, NotificationKind
from helpdesk.core import (
    ValidationException,
    ResourceNotFoundException,
    TicketLifecycleException,
)
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.tickets.application.dto import TicketCreateDTO, TicketUpdateDTO
from helpdesk.tickets.domain import (
    Ticket,
    StaffAccount,
    ReporterPolicy,
    TicketLifecycle,
    RenderedNotification,
    NotificationTemplateBuilder,
)

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def create(self, values: dict) -> Ticket:
        """Insert a ticket and return it with its assigned id."""

    @abstractmethod
    async def get_by_id(self, ticket_id: int) -> Optional[Ticket]:
        """Get ticket by id."""

    @abstractmethod
    async def get_status(self, ticket_id: int) -> Optional[str]:
        """Current status of a ticket, None when it does not exist."""

    @abstractmethod
    async def list(self, filters: dict) -> List[Ticket]:
        """List tickets matching equality filters, oldest first."""

    @abstractmethod
    async def update(
        self,
        ticket_id: int,
        changes: dict,
        unless_status: Optional[str] = None
    ) -> int:
        """
        Apply changes in one statement and return the affected row count.

        When unless_status is given, rows currently in that status are left
        untouched.
        """

    @abstractmethod
    async def delete(self, ticket_id: int) -> int:
        """Delete one ticket, return the affected row count."""

    @abstractmethod
    async def delete_all(self) -> int:
        """Delete every ticket, return the affected row count."""


class IUserRepository(ABC):
    """Interface for user roster data access."""

    @abstractmethod
    async def list(self) -> List[StaffAccount]:
        """All roster entries in insertion order."""

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[StaffAccount]:
        """Roster entry for an email address."""

    @abstractmethod
    async def create(self, account: StaffAccount) -> StaffAccount:
        """Add a roster entry."""


class IMailTransport(ABC):
    """Interface for outbound mail submission."""

    @abstractmethod
    async def send(self, recipient: str, notification: RenderedNotification) -> None:
        """Send one notification to one recipient."""


class INotifier(ABC):
    """Interface for ticket notifications."""

    @abstractmethod
    def notify(self, kind: str, ticket: Ticket) -> List[asyncio.Task]:
        """Schedule delivery and return without waiting for it."""


# ========== Application Services ==========

class NotificationService(INotifier):
    """
    Fire-and-forget notification dispatch.

    Every recipient gets its own background task, so a failed or slow
    delivery never blocks the caller or the other recipient. Failures are
    logged, never raised.
    """

    def __init__(
        self,
        transport: IMailTransport,
        templates: NotificationTemplateBuilder,
        timeout_seconds: float = 10.0
    ):
        self._transport = transport
        self._templates = templates
        self._timeout = timeout_seconds
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def notify(self, kind: str, ticket: Ticket) -> List[asyncio.Task]:
        recipients = ticket.notification_recipients(kind)
        if not recipients:
            logger.info(
                "No recipients for notification",
                extra={"ticket_id": ticket.id, "kind": kind}
            )
            return []

        rendered = self._templates.render(kind, ticket)

        tasks = []
        for recipient in recipients:
            task = asyncio.create_task(self._deliver(kind, ticket.id, recipient, rendered))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            tasks.append(task)
        return tasks

    async def _deliver(
        self,
        kind: str,
        ticket_id: int,
        recipient: str,
        rendered: RenderedNotification
    ) -> bool:
        try:
            await asyncio.wait_for(self._transport.send(recipient, rendered), self._timeout)
        except asyncio.TimeoutError:
            logger.error(
                "Notification timed out",
                extra={"ticket_id": ticket_id, "kind": kind, "recipient": recipient,
                       "timeout_seconds": self._timeout}
            )
            return False
        except Exception as e:
            # Background task: nothing upstream can handle this
            logger.error(
                "Notification failed",
                extra={"ticket_id": ticket_id, "kind": kind, "recipient": recipient,
                       "error": str(e), "error_type": type(e).__name__}
            )
            return False

        logger.info(
            "Notification sent",
            extra={"ticket_id": ticket_id, "kind": kind, "recipient": recipient}
        )
        return True

    async def drain(self) -> None:
        """Wait for every pending delivery (shutdown and tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


class TicketService:
    """
    The ticket store's use cases: create, read, list, update, delete.

    Owns the lifecycle rules (reporter allow-list, open -> resolved only,
    resolution timestamps) and fires the resolution notice.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        reporter_policy: ReporterPolicy,
        notifier: Optional[INotifier] = None
    ):
        self._repo = ticket_repository
        self._policy = reporter_policy
        self._notifier = notifier

    def _check_reporter(self, reported_by: Optional[str]) -> None:
        if reported_by and not self._policy.allows(reported_by):
            raise ValidationException(
                f"Reporter '{reported_by}' is not from an allowed domain",
                {"reported_by": reported_by, "allowed_domains": list(self._policy.allowed_domains)}
            )

    async def create(self, dto: TicketCreateDTO) -> Ticket:
        """
        Create a ticket.

        Raises:
            ValidationException: reporter domain not allow-listed
        """
        self._check_reporter(dto.reported_by)

        now = datetime.now()
        values = dto.model_dump()
        values["date_reported"] = dto.date_reported or now.date()
        values["time_reported"] = dto.time_reported or now.time().replace(microsecond=0)

        ticket = await self._repo.create(values)
        logger.info(
            "Ticket created",
            extra={"ticket_id": ticket.id, "reported_by": ticket.reported_by, "staff": ticket.staff}
        )
        return ticket

    async def get(self, ticket_id: int) -> Optional[Ticket]:
        return await self._repo.get_by_id(ticket_id)

    async def require(self, ticket_id: int) -> Ticket:
        """
        Get a ticket that must exist.

        Raises:
            ResourceNotFoundException: no ticket with this id
        """
        ticket = await self._repo.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", str(ticket_id))
        return ticket

    async def list(self, filters: Optional[dict] = None) -> List[Ticket]:
        return await self._repo.list(filters or {})

    async def update(self, ticket_id: int, dto: TicketUpdateDTO) -> bool:
        """
        Apply a partial update.

        Returns:
            False when the ticket does not exist, True otherwise

        Raises:
            ValidationException: issue or status set to null, or new reporter
                domain not allow-listed
            TicketLifecycleException: a resolved ticket would be reopened
        """
        changes = dto.changes()
        for name in ("issue", "status"):
            if name in changes and changes[name] is None:
                raise ValidationException(f"Field '{name}' cannot be null", {"field": name})
        if "reported_by" in changes:
            self._check_reporter(changes["reported_by"])

        if not changes:
            return await self._repo.get_status(ticket_id) is not None

        requested = changes.get("status")
        resolving = TicketLifecycle.is_resolution(requested)

        if resolving:
            now = datetime.now()
            if not changes.get("resolution_time"):
                changes["resolution_time"] = now.time().replace(microsecond=0)
            if not changes.get("date_closed"):
                changes["date_closed"] = now.date()

        # Guard the transition inside the UPDATE itself instead of reading first
        unless_status = None
        if requested is not None and not TicketLifecycle.allows(TicketStatus.RESOLVED, requested):
            unless_status = TicketStatus.RESOLVED

        rowcount = await self._repo.update(ticket_id, changes, unless_status=unless_status)

        if rowcount == 0:
            if unless_status is not None:
                current = await self._repo.get_status(ticket_id)
                if current is not None:
                    raise TicketLifecycleException(ticket_id, current, requested)
            logger.info("Ticket not found for update", extra={"ticket_id": ticket_id})
            return False

        logger.info(
            "Ticket updated",
            extra={"ticket_id": ticket_id, "fields": sorted(changes)}
        )

        # Fires on every resolving update, already-resolved tickets included
        if resolving and self._notifier is not None:
            ticket = await self._repo.get_by_id(ticket_id)
            if ticket is not None:
                self._notifier.notify(NotificationKind.RESOLVED, ticket)

        return True

    async def delete(self, ticket_id: int) -> bool:
        deleted = await self._repo.delete(ticket_id)
        if deleted:
            logger.info("Ticket deleted", extra={"ticket_id": ticket_id})
        return deleted > 0

    async def delete_all(self) -> int:
        count = await self._repo.delete_all()
        logger.info("All tickets deleted", extra={"count": count})
        return count
