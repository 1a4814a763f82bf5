"""
Ingestion Application Services
==============================

The ingestion cycle: list unread mail, then for every message
Parse -> Classify -> Act -> Acknowledge.

Each stage yields an explicit outcome; an exception raised while handling
one message is recorded on that message's outcome and never reaches the
next one.
"""

import asyncio
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from helpdesk.config import TicketStatus, NotificationKind
from helpdesk.core import ApplicationException, MailboxException
from helpdesk.ingestion.domain import (
    RawMessage,
    InboundMessage,
    Disposition,
    DispositionKind,
    IngestionRules,
    MessageClassifier,
    parse_message,
)
from helpdesk.shared.infrastructure.circuit_breaker import CircuitBreaker
from helpdesk.shared.infrastructure.logging import get_logger, get_context_logger, log_latency
from helpdesk.tickets.application import INotifier, TicketCreateDTO, TicketUpdateDTO
from helpdesk.tickets.domain import (
    Ticket,
    StaffAccount,
    AssignmentPolicy,
    FirstAdminAssignmentPolicy,
)

logger = get_logger(__name__)

NO_SUBJECT = "(no subject)"


# ========== Interfaces (Dependency Inversion) ==========

class IMailboxSource(ABC):
    """Interface for the inbound mailbox."""

    @abstractmethod
    async def connect(self) -> None:
        """Open and authenticate a session. Raises MailboxException."""

    @abstractmethod
    async def list_unread(self) -> List[RawMessage]:
        """Unread messages in listing order, without marking them seen."""

    @abstractmethod
    async def mark_seen(self, sequence_number: str) -> None:
        """Acknowledge one message."""

    @abstractmethod
    async def close(self) -> None:
        """Close the session; never raises."""


class ITicketGateway(ABC):
    """Interface the ingestion loop uses to write to the ticket store."""

    @abstractmethod
    async def create_ticket(
        self,
        payload: TicketCreateDTO,
        correlation_id: Optional[str] = None
    ) -> int:
        """Create a ticket and return its id."""

    @abstractmethod
    async def resolve_ticket(
        self,
        ticket_id: int,
        payload: TicketUpdateDTO,
        correlation_id: Optional[str] = None
    ) -> bool:
        """Apply a resolution update; False when the ticket does not exist."""


class IUserSource(ABC):
    """Interface for reading the user roster."""

    @abstractmethod
    async def fetch_users(self) -> List[StaffAccount]:
        """All roster entries in roster order."""


class IRulesProvider(ABC):
    """Interface for the current ingestion rules."""

    @abstractmethod
    def get_rules(self) -> IngestionRules:
        """Rules in effect right now."""


# ========== User Directory ==========

class CachedUserDirectory:
    """
    Read-through TTL cache over the user roster.

    Replaces a process-wide mutable user list: the roster is fetched on
    first use and again once the TTL expires or `invalidate()` is called.
    """

    def __init__(
        self,
        source: IUserSource,
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self._source = source
        self._ttl = ttl_seconds
        self._clock = clock
        self._users: Optional[List[StaffAccount]] = None
        self._loaded_at: Optional[float] = None
        self._lock = asyncio.Lock()

    def _is_fresh(self) -> bool:
        if self._users is None or self._loaded_at is None:
            return False
        return (self._clock() - self._loaded_at) < self._ttl

    async def roster(self) -> List[StaffAccount]:
        if self._is_fresh():
            return list(self._users)

        async with self._lock:
            if not self._is_fresh():
                users = await self._source.fetch_users()
                self._users = list(users)
                self._loaded_at = self._clock()
                logger.debug("User roster loaded", extra={"user_count": len(self._users)})
            return list(self._users)

    async def find(self, address: str) -> Optional[StaffAccount]:
        for account in await self.roster():
            if account.matches(address):
                return account
        return None

    def invalidate(self) -> None:
        self._users = None
        self._loaded_at = None


# ========== Outcomes ==========

class OutcomeStatus(str):
    """Result of the Act stage for one message."""
    IGNORED = "ignored"
    CREATED = "created"
    RESOLVED = "resolved"
    NOT_FOUND = "not_found"
    FAILED = "failed"


class Stage(str):
    PARSE = "parse"
    CLASSIFY = "classify"
    ACT = "act"
    ACKNOWLEDGE = "acknowledge"


@dataclass
class MessageOutcome:
    """What happened to one message during a cycle."""
    sequence_number: str
    status: str = OutcomeStatus.FAILED
    disposition: Optional[str] = None
    sender: Optional[str] = None
    ticket_id: Optional[int] = None
    staff: Optional[str] = None
    reason: Optional[str] = None
    failed_stage: Optional[str] = None
    error: Optional[str] = None
    acknowledged: bool = False
    ack_error: Optional[str] = None

    def fail(self, stage: str, error: Exception) -> None:
        self.status = OutcomeStatus.FAILED
        self.failed_stage = stage
        self.error = str(error)


@dataclass
class CycleSummary:
    """Result of one ingestion cycle."""
    cycle_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    skipped: bool = False
    skip_reason: Optional[str] = None
    error: Optional[str] = None
    fetched: int = 0
    outcomes: List[MessageOutcome] = field(default_factory=list)

    @property
    def counts(self) -> Dict[str, int]:
        counts = {
            OutcomeStatus.IGNORED: 0,
            OutcomeStatus.CREATED: 0,
            OutcomeStatus.RESOLVED: 0,
            OutcomeStatus.NOT_FOUND: 0,
            OutcomeStatus.FAILED: 0,
        }
        for outcome in self.outcomes:
            counts[outcome.status] = counts.get(outcome.status, 0) + 1
        return counts

    @property
    def ack_failures(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.acknowledged)


# ========== Application Service ==========

class IngestionService:
    """
    Runs ingestion cycles, one at a time.

    A second `run_cycle()` while one is in flight returns immediately with a
    skipped summary. Mailbox connection failures feed a circuit breaker so a
    dead server is not retried every poll.
    """

    def __init__(
        self,
        mailbox: IMailboxSource,
        gateway: ITicketGateway,
        directory: CachedUserDirectory,
        rules_provider: IRulesProvider,
        notifier: INotifier,
        assignment_policy: Optional[AssignmentPolicy] = None,
        circuit_breaker: Optional[CircuitBreaker] = None
    ):
        self._mailbox = mailbox
        self._gateway = gateway
        self._directory = directory
        self._rules_provider = rules_provider
        self._notifier = notifier
        self._assignment = assignment_policy or FirstAdminAssignmentPolicy()
        self._breaker = circuit_breaker or CircuitBreaker("mailbox")
        self._lock = asyncio.Lock()
        self.last_summary: Optional[CycleSummary] = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def user_directory(self) -> CachedUserDirectory:
        return self._directory

    async def run_cycle(self) -> CycleSummary:
        """Run one ingestion cycle and return its summary."""
        summary = CycleSummary(cycle_id=str(uuid.uuid4()), started_at=datetime.now(timezone.utc))
        log = get_context_logger(__name__, summary.cycle_id)

        if self._lock.locked():
            log.info("Ingestion cycle already running, skipping")
            summary.skipped = True
            summary.skip_reason = "cycle_in_progress"
            summary.finished_at = datetime.now(timezone.utc)
            return summary

        async with self._lock:
            with log_latency(log, "ingestion_cycle", cycle_id=summary.cycle_id):
                await self._run(summary, log)
            summary.finished_at = datetime.now(timezone.utc)

        self.last_summary = summary
        log.info(
            "Ingestion cycle finished",
            extra={
                "skipped": summary.skipped,
                "skip_reason": summary.skip_reason,
                "fetched": summary.fetched,
                "ack_failures": summary.ack_failures,
                **summary.counts,
            }
        )
        return summary

    async def _run(self, summary: CycleSummary, log) -> None:
        if not self._breaker.allow_request():
            log.warning(
                "Mailbox circuit open, skipping ingestion cycle",
                extra={"failure_count": self._breaker.failure_count}
            )
            summary.skipped = True
            summary.skip_reason = "mailbox_circuit_open"
            return

        try:
            await self._mailbox.connect()
            raw_messages = await self._mailbox.list_unread()
        except MailboxException as e:
            self._breaker.record_failure()
            log.error("Mailbox unavailable", extra={"error": str(e)})
            summary.error = str(e)
            await self._mailbox.close()
            return

        self._breaker.record_success()
        summary.fetched = len(raw_messages)

        try:
            if not raw_messages:
                log.debug("No unread messages")
                return

            classifier = MessageClassifier(self._rules_provider.get_rules())
            for raw in raw_messages:
                outcome = await self._process(raw, classifier, summary.cycle_id)
                summary.outcomes.append(outcome)
                self._log_outcome(log, outcome)
        finally:
            await self._mailbox.close()

    async def _process(
        self,
        raw: RawMessage,
        classifier: MessageClassifier,
        cycle_id: str
    ) -> MessageOutcome:
        outcome = MessageOutcome(sequence_number=raw.sequence_number)

        message = None
        try:
            message = parse_message(raw)
        except ApplicationException as e:
            outcome.fail(Stage.PARSE, e)

        if message is not None:
            outcome.sender = message.sender
            try:
                disposition = classifier.classify(message.sender, message.subject, message.body)
            except Exception as e:
                outcome.fail(Stage.CLASSIFY, e)
            else:
                outcome.disposition = disposition.kind
                try:
                    await self._act(message, disposition, outcome, cycle_id)
                except ApplicationException as e:
                    outcome.fail(Stage.ACT, e)
                except Exception as e:
                    # Unexpected errors stay with this message
                    logger.exception(
                        "Unexpected error while handling message",
                        extra={"sequence_number": raw.sequence_number, "cycle_id": cycle_id}
                    )
                    outcome.fail(Stage.ACT, e)

        # Always acknowledged, whatever happened above
        await self._acknowledge(outcome)
        return outcome

    async def _act(
        self,
        message: InboundMessage,
        disposition: Disposition,
        outcome: MessageOutcome,
        cycle_id: str
    ) -> None:
        if disposition.kind == DispositionKind.IGNORE:
            outcome.status = OutcomeStatus.IGNORED
            outcome.reason = disposition.reason
            return

        now = datetime.now()

        if disposition.kind == DispositionKind.RESOLUTION_NOTICE:
            outcome.ticket_id = disposition.ticket_id
            payload = TicketUpdateDTO(
                status=TicketStatus.RESOLVED,
                resolution_time=now.time().replace(microsecond=0),
                date_closed=now.date(),
            )
            changed = await self._gateway.resolve_ticket(
                disposition.ticket_id, payload, correlation_id=cycle_id
            )
            outcome.status = OutcomeStatus.RESOLVED if changed else OutcomeStatus.NOT_FOUND
            return

        await self._open_ticket(message, outcome, now, cycle_id)

    async def _open_ticket(
        self,
        message: InboundMessage,
        outcome: MessageOutcome,
        now: datetime,
        cycle_id: str
    ) -> None:
        reporter = None
        roster: List[StaffAccount] = []
        try:
            roster = await self._directory.roster()
            reporter = await self._directory.find(message.sender)
        except ApplicationException as e:
            # Ticket is still opened, just without enrichment or an assignee
            logger.warning(
                "User roster unavailable",
                extra={"error": str(e), "cycle_id": cycle_id}
            )

        staff = self._assignment.choose(roster)

        payload = TicketCreateDTO(
            issue=message.subject or NO_SUBJECT,
            description=message.body,
            reported_by=message.sender,
            branch=reporter.branch if reporter else None,
            department=reporter.department if reporter else None,
            staff=staff,
            status=TicketStatus.OPEN,
            date_reported=now.date(),
            time_reported=now.time().replace(microsecond=0),
        )

        ticket_id = await self._gateway.create_ticket(payload, correlation_id=cycle_id)
        outcome.status = OutcomeStatus.CREATED
        outcome.ticket_id = ticket_id
        outcome.staff = staff

        if staff:
            snapshot = Ticket(
                id=ticket_id,
                issue=payload.issue,
                status=payload.status,
                date_reported=payload.date_reported,
                time_reported=payload.time_reported,
                description=payload.description,
                reported_by=payload.reported_by,
                branch=payload.branch,
                department=payload.department,
                staff=staff,
            )
            self._notifier.notify(NotificationKind.ASSIGNED, snapshot)
        else:
            logger.warning(
                "No admin available, ticket left unassigned",
                extra={"ticket_id": ticket_id, "cycle_id": cycle_id}
            )

    async def _acknowledge(self, outcome: MessageOutcome) -> None:
        try:
            await self._mailbox.mark_seen(outcome.sequence_number)
        except MailboxException as e:
            outcome.ack_error = str(e)
            return
        outcome.acknowledged = True

    @staticmethod
    def _log_outcome(log, outcome: MessageOutcome) -> None:
        extra = {
            "sequence_number": outcome.sequence_number,
            "status": outcome.status,
            "disposition": outcome.disposition,
            "sender": outcome.sender,
            "ticket_id": outcome.ticket_id,
            "acknowledged": outcome.acknowledged,
        }
        if outcome.status == OutcomeStatus.FAILED:
            log.error(
                "Message handling failed",
                extra={**extra, "stage": outcome.failed_stage, "error": outcome.error}
            )
        elif outcome.status == OutcomeStatus.NOT_FOUND:
            log.warning("Resolution notice for unknown ticket", extra=extra)
        else:
            log.info("Message handled", extra={**extra, "reason": outcome.reason, "staff": outcome.staff})

        if outcome.ack_error:
            log.error("Failed to mark message as seen", extra={**extra, "error": outcome.ack_error})
