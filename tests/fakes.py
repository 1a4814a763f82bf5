"""
In-memory fakes for the ingestion loop and the notifier.
"""

from email.message import EmailMessage
from typing import Dict, List, Optional

from helpdesk.ingestion.application import IMailboxSource, ITicketGateway, IUserSource
from helpdesk.ingestion.domain import RawMessage
from helpdesk.tickets.application import IMailTransport, TicketCreateDTO, TicketUpdateDTO
from helpdesk.tickets.domain import RenderedNotification, StaffAccount

MARKER = "New Helpdesk Request Assigned"


class RecordingTransport(IMailTransport):
    """Mail transport that records sends; addresses in `failing` raise."""

    def __init__(self, failing: Optional[set] = None):
        self.sent: List[tuple] = []
        self.failing = failing or set()

    async def send(self, recipient: str, notification: RenderedNotification) -> None:
        if recipient in self.failing:
            raise ConnectionError(f"refused {recipient}")
        self.sent.append((recipient, notification))

    @property
    def recipients(self) -> List[str]:
        return [recipient for recipient, _ in self.sent]


class FakeMailbox(IMailboxSource):
    """Mailbox holding raw messages in memory."""

    def __init__(self, messages: Optional[List[RawMessage]] = None):
        self.messages = list(messages or [])
        self.seen: List[str] = []
        self.connect_error: Optional[Exception] = None
        self.mark_seen_errors: Dict[str, Exception] = {}
        self.connect_calls = 0
        self.closed = 0

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error

    async def list_unread(self) -> List[RawMessage]:
        return [m for m in self.messages if m.sequence_number not in self.seen]

    async def mark_seen(self, sequence_number: str) -> None:
        if sequence_number in self.mark_seen_errors:
            raise self.mark_seen_errors[sequence_number]
        self.seen.append(sequence_number)

    async def close(self) -> None:
        self.closed += 1


class FakeTicketGateway(ITicketGateway):
    """Ticket gateway backed by a dict."""

    def __init__(self, existing: Optional[Dict[int, dict]] = None, next_id: int = 1):
        self.tickets: Dict[int, dict] = dict(existing or {})
        self.next_id = next_id
        self.create_error: Optional[Exception] = None
        self.correlation_ids: List[Optional[str]] = []

    async def create_ticket(self, payload: TicketCreateDTO, correlation_id=None) -> int:
        self.correlation_ids.append(correlation_id)
        if self.create_error is not None:
            raise self.create_error
        ticket_id = self.next_id
        self.next_id += 1
        self.tickets[ticket_id] = payload.model_dump()
        return ticket_id

    async def resolve_ticket(self, ticket_id: int, payload: TicketUpdateDTO, correlation_id=None) -> bool:
        self.correlation_ids.append(correlation_id)
        if ticket_id not in self.tickets:
            return False
        self.tickets[ticket_id].update(payload.changes())
        return True


class FakeUserSource(IUserSource):
    def __init__(self, users: Optional[List[StaffAccount]] = None):
        self.users = list(users or [])
        self.calls = 0
        self.error: Optional[Exception] = None

    async def fetch_users(self) -> List[StaffAccount]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.users)


def build_raw_message(
    sequence_number: str,
    sender: str,
    subject: str,
    body: str,
    html: Optional[str] = None
) -> RawMessage:
    message = EmailMessage()
    message["From"] = sender
    message["To"] = "helpdesk@may-baker.com"
    message["Subject"] = subject
    message["Message-ID"] = f"<{sequence_number}@test>"
    message.set_content(body)
    if html is not None:
        message.add_alternative(html, subtype="html")
    return RawMessage(sequence_number=sequence_number, content=message.as_bytes())

