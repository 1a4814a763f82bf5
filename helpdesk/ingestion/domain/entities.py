"""
Ingestion Domain Entities
=========================

Messages as they move through an ingestion cycle, and the classifier's
verdict on them.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RawMessage:
    """An unread message as listed by the mailbox: sequence number + RFC 822 bytes."""
    sequence_number: str
    content: bytes


@dataclass(frozen=True)
class InboundMessage:
    """
    A parsed inbound email.

    Never persisted; `sequence_number` is only used to acknowledge the
    message once it has been handled.
    """
    sequence_number: str
    sender: str
    subject: str
    body: str


class DispositionKind(str):
    """What the ingestion loop does with a message."""
    IGNORE = "ignore"
    RESOLUTION_NOTICE = "resolution_notice"
    NEW_TICKET = "new_ticket"


class IgnoreReason(str):
    EMPTY_SENDER = "empty_sender"
    EXCLUDED_SENDER = "excluded_sender"
    DOMAIN_NOT_ALLOWED = "domain_not_allowed"


@dataclass(frozen=True)
class Disposition:
    """Classifier output."""
    kind: str
    ticket_id: Optional[int] = None
    reason: Optional[str] = None

    @classmethod
    def ignore(cls, reason: str) -> "Disposition":
        return cls(kind=DispositionKind.IGNORE, reason=reason)

    @classmethod
    def resolution_notice(cls, ticket_id: int) -> "Disposition":
        return cls(kind=DispositionKind.RESOLUTION_NOTICE, ticket_id=ticket_id)

    @classmethod
    def new_ticket(cls) -> "Disposition":
        return cls(kind=DispositionKind.NEW_TICKET)

    @property
    def is_ignore(self) -> bool:
        return self.kind == DispositionKind.IGNORE
