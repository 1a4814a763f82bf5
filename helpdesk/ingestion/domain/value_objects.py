"""
Ingestion Value Objects
=======================

Ingestion rules and the message classifier.

The classifier is a pure function of the message and the rules; it never
touches the mailbox, the store or the network.
"""

import re
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from helpdesk.ingestion.domain.entities import Disposition, IgnoreReason
from helpdesk.tickets.domain import ReporterPolicy


class IngestionRules(BaseModel):
    """
    Rules the classifier evaluates, loaded from settings and the optional
    rules YAML file.

    This is a value object - immutable and defined by its attributes.
    """
    model_config = ConfigDict(frozen=True)

    allowed_domains: List[str] = Field(
        default_factory=list,
        description="Sender domains allowed to open tickets"
    )
    resolution_keywords: List[str] = Field(
        default_factory=list,
        description="Body keywords that mark a reply as a resolution"
    )
    excluded_senders: List[str] = Field(
        default_factory=list,
        description="Addresses that are always ignored"
    )
    assignment_subject_marker: str = Field(
        default="New Helpdesk Request Assigned",
        min_length=1,
        description="Phrase that identifies replies to assignment notifications"
    )

    @field_validator("allowed_domains")
    @classmethod
    def normalize_domains(cls, v: List[str]) -> List[str]:
        return list(ReporterPolicy.from_domains(v).allowed_domains)

    @field_validator("resolution_keywords", "excluded_senders")
    @classmethod
    def normalize_words(cls, v: List[str]) -> List[str]:
        cleaned = []
        for item in v:
            item = item.strip().lower()
            if item and item not in cleaned:
                cleaned.append(item)
        return cleaned

    def reporter_policy(self) -> ReporterPolicy:
        return ReporterPolicy(tuple(self.allowed_domains))


class MessageClassifier:
    """
    Decides what an inbound message means.

    Evaluation order:
    1. ignore: empty sender, excluded sender, or domain not allow-listed
    2. resolution notice: reply to an assignment mail whose body carries a
       resolution keyword
    3. new ticket: everything else
    """

    def __init__(self, rules: IngestionRules):
        self.rules = rules
        self._policy = rules.reporter_policy()
        self._reply_pattern = re.compile(
            r"Re:\s*" + re.escape(rules.assignment_subject_marker) + r"\s*\(ID:\s*(\d+)\):",
            re.IGNORECASE
        )

    def reply_ticket_id(self, subject: str) -> Optional[int]:
        """Ticket id referenced by a reply subject, or None."""
        match = self._reply_pattern.search(subject or "")
        return int(match.group(1)) if match else None

    def has_resolution_keyword(self, body: str) -> bool:
        lowered = (body or "").lower()
        return any(keyword in lowered for keyword in self.rules.resolution_keywords)

    def classify(self, sender: str, subject: str, body: str) -> Disposition:
        address = (sender or "").strip().lower()

        if not address:
            return Disposition.ignore(IgnoreReason.EMPTY_SENDER)
        if address in self.rules.excluded_senders:
            return Disposition.ignore(IgnoreReason.EXCLUDED_SENDER)
        if not self._policy.allows(address):
            return Disposition.ignore(IgnoreReason.DOMAIN_NOT_ALLOWED)

        ticket_id = self.reply_ticket_id(subject)
        if ticket_id is not None and self.has_resolution_keyword(body):
            return Disposition.resolution_notice(ticket_id)

        return Disposition.new_ticket()
