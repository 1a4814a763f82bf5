"""
Ticket Value Objects
====================

Immutable value objects and stateless policies for the ticket domain:
- ReporterPolicy: which sender domains may open tickets
- TicketLifecycle: which status transitions are allowed
- AssignmentPolicy: who owns a new ticket
- NotificationTemplateBuilder: subject and body of outbound notifications
"""

import html
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from helpdesk.config import TicketStatus, NotificationKind
from helpdesk.tickets.domain.entities import Ticket, StaffAccount

# Leftovers of a display name or an unterminated angle bracket
_MALFORMED_ADDRESS = re.compile(r"[\s<>\"]")


@dataclass(frozen=True)
class ReporterPolicy:
    """
    Allow-list of reporter email domains.

    Matching is on the full domain after the '@' (case-insensitive), so
    "gmail.com" allows "a@gmail.com" but not "a@mail.gmail.com".
    """
    allowed_domains: Tuple[str, ...]

    @classmethod
    def from_domains(cls, domains: Iterable[str]) -> "ReporterPolicy":
        normalized = []
        for domain in domains:
            cleaned = domain.strip().lower().lstrip("@")
            if cleaned and cleaned not in normalized:
                normalized.append(cleaned)
        return cls(tuple(normalized))

    def allows(self, address: Optional[str]) -> bool:
        if not address:
            return False
        address = address.strip().lower()
        if "@" not in address or _MALFORMED_ADDRESS.search(address):
            return False
        return any(address.endswith("@" + domain) for domain in self.allowed_domains)


class TicketLifecycle:
    """
    Status transition rules.

    A ticket only ever moves forward from open to resolved; other status
    strings are stored as given while the ticket is not resolved.
    """

    @staticmethod
    def allows(current: str, requested: str) -> bool:
        if current == TicketStatus.RESOLVED:
            return requested == TicketStatus.RESOLVED
        return True

    @staticmethod
    def is_resolution(requested: Optional[str]) -> bool:
        return requested == TicketStatus.RESOLVED


# ========== Assignment ==========

class AssignmentPolicy(ABC):
    """Strategy choosing the owner of a newly created ticket."""

    @abstractmethod
    def choose(self, roster: Sequence[StaffAccount]) -> Optional[str]:
        """Return the assignee email, or None when nobody qualifies."""


class FirstAdminAssignmentPolicy(AssignmentPolicy):
    """
    Picks the first admin or superadmin in roster order.

    No load balancing: the same person receives every ticket until the
    roster changes.
    """

    def choose(self, roster: Sequence[StaffAccount]) -> Optional[str]:
        for account in roster:
            if account.is_staff:
                return account.email
        return None


# ========== Notifications ==========

@dataclass(frozen=True)
class RenderedNotification:
    """A notification ready to be handed to a mail transport."""
    subject: str
    html: str
    text: str


class NotificationTemplateBuilder:
    """
    Builds notification mails from a ticket snapshot.

    The assignment subject embeds the ticket id in the form the ingestion
    classifier recognises in replies: "<marker> (ID: <id>): <issue>".
    """

    RESOLVED_SUBJECT = "Helpdesk Request Resolved"

    def __init__(self, subject_marker: str):
        self.subject_marker = subject_marker

    def assignment_subject(self, ticket: Ticket) -> str:
        return f"{self.subject_marker} (ID: {ticket.id}): {ticket.issue}"

    def resolution_subject(self, ticket: Ticket) -> str:
        return f"{self.RESOLVED_SUBJECT} (ID: {ticket.id}): {ticket.issue}"

    def render(self, kind: str, ticket: Ticket) -> RenderedNotification:
        """Render the template for the given notification kind."""
        rows = [
            ("Issue", ticket.issue),
            ("Description", ticket.description or "N/A"),
            ("Reported By", ticket.reported_by or "Unknown"),
            ("Department", ticket.department or "N/A"),
            ("Status", ticket.status),
        ]

        if kind == NotificationKind.ASSIGNED:
            heading = self.subject_marker
            intro = "You have been assigned a new helpdesk request with the following details:"
            outro = "Please attend to this request as soon as possible."
            subject = self.assignment_subject(ticket)
        elif kind == NotificationKind.RESOLVED:
            heading = self.RESOLVED_SUBJECT
            intro = "The following helpdesk request has been marked as resolved:"
            outro = "If the issue persists, please open a new request."
            subject = self.resolution_subject(ticket)
            rows.extend([
                ("Assigned To", ticket.staff or "Unassigned"),
                ("Resolution", ticket.resolution or "N/A"),
                ("Date Closed", ticket.date_closed.isoformat() if ticket.date_closed else "N/A"),
            ])
        else:
            raise ValueError(f"Unknown notification kind: {kind}")

        return RenderedNotification(
            subject=subject,
            html=self._render_html(heading, intro, outro, rows),
            text=self._render_text(intro, outro, rows),
        )

    @staticmethod
    def _render_html(heading: str, intro: str, outro: str, rows: List[Tuple[str, str]]) -> str:
        cell = "padding: 8px; border: 1px solid #ddd;"
        label_cell = cell + " background-color: #f2f2f2; font-weight: bold;"
        table_rows = "".join(
            f'<tr><td style="{label_cell}">{html.escape(label)}:</td>'
            f'<td style="{cell}">{html.escape(str(value))}</td></tr>'
            for label, value in rows
        )
        return (
            '<div style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">'
            f'<h2 style="color: #22a7f0;">{html.escape(heading)}</h2>'
            f"<p>{html.escape(intro)}</p>"
            f'<table style="width: 100%; border-collapse: collapse; margin-bottom: 20px;">{table_rows}</table>'
            f"<p>{html.escape(outro)}</p>"
            "<p>Thank you.</p>"
            "</div>"
        )

    @staticmethod
    def _render_text(intro: str, outro: str, rows: List[Tuple[str, str]]) -> str:
        lines = [intro, ""]
        lines.extend(f"{label}: {value}" for label, value in rows)
        lines.extend(["", outro, "", "Thank you."])
        return "\n".join(lines)
