"""
Ticket Domain Entities
======================

Pure Python domain entities for the helpdesk ticket store.

These entities contain business logic and are free of infrastructure
concerns.
"""

from dataclasses import dataclass
from datetime import date, time
from typing import List, Optional

from helpdesk.config import NotificationKind, STAFF_ROLES


@dataclass
class Ticket:
    """
    Ticket entity representing a helpdesk request.

    `id` is assigned by the store and never changes afterwards.
    """

    id: int
    issue: str
    status: str
    date_reported: date
    time_reported: time

    description: Optional[str] = None
    reported_by: Optional[str] = None
    branch: Optional[str] = None
    department: Optional[str] = None
    staff: Optional[str] = None

    # Resolution
    resolution: Optional[str] = None
    resolution_time: Optional[time] = None
    date_closed: Optional[date] = None

    def notification_recipients(self, kind: str) -> List[str]:
        """
        Addresses that receive a notification of the given kind.

        Assignment goes to the assignee only; resolution goes to the
        assignee and the original reporter. Unset addresses are skipped.
        """
        if kind == NotificationKind.ASSIGNED:
            candidates = [self.staff]
        elif kind == NotificationKind.RESOLVED:
            candidates = [self.staff, self.reported_by]
        else:
            raise ValueError(f"Unknown notification kind: {kind}")

        recipients: List[str] = []
        for address in candidates:
            if address and address not in recipients:
                recipients.append(address)
        return recipients


@dataclass
class StaffAccount:
    """An entry of the user roster."""

    email: str
    role: str
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    department: Optional[str] = None
    branch: Optional[str] = None
    id: Optional[int] = None

    @property
    def is_staff(self) -> bool:
        """Admins and superadmins can own tickets."""
        return (self.role or "").strip().lower() in STAFF_ROLES

    def matches(self, address: str) -> bool:
        return self.email.strip().lower() == address.strip().lower()
