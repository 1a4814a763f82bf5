"""
Tickets Domain Layer
====================

Contains:
- Entities: Ticket, StaffAccount
- Value Objects & Policies: ReporterPolicy, TicketLifecycle,
  AssignmentPolicy, NotificationTemplateBuilder

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from helpdesk.tickets.domain.entities import Ticket, StaffAccount
from helpdesk.tickets.domain.value_objects import (
    ReporterPolicy,
    TicketLifecycle,
    AssignmentPolicy,
    FirstAdminAssignmentPolicy,
    RenderedNotification,
    NotificationTemplateBuilder,
)

__all__ = [
    # Entities
    "Ticket",
    "StaffAccount",
    # Value Objects & Policies
    "ReporterPolicy",
    "TicketLifecycle",
    "AssignmentPolicy",
    "FirstAdminAssignmentPolicy",
    "RenderedNotification",
    "NotificationTemplateBuilder",
]
