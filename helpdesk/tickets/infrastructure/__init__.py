"""
Tickets Infrastructure Layer
============================

Infrastructure implementations for the ticket store:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer
- External: SMTP mail transport
"""

from helpdesk.tickets.infrastructure.models import TicketModel, UserModel
from helpdesk.tickets.infrastructure.repositories import (
    SQLAlchemyTicketRepository,
    SQLAlchemyUserRepository,
)
from helpdesk.tickets.infrastructure.external import SMTPMailTransport

__all__ = [
    "TicketModel",
    "UserModel",
    "SQLAlchemyTicketRepository",
    "SQLAlchemyUserRepository",
    "SMTPMailTransport",
]
