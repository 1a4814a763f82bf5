"""
Tickets Application Layer
=========================

Contains:
- Services: TicketService (store use cases), NotificationService
- DTOs: Data transfer objects for API serialization
- Interfaces: repositories, mail transport, notifier

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from helpdesk.tickets.application.dto import (
    TicketCreateDTO,
    TicketUpdateDTO,
    TicketQueryDTO,
    TicketResponse,
    CreatedResponse,
    ChangesResponse,
    UserCreateDTO,
    UserResponse,
)
from helpdesk.tickets.application.services import (
    TicketService,
    NotificationService,
    ITicketRepository,
    IUserRepository,
    IMailTransport,
    INotifier,
)

__all__ = [
    # DTOs
    "TicketCreateDTO",
    "TicketUpdateDTO",
    "TicketQueryDTO",
    "TicketResponse",
    "CreatedResponse",
    "ChangesResponse",
    "UserCreateDTO",
    "UserResponse",
    # Services
    "TicketService",
    "NotificationService",
    # Interfaces
    "ITicketRepository",
    "IUserRepository",
    "IMailTransport",
    "INotifier",
]
