"""
Ingestion Application Layer
===========================

Contains:
- Services: IngestionService (the cycle), CachedUserDirectory
- Outcomes: MessageOutcome, CycleSummary
- Interfaces: mailbox, ticket gateway, user source, rules provider
"""

from helpdesk.ingestion.application.services import (
    IngestionService,
    CachedUserDirectory,
    MessageOutcome,
    CycleSummary,
    OutcomeStatus,
    Stage,
    IMailboxSource,
    ITicketGateway,
    IUserSource,
    IRulesProvider,
)
from helpdesk.ingestion.application.dto import CycleSummaryResponse, MessageOutcomeResponse

__all__ = [
    # Services
    "IngestionService",
    "CachedUserDirectory",
    # Outcomes
    "MessageOutcome",
    "CycleSummary",
    "OutcomeStatus",
    "Stage",
    # DTOs
    "CycleSummaryResponse",
    "MessageOutcomeResponse",
    # Interfaces
    "IMailboxSource",
    "ITicketGateway",
    "IUserSource",
    "IRulesProvider",
]
