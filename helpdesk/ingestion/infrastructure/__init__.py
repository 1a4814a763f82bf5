"""
Ingestion Infrastructure Layer
==============================

- Mailbox: IMAP source
- Gateways: ticket store and user roster, over HTTP or in-process
- External: rules file watcher, APScheduler job
"""

from helpdesk.ingestion.infrastructure.mailbox import IMAPMailboxSource
from helpdesk.ingestion.infrastructure.gateways import (
    TicketAPIClient,
    HTTPTicketGateway,
    HTTPUserSource,
    LocalTicketGateway,
    RepositoryUserSource,
)
from helpdesk.ingestion.infrastructure.external import (
    IngestionRulesManager,
    IngestionScheduler,
)

__all__ = [
    "IMAPMailboxSource",
    "TicketAPIClient",
    "HTTPTicketGateway",
    "HTTPUserSource",
    "LocalTicketGateway",
    "RepositoryUserSource",
    "IngestionRulesManager",
    "IngestionScheduler",
]
