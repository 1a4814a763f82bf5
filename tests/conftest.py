"""
Test configuration and fixtures.

Provides:
- SQLite database per test (aiosqlite, file under tmp_path)
- Notifier wired to a recording transport (fakes live in tests/fakes.py)
- HTTPX AsyncClient over the FastAPI app (lifespan not run)
"""

import os
from typing import List

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("INGESTION_ENABLED", "false")

from helpdesk.core import MailboxException
from helpdesk.infrastructure.database import init_database, close_database, create_tables
from helpdesk.ingestion.domain import IngestionRules
from helpdesk.ingestion.infrastructure import IngestionRulesManager
from helpdesk.tickets.application import NotificationService
from helpdesk.tickets.domain import NotificationTemplateBuilder, StaffAccount
from tests.fakes import MARKER, RecordingTransport, build_raw_message


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def rules() -> IngestionRules:
    return IngestionRules(
        allowed_domains=["gmail.com", "may-baker.com"],
        resolution_keywords=["resolved", "completed", "fixed", "done"],
        excluded_senders=["hello@notify.railway.app"],
        assignment_subject_marker=MARKER,
    )


@pytest.fixture
def rules_manager(rules) -> IngestionRulesManager:
    return IngestionRulesManager(rules)


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def notifier(transport) -> NotificationService:
    return NotificationService(transport, NotificationTemplateBuilder(MARKER), timeout_seconds=1.0)


@pytest.fixture
def roster() -> List[StaffAccount]:
    return [
        StaffAccount(email="a@gmail.com", role="user", department="Finance", branch="Lagos"),
        StaffAccount(email="it.admin@may-baker.com", role="Admin", department="IT", branch="HQ"),
        StaffAccount(email="boss@may-baker.com", role="superadmin", department="IT", branch="HQ"),
    ]


@pytest.fixture
def raw_message():
    return build_raw_message


@pytest.fixture
def mailbox_error():
    return MailboxException("connection refused", {"host": "imap.test"})


@pytest_asyncio.fixture
async def database(tmp_path):
    """Fresh SQLite database with all tables."""
    init_database(f"sqlite+aiosqlite:///{tmp_path / 'helpdesk.db'}")
    await create_tables()
    yield
    await close_database()


@pytest_asyncio.fixture
async def client(database, rules_manager, notifier):
    """HTTP client against the app with test services on app.state."""
    from helpdesk.main import app

    app.state.rules_manager = rules_manager
    app.state.notifier = notifier
    app.state.ingestion_service = None
    app.state.ingestion_scheduler = None
    app.state.user_directory = None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client

    await notifier.drain()
