"""
Helpdesk Service - Main Application
===================================

Email-driven helpdesk ticketing.

Modules:
- Tickets: ticket store, user roster, notifications
- Ingestion: mailbox polling, classification, ticket creation/resolution

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, value objects and policies
- Infrastructure: Database, IMAP, SMTP, ticket API client
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

# Configuration
from helpdesk.config import settings, Settings
from helpdesk.core import ApplicationException

# Infrastructure
from helpdesk.infrastructure.database import (
    init_database,
    close_database,
    create_tables,
    get_engine,
)
from helpdesk.shared.infrastructure.circuit_breaker import CircuitBreaker

# Tickets module
from helpdesk.tickets.application import NotificationService
from helpdesk.tickets.domain import NotificationTemplateBuilder, FirstAdminAssignmentPolicy
from helpdesk.tickets.infrastructure import SMTPMailTransport
from helpdesk.tickets.interfaces import tickets_router, users_router

# Ingestion module
from helpdesk.ingestion.application import IngestionService, CachedUserDirectory
from helpdesk.ingestion.infrastructure import (
    IMAPMailboxSource,
    TicketAPIClient,
    HTTPTicketGateway,
    HTTPUserSource,
    LocalTicketGateway,
    RepositoryUserSource,
    IngestionRulesManager,
    IngestionScheduler,
)
from helpdesk.ingestion.interfaces import router as ingestion_router

# Logging
from helpdesk.shared.infrastructure.logging import setup_logging, get_logger

logger = get_logger(__name__)


def build_notifier(config: Settings, rules_manager: IngestionRulesManager) -> NotificationService:
    transport = SMTPMailTransport(
        host=config.smtp_host,
        port=config.smtp_port,
        secure=config.smtp_secure,
        username=config.smtp_user,
        password=config.smtp_password,
        sender=config.sender_address,
        timeout_seconds=config.smtp_timeout_seconds,
    )
    templates = NotificationTemplateBuilder(rules_manager.rules.assignment_subject_marker)
    return NotificationService(transport, templates, timeout_seconds=config.smtp_timeout_seconds)


def build_ingestion_service(
    config: Settings,
    rules_manager: IngestionRulesManager,
    notifier: NotificationService
) -> Tuple[Optional[IngestionService], Optional[TicketAPIClient]]:
    """
    Wire the ingestion loop.

    Returns (None, None) when the mailbox is not configured. The API client
    is returned so the caller can close it.
    """
    if not config.mailbox_configured:
        return None, None

    mailbox = IMAPMailboxSource(
        host=config.imap_host,
        username=config.imap_user,
        password=config.imap_password,
        port=config.imap_port,
        use_tls=config.imap_tls,
        mailbox=config.imap_mailbox,
        timeout_seconds=config.mailbox_timeout_seconds,
    )

    api_client = None
    if config.ticket_api_base_url:
        api_client = TicketAPIClient(config.ticket_api_base_url, config.ticket_api_timeout_seconds)
        gateway = HTTPTicketGateway(api_client)
        user_source = HTTPUserSource(api_client)
    else:
        gateway = LocalTicketGateway(rules_manager, notifier)
        user_source = RepositoryUserSource()

    service = IngestionService(
        mailbox=mailbox,
        gateway=gateway,
        directory=CachedUserDirectory(user_source, config.user_cache_ttl_seconds),
        rules_provider=rules_manager,
        notifier=notifier,
        assignment_policy=FirstAdminAssignmentPolicy(),
        circuit_breaker=CircuitBreaker(
            "mailbox",
            failure_threshold=config.mailbox_failure_threshold,
            recovery_timeout=config.mailbox_recovery_seconds,
        ),
    )
    return service, api_client


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Load ingestion rules and start watching the rules file
    4. Build the notifier
    5. Build the ingestion service and start its scheduler

    SHUTDOWN (reverse order):
    1. Stop the scheduler
    2. Drain pending notifications
    3. Stop the rules watcher
    4. Close the ticket API client and the database
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Helpdesk Service", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()
    try:
        await create_tables()
    except Exception as e:
        # Endpoints that need the database fail until it is reachable
        logger.warning("Database not available - running in degraded mode", extra={"error": str(e)})

    logger.info("Loading ingestion rules")
    rules_manager = IngestionRulesManager.from_settings(settings)
    rules_manager.load(settings.ingestion_rules_path)
    rules_manager.start_watching()

    notifier = build_notifier(settings, rules_manager)
    if not settings.smtp_host:
        logger.warning("SMTP not configured - notifications will be skipped")

    ingestion_service, api_client = build_ingestion_service(settings, rules_manager, notifier)
    scheduler = None
    if ingestion_service is None:
        logger.warning("Mailbox not configured - ingestion disabled")
    elif settings.ingestion_enabled:
        scheduler = IngestionScheduler(interval_seconds=settings.poll_interval_seconds)
        await scheduler.start(ingestion_service.run_cycle)
    else:
        logger.info("Ingestion scheduler disabled by configuration")

    # Store services in app state for dependency injection
    app.state.settings = settings
    app.state.rules_manager = rules_manager
    app.state.notifier = notifier
    app.state.ingestion_service = ingestion_service
    app.state.ingestion_scheduler = scheduler
    app.state.user_directory = ingestion_service.user_directory if ingestion_service else None

    logger.info("Helpdesk Service started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Helpdesk Service")

    if scheduler:
        await scheduler.stop()

    await notifier.drain()
    rules_manager.stop_watching()

    if api_client:
        await api_client.close()

    await close_database()

    logger.info("Helpdesk Service shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Helpdesk API",
    description="""
    ## Email-driven Helpdesk

    Unread mail in the helpdesk mailbox becomes tickets. Replies to
    assignment notifications that say the work is done resolve them.

    ---

    ### Tickets

    - `POST /api/tickets` - Create a ticket
    - `GET /api/tickets` - List tickets (filter by department, status, staff)
    - `GET /api/tickets/{id}` - Get a ticket
    - `PUT /api/tickets/{id}` - Partially update a ticket
    - `DELETE /api/tickets/{id}` / `DELETE /api/tickets` - Delete

    ### Users

    - `GET /api/users` - User roster
    - `POST /api/users` - Add a roster entry

    ### Ingestion

    - `POST /api/ingestion/run` - Run one mailbox cycle now
    - `GET /api/ingestion/status` - Scheduler and mailbox state

    ---

    ### Lifecycle

    `open` -> `resolved`. Resolving fills `resolutionTime`/`dateClosed` and
    notifies the assignee and the reporter; a resolved ticket cannot be
    reopened.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
from helpdesk.shared.api.middleware import (  # noqa: E402
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)

# Added last runs first: the correlation id is set before requests are logged
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(tickets_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(ingestion_router, prefix="/api")


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service health",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "database": "connected",
                        "ingestion_rules": "loaded",
                        "ingestion_scheduler": "running",
                        "mailbox_circuit": "closed",
                        "smtp": "configured"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports database connectivity, rules, scheduler, mailbox circuit and
    SMTP configuration.
    """
    state = request.app.state
    ingestion_service = getattr(state, "ingestion_service", None)
    scheduler = getattr(state, "ingestion_scheduler", None)

    checks = {
        "database": "connected",
        "ingestion_rules": "loaded" if getattr(state, "rules_manager", None) else "not_loaded",
        "ingestion_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
        "mailbox_circuit": ingestion_service.circuit_breaker.state if ingestion_service else "not_configured",
        "smtp": "configured" if settings.smtp_host else "not_configured",
    }

    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (RuntimeError, SQLAlchemyError, OSError) as e:
        checks["database"] = f"error: {type(e).__name__}"

    healthy = checks["database"] == "connected"
    return {
        "status": "healthy" if healthy else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Helpdesk Service",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "tickets": {
                "prefix": "/api/tickets",
                "endpoints": [
                    "POST /api/tickets - Create ticket",
                    "GET /api/tickets - List tickets",
                    "GET /api/tickets/{id} - Get ticket",
                    "PUT /api/tickets/{id} - Update ticket",
                    "DELETE /api/tickets/{id} - Delete ticket",
                    "DELETE /api/tickets - Delete all tickets"
                ]
            },
            "users": {
                "prefix": "/api/users",
                "endpoints": [
                    "GET /api/users - List users",
                    "POST /api/users - Add user"
                ]
            },
            "ingestion": {
                "prefix": "/api/ingestion",
                "endpoints": [
                    "POST /api/ingestion/run - Run one ingestion cycle",
                    "GET /api/ingestion/status - Ingestion status"
                ]
            }
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "helpdesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower()
    )
