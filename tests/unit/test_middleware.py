"""Unit tests for the shared API middleware and exception handlers."""

import pytest
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport

from helpdesk.core import (
    ApplicationException,
    RepositoryException,
    ResourceNotFoundException,
    TicketLifecycleException,
    TicketStoreException,
    ValidationException,
)
from helpdesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)


def build_app(error: Exception) -> FastAPI:
    app = FastAPI()
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIDMiddleware)
    app.add_exception_handler(ApplicationException, application_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    @app.get("/boom")
    async def boom():
        raise error

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


async def call(app: FastAPI, path: str = "/boom", **kwargs):
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.get(path, **kwargs)


@pytest.mark.parametrize("error, expected", [
    (ValidationException("bad reporter"), 400),
    (ResourceNotFoundException("Ticket", "9"), 404),
    (TicketLifecycleException(1, "resolved", "open"), 409),
    (TicketStoreException("store down"), 503),
    (RepositoryException("constraint"), 500),
])
async def test_application_exceptions_map_to_status_codes(error, expected):
    response = await call(build_app(error))

    assert response.status_code == expected
    assert response.json()["correlation_id"] == response.headers["X-Correlation-ID"]


async def test_client_errors_carry_the_message():
    response = await call(build_app(ValidationException("Reporter not allowed")))

    assert response.json()["detail"] == "Reporter not allowed"


async def test_server_errors_hide_the_message():
    response = await call(build_app(TicketStoreException("password=hunter2 rejected")))

    body = response.json()
    assert body["detail"] == "Service temporarily unavailable"
    assert body["debug_info"] is None


async def test_unexpected_exception_is_500():
    response = await call(build_app(RuntimeError("boom")))

    assert response.status_code == 500
    assert response.json()["detail"] == "Internal server error"


async def test_valid_correlation_id_is_kept():
    response = await call(build_app(RuntimeError()), "/health", headers={"X-Correlation-ID": "cycle-42"})

    assert response.headers["X-Correlation-ID"] == "cycle-42"


async def test_malformed_correlation_id_is_replaced():
    response = await call(build_app(RuntimeError()), "/health", headers={"X-Correlation-ID": "bad id with spaces " * 10})

    assert response.headers["X-Correlation-ID"] != "bad id with spaces " * 10
    assert len(response.headers["X-Correlation-ID"]) == 36
