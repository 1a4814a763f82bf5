"""
Shared API Middleware
=====================

Correlation ids, request logging and the last-resort exception handlers for
the helpdesk API.
"""

import re
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from helpdesk.core import (
    ApplicationException,
    ValidationException,
    ResourceNotFoundException,
    DuplicateResourceException,
    DomainException,
    ExternalServiceException,
)
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
_CORRELATION_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

# Probes hit these every few seconds
QUIET_PATHS = ("/health",)


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Adds correlation ID to requests for tracing.

    The ingestion loop forwards its cycle id in X-Correlation-ID when it
    calls the ticket API, so both sides of a cycle share one id in the logs.
    Malformed inbound ids are replaced with a fresh one.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        incoming = request.headers.get(CORRELATION_HEADER, "")
        if _CORRELATION_PATTERN.match(incoming):
            correlation_id = incoming
        else:
            correlation_id = str(uuid.uuid4())

        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every request once on the way in and once on the way out.

    Health probes are only logged when they fail.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = getattr(request.state, "correlation_id", "unknown")
        quiet = request.url.path in QUIET_PATHS
        start_time = time.perf_counter()
        context = {
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
        }

        if not quiet:
            logger.info(
                "Request started",
                extra={**context, "client": request.client.host if request.client else None}
            )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={
                    **context,
                    "error": str(e),
                    "response_time_ms": int((time.perf_counter() - start_time) * 1000)
                }
            )
            raise

        elapsed_ms = int((time.perf_counter() - start_time) * 1000)
        if response.status_code >= 500:
            logger.warning(
                "Request completed with server error",
                extra={**context, "status_code": response.status_code, "response_time_ms": elapsed_ms}
            )
        elif not quiet:
            logger.info(
                "Request completed",
                extra={**context, "status_code": response.status_code, "response_time_ms": elapsed_ms}
            )
        return response


def _status_for(exc: ApplicationException) -> int:
    if isinstance(exc, ValidationException):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, ResourceNotFoundException):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, (DomainException, DuplicateResourceException)):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, ExternalServiceException):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _error_body(request: Request, detail: str, debug_info: Optional[str] = None) -> dict:
    return {
        "detail": detail,
        "correlation_id": getattr(request.state, "correlation_id", "unknown"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "debug_info": debug_info,
    }


def _is_development(request: Request) -> bool:
    app_settings = getattr(request.app.state, "settings", None)
    return getattr(app_settings, "environment", None) == "development"


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    """
    Handler for application exceptions a controller did not translate.

    Client errors carry the exception message; server-side failures only
    expose it in development.
    """
    status_code = _status_for(exc)
    logger.error(
        "Unhandled application exception",
        extra={
            "correlation_id": getattr(request.state, "correlation_id", "unknown"),
            "path": request.url.path,
            "error_type": type(exc).__name__,
            "error_message": exc.message,
            "status_code": status_code,
        }
    )

    if status_code < 500:
        return JSONResponse(status_code=status_code, content=_error_body(request, exc.message))

    if status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
        detail = "Service temporarily unavailable"
    else:
        detail = "Internal server error"
    debug_info = exc.message if _is_development(request) else None
    return JSONResponse(status_code=status_code, content=_error_body(request, detail, debug_info))


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.

    Maps anything else to a 500 response with the correlation id.
    """
    logger.error(
        "Unhandled exception",
        extra={
            "correlation_id": getattr(request.state, "correlation_id", "unknown"),
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc)
        }
    )

    # Don't expose internal details in production
    debug_info = str(exc) if _is_development(request) else None
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, "Internal server error", debug_info)
    )
