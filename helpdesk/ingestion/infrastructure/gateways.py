"""
Ticket Store Gateways
=====================

How the ingestion loop reaches the ticket store and the user roster:
- HTTP: through the ticket API with httpx (separate deployment)
- Local: in-process through TicketService and the repositories
"""

from typing import Any, Callable, List, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError

from helpdesk.core import ValidationException, TicketStoreException
from helpdesk.infrastructure.database import get_session_context
from helpdesk.ingestion.application import ITicketGateway, IUserSource, IRulesProvider
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.tickets.application import (
    INotifier,
    TicketService,
    TicketCreateDTO,
    TicketUpdateDTO,
    UserResponse,
)
from helpdesk.tickets.domain import StaffAccount
from helpdesk.tickets.infrastructure import SQLAlchemyTicketRepository, SQLAlchemyUserRepository

logger = get_logger(__name__)


# ========== HTTP ==========

class TicketAPIClient:
    """
    Shared httpx client for the ticket API.

    Transport errors, timeouts and 5xx responses become TicketStoreException;
    400/422 become ValidationException.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_seconds,
                transport=self._transport
            )
        return self._http_client

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        correlation_id: Optional[str] = None
    ) -> httpx.Response:
        headers = {"X-Correlation-ID": correlation_id} if correlation_id else None
        client = await self._get_client()
        try:
            response = await client.request(method, path, json=json, headers=headers)
        except httpx.TimeoutException as e:
            raise TicketStoreException(
                f"{method} {path} timed out after {self.timeout_seconds}s",
                {"path": path}
            ) from e
        except httpx.HTTPError as e:
            raise TicketStoreException(f"{method} {path} failed: {e}", {"path": path}) from e

        if response.status_code in (400, 422):
            raise ValidationException(
                f"Ticket API rejected {method} {path}: {self._detail(response)}",
                {"path": path, "status_code": response.status_code}
            )
        if response.status_code >= 500:
            raise TicketStoreException(
                f"{method} {path} returned {response.status_code}",
                {"path": path, "status_code": response.status_code}
            )
        return response

    @staticmethod
    def _detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict) and "detail" in body:
            return str(body["detail"])
        return str(body)

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


class HTTPTicketGateway(ITicketGateway):
    """Ticket gateway over the REST API."""

    def __init__(self, client: TicketAPIClient):
        self._client = client

    async def create_ticket(
        self,
        payload: TicketCreateDTO,
        correlation_id: Optional[str] = None
    ) -> int:
        response = await self._client.request(
            "POST",
            "/tickets",
            json=payload.model_dump(mode="json", by_alias=True, exclude_none=True),
            correlation_id=correlation_id
        )
        if response.status_code not in (200, 201):
            raise TicketStoreException(
                f"Unexpected status {response.status_code} creating ticket",
                {"status_code": response.status_code}
            )
        try:
            return int(response.json()["id"])
        except (ValueError, KeyError, TypeError) as e:
            raise TicketStoreException(f"Malformed create response: {response.text}") from e

    async def resolve_ticket(
        self,
        ticket_id: int,
        payload: TicketUpdateDTO,
        correlation_id: Optional[str] = None
    ) -> bool:
        response = await self._client.request(
            "PUT",
            f"/tickets/{ticket_id}",
            json=payload.model_dump(mode="json", by_alias=True, exclude_unset=True),
            correlation_id=correlation_id
        )
        if response.status_code == 404:
            return False
        if response.status_code != 200:
            raise TicketStoreException(
                f"Unexpected status {response.status_code} resolving ticket {ticket_id}",
                {"ticket_id": ticket_id, "status_code": response.status_code}
            )
        return True


class HTTPUserSource(IUserSource):
    """User roster over the REST API."""

    def __init__(self, client: TicketAPIClient):
        self._client = client

    async def fetch_users(self) -> List[StaffAccount]:
        response = await self._client.request("GET", "/users")
        if response.status_code != 200:
            raise TicketStoreException(
                f"Unexpected status {response.status_code} listing users",
                {"status_code": response.status_code}
            )
        return [UserResponse.model_validate(item).to_domain() for item in response.json()]


# ========== In-process ==========

class LocalTicketGateway(ITicketGateway):
    """
    Ticket gateway calling TicketService directly, one session per call.

    Used when no ticket API URL is configured and the loop runs inside the
    API process.
    """

    def __init__(
        self,
        rules_provider: IRulesProvider,
        notifier: Optional[INotifier] = None,
        session_context: Callable = get_session_context
    ):
        self._rules_provider = rules_provider
        self._notifier = notifier
        self._session_context = session_context

    def _service(self, session) -> TicketService:
        return TicketService(
            SQLAlchemyTicketRepository(session),
            self._rules_provider.get_rules().reporter_policy(),
            self._notifier
        )

    async def create_ticket(
        self,
        payload: TicketCreateDTO,
        correlation_id: Optional[str] = None
    ) -> int:
        try:
            async with self._session_context() as session:
                ticket = await self._service(session).create(payload)
        except SQLAlchemyError as e:
            raise TicketStoreException(f"Failed to create ticket: {e}") from e
        return ticket.id

    async def resolve_ticket(
        self,
        ticket_id: int,
        payload: TicketUpdateDTO,
        correlation_id: Optional[str] = None
    ) -> bool:
        try:
            async with self._session_context() as session:
                return await self._service(session).update(ticket_id, payload)
        except SQLAlchemyError as e:
            raise TicketStoreException(f"Failed to resolve ticket {ticket_id}: {e}") from e


class RepositoryUserSource(IUserSource):
    """User roster read straight from the database."""

    def __init__(self, session_context: Callable = get_session_context):
        self._session_context = session_context

    async def fetch_users(self) -> List[StaffAccount]:
        try:
            async with self._session_context() as session:
                return await SQLAlchemyUserRepository(session).list()
        except SQLAlchemyError as e:
            raise TicketStoreException(f"Failed to load user roster: {e}") from e
