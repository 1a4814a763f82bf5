"""Integration tests for the HTTP ticket gateway using httpx.MockTransport."""

import json
from datetime import date, time

import httpx
import pytest

from helpdesk.core import TicketStoreException, ValidationException
from helpdesk.ingestion.infrastructure import TicketAPIClient, HTTPTicketGateway, HTTPUserSource
from helpdesk.tickets.application import TicketCreateDTO, TicketUpdateDTO


def api_client(handler) -> TicketAPIClient:
    return TicketAPIClient("http://tickets.test/api/", transport=httpx.MockTransport(handler))


async def test_create_posts_camel_case_and_forwards_correlation_id():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        seen["correlation_id"] = request.headers.get("X-Correlation-ID")
        return httpx.Response(201, json={"id": 77})

    client = api_client(handler)
    gateway = HTTPTicketGateway(client)
    payload = TicketCreateDTO(
        issue="Printer broken",
        reported_by="a@gmail.com",
        date_reported=date(2024, 5, 1),
        time_reported=time(9, 30),
    )

    ticket_id = await gateway.create_ticket(payload, correlation_id="cycle-1")
    await client.close()

    assert ticket_id == 77
    assert seen["url"] == "http://tickets.test/api/tickets"
    assert seen["body"]["reportedBy"] == "a@gmail.com"
    assert seen["body"]["dateReported"] == "2024-05-01"
    assert seen["body"]["timeReported"] == "09:30:00"
    assert "staff" not in seen["body"]
    assert seen["correlation_id"] == "cycle-1"


async def test_resolve_sends_only_set_fields_and_maps_404():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        if request.url.path.endswith("/42"):
            return httpx.Response(200, json={"changes": 1})
        return httpx.Response(404, json={"detail": "Ticket 9 not found"})

    gateway = HTTPTicketGateway(api_client(handler))
    payload = TicketUpdateDTO(status="resolved", date_closed=date(2024, 5, 2))

    assert await gateway.resolve_ticket(42, payload) is True
    assert await gateway.resolve_ticket(9, payload) is False
    assert bodies[0] == {"status": "resolved", "dateClosed": "2024-05-02"}


async def test_rejected_payload_raises_validation_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"detail": "Reporter 'x@example.org' is not from an allowed domain"})

    gateway = HTTPTicketGateway(api_client(handler))

    with pytest.raises(ValidationException) as exc_info:
        await gateway.create_ticket(TicketCreateDTO(issue="x", reported_by="x@example.org"))

    assert "allowed domain" in exc_info.value.message


def unavailable(request: httpx.Request) -> httpx.Response:
    return httpx.Response(503)


def refused(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("refused", request=request)


def too_slow(request: httpx.Request) -> httpx.Response:
    raise httpx.ReadTimeout("slow", request=request)


@pytest.mark.parametrize("failure", [unavailable, refused, too_slow])
async def test_store_failures_raise_ticket_store_exception(failure):
    gateway = HTTPTicketGateway(api_client(failure))

    with pytest.raises(TicketStoreException):
        await gateway.create_ticket(TicketCreateDTO(issue="x"))


async def test_malformed_create_response_raises():
    gateway = HTTPTicketGateway(api_client(lambda request: httpx.Response(201, json={"ok": True})))

    with pytest.raises(TicketStoreException):
        await gateway.create_ticket(TicketCreateDTO(issue="x"))


async def test_user_source_reads_roster():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/users"
        return httpx.Response(200, json=[
            {"id": 1, "email": "it.admin@may-baker.com", "role": "admin", "department": "IT", "branch": "HQ"},
            {"id": 2, "email": "a@gmail.com", "role": "user"},
        ])

    users = await HTTPUserSource(api_client(handler)).fetch_users()

    assert [u.email for u in users] == ["it.admin@may-baker.com", "a@gmail.com"]
    assert users[0].is_staff
    assert users[0].department == "IT"
