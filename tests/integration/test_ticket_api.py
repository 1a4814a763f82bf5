"""Integration tests for the ticket, user and ingestion HTTP API."""

import pytest

from helpdesk.ingestion.application import CachedUserDirectory, IngestionService
from helpdesk.main import app
from tests.fakes import MARKER, FakeMailbox, FakeTicketGateway, FakeUserSource


async def create(client, **body) -> int:
    payload = {"issue": "Printer broken", "reportedBy": "a@gmail.com"}
    payload.update(body)
    response = await client.post("/api/tickets", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["id"]


class TestTicketEndpoints:
    async def test_create_and_fetch_uses_camel_case(self, client):
        ticket_id = await create(client, department="Finance", staff="it.admin@may-baker.com")

        response = await client.get(f"/api/tickets/{ticket_id}")

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == ticket_id
        assert body["reportedBy"] == "a@gmail.com"
        assert body["status"] == "open"
        assert body["dateReported"]
        assert body["timeReported"]
        assert body["dateClosed"] is None

    async def test_create_rejects_reporter_from_other_domain(self, client):
        response = await client.post(
            "/api/tickets", json={"issue": "Printer broken", "reportedBy": "x@example.org"}
        )

        assert response.status_code == 400

    async def test_create_requires_issue(self, client):
        response = await client.post("/api/tickets", json={"reportedBy": "a@gmail.com"})

        assert response.status_code == 422

    async def test_missing_ticket_is_404(self, client):
        assert (await client.get("/api/tickets/9999")).status_code == 404
        assert (await client.put("/api/tickets/9999", json={"status": "resolved"})).status_code == 404
        assert (await client.delete("/api/tickets/9999")).status_code == 404

    async def test_list_filters(self, client):
        await create(client, department="IT")
        finance_id = await create(client, department="Finance")

        response = await client.get("/api/tickets", params={"department": "Finance", "status": "open"})

        assert response.status_code == 200
        assert [t["id"] for t in response.json()] == [finance_id]

    async def test_resolve_fills_closure_fields(self, client):
        ticket_id = await create(client, staff="it.admin@may-baker.com")

        response = await client.put(
            f"/api/tickets/{ticket_id}", json={"status": "resolved", "resolution": "Replaced toner"}
        )
        ticket = (await client.get(f"/api/tickets/{ticket_id}")).json()

        assert response.status_code == 200
        assert response.json() == {"changes": 1}
        assert ticket["status"] == "resolved"
        assert ticket["resolution"] == "Replaced toner"
        assert ticket["resolutionTime"] is not None
        assert ticket["dateClosed"] is not None

    async def test_reopening_resolved_ticket_is_409(self, client):
        ticket_id = await create(client, status="resolved")

        response = await client.put(f"/api/tickets/{ticket_id}", json={"status": "open"})

        assert response.status_code == 409
        ticket = (await client.get(f"/api/tickets/{ticket_id}")).json()
        assert ticket["status"] == "resolved"

    @pytest.mark.parametrize("field", ["status", "issue"])
    async def test_null_required_field_is_400(self, client, field):
        ticket_id = await create(client)

        response = await client.put(f"/api/tickets/{ticket_id}", json={field: None})

        assert response.status_code == 400
        ticket = (await client.get(f"/api/tickets/{ticket_id}")).json()
        assert ticket["status"] == "open"
        assert ticket["issue"] == "Printer broken"

    async def test_partial_update_keeps_other_fields(self, client):
        ticket_id = await create(client, department="Finance", description="paper jam")

        await client.put(f"/api/tickets/{ticket_id}", json={"department": "IT"})
        ticket = (await client.get(f"/api/tickets/{ticket_id}")).json()

        assert ticket["department"] == "IT"
        assert ticket["description"] == "paper jam"

    async def test_delete_one_and_all(self, client):
        first = await create(client)
        await create(client)
        await create(client)

        assert (await client.delete(f"/api/tickets/{first}")).json() == {"changes": 1}
        assert (await client.delete("/api/tickets")).json() == {"changes": 2}
        assert (await client.get("/api/tickets")).json() == []


class TestUserEndpoints:
    async def test_add_and_list_users(self, client):
        response = await client.post(
            "/api/users",
            json={"email": "it.admin@may-baker.com", "role": "admin", "department": "IT"},
        )

        assert response.status_code == 201
        users = (await client.get("/api/users")).json()
        assert users[0]["email"] == "it.admin@may-baker.com"
        assert users[0]["role"] == "admin"

    async def test_duplicate_email_is_409(self, client):
        await client.post("/api/users", json={"email": "a@gmail.com"})

        response = await client.post("/api/users", json={"email": "A@gmail.com"})

        assert response.status_code == 409

    async def test_unknown_role_is_422(self, client):
        response = await client.post("/api/users", json={"email": "a@gmail.com", "role": "owner"})

        assert response.status_code == 422


class TestServiceEndpoints:
    async def test_health_reports_components(self, client):
        response = await client.get("/health")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "healthy"
        assert body["checks"]["database"] == "connected"
        assert body["checks"]["ingestion_rules"] == "loaded"
        assert body["checks"]["mailbox_circuit"] == "not_configured"

    async def test_root_lists_modules(self, client):
        body = (await client.get("/")).json()

        assert set(body["modules"]) == {"tickets", "users", "ingestion"}

    async def test_correlation_id_is_echoed(self, client):
        response = await client.get("/health", headers={"X-Correlation-ID": "cycle-123"})

        assert response.headers["X-Correlation-ID"] == "cycle-123"

    async def test_ingestion_endpoints_without_mailbox_are_503(self, client):
        assert (await client.post("/api/ingestion/run")).status_code == 503
        assert (await client.get("/api/ingestion/status")).status_code == 503


async def test_resolution_mail_reaches_assignee_and_reporter(client, notifier, transport):
    ticket_id = await create(client, staff="it.admin@may-baker.com")

    await client.put(f"/api/tickets/{ticket_id}", json={"status": "resolved"})
    await notifier.drain()

    assert sorted(transport.recipients) == ["a@gmail.com", "it.admin@may-baker.com"]
    assert transport.sent[0][1].subject.startswith("Helpdesk Request Resolved (ID: ")
    assert MARKER not in transport.sent[0][1].subject


async def test_resolving_twice_sends_resolution_mail_twice(client, notifier, transport):
    ticket_id = await create(client, staff="it.admin@may-baker.com")

    await client.put(f"/api/tickets/{ticket_id}", json={"status": "resolved"})
    response = await client.put(f"/api/tickets/{ticket_id}", json={"status": "resolved", "resolution": "Done"})
    await notifier.drain()

    assert response.status_code == 200
    assert sorted(transport.recipients) == [
        "a@gmail.com", "a@gmail.com", "it.admin@may-baker.com", "it.admin@may-baker.com"
    ]


async def test_manual_ingestion_run_returns_cycle_summary(client, rules_manager, notifier, roster, raw_message):
    mailbox = FakeMailbox([raw_message("1", "a@gmail.com", "Printer broken", "please help")])
    app.state.ingestion_service = IngestionService(
        mailbox=mailbox,
        gateway=FakeTicketGateway(next_id=5),
        directory=CachedUserDirectory(FakeUserSource(roster)),
        rules_provider=rules_manager,
        notifier=notifier,
    )

    response = await client.post("/api/ingestion/run")
    status = (await client.get("/api/ingestion/status")).json()

    body = response.json()
    assert response.status_code == 200
    assert body["counts"]["created"] == 1
    assert body["outcomes"][0]["ticket_id"] == 5
    assert body["outcomes"][0]["acknowledged"] is True
    assert status["running"] is False
    assert status["last_cycle"]["cycle_id"] == body["cycle_id"]
    assert status["rules"]["allowed_domains"] == ["gmail.com", "may-baker.com"]
