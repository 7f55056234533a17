"""
Tests for the CLI API client against a mocked transport
"""
import json

import httpx
import pytest

from ticketops_cli.auth import CredentialStore, login
from ticketops_cli.client import TicketOpsClient, APIError, touched_resources


class FakeBackend:
    """Counts calls per path and answers from a small route table"""

    def __init__(self):
        self.calls = []
        self.routes = {
            ("POST", "/api/v1/auth/login"): (200, {
                "access_token": "tok-123",
                "token_type": "bearer",
                "user": {"id": "u1", "username": "ravi", "full_name": "Ravi Kumar", "role": "Dispatcher"},
            }),
            ("GET", "/api/v1/sites"): (200, {"items": [{"id": "s1"}], "total": 1}),
            ("GET", "/api/v1/tickets/t1"): (200, {"id": "t1", "status": "Open"}),
            ("GET", "/api/v1/stock/inventory"): (200, [{"asset_type": "Camera", "count": 2}]),
            ("GET", "/api/v1/assets"): (200, {"items": [], "total": 0}),
            ("POST", "/api/v1/stock/add"): (201, [{"id": "a1"}]),
            ("GET", "/api/v1/tickets/missing"): (404, {
                "detail": "Ticket not found",
                "error": {"code": "TICKET_NOT_FOUND", "message": "Ticket not found", "details": {}},
            }),
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append((request.method, request.url.path, dict(request.url.params), request.headers.get("authorization")))
        status, body = self.routes.get((request.method, request.url.path), (404, {"detail": "Not Found"}))
        return httpx.Response(status, json=body)

    def count(self, path: str) -> int:
        return sum(1 for _, p, _, _ in self.calls if p == f"/api/v1{path}")


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
async def client(backend):
    api = TicketOpsClient(base_url="http://testserver/api/v1", transport=httpx.MockTransport(backend))
    yield api
    await api.aclose()


@pytest.mark.asyncio
async def test_get_served_from_cache(client, backend):
    first = await client.get("/sites")
    second = await client.get("/sites")

    assert first == second
    assert backend.count("/sites") == 1


@pytest.mark.asyncio
async def test_params_are_part_of_the_key(client, backend):
    await client.get("/sites", params={"city": "Pune"})
    await client.get("/sites", params={"city": "Nashik"})
    await client.get("/sites", params={"city": "Pune", "zone": None})

    assert backend.count("/sites") == 2


@pytest.mark.asyncio
async def test_skip_cache_and_no_cache_urls(client, backend):
    await client.get("/sites")
    await client.get("/sites", skip_cache=True)
    await client.get("/tickets/t1")
    await client.get("/tickets/t1")

    assert backend.count("/sites") == 2
    assert backend.count("/tickets/t1") == 2


@pytest.mark.asyncio
async def test_mutation_invalidates_resource(client, backend):
    await client.get("/stock/inventory")
    await client.get("/assets")

    await client.post("/stock/add", json={"site_id": "s1", "asset_type": "Camera", "items": []})
    await client.get("/stock/inventory")
    await client.get("/assets")

    assert backend.count("/stock/inventory") == 2
    assert backend.count("/assets") == 2


@pytest.mark.asyncio
async def test_error_body_is_parsed(client):
    with pytest.raises(APIError) as exc_info:
        await client.get("/tickets/missing")

    assert exc_info.value.status_code == 404
    assert exc_info.value.code == "TICKET_NOT_FOUND"
    assert exc_info.value.detail == "Ticket not found"


@pytest.mark.asyncio
async def test_login_stores_token_and_logout_clears_cache(client, backend, tmp_path):
    store = CredentialStore(tmp_path / "credentials.json")

    user = await login(client, store, "ravi", "secret")
    await client.get("/sites")

    assert user["full_name"] == "Ravi Kumar"
    assert backend.calls[-1][3] == "Bearer tok-123"
    saved = json.loads((tmp_path / "credentials.json").read_text())
    assert saved["access_token"] == "tok-123"
    assert CredentialStore(tmp_path / "credentials.json").is_authenticated()

    client.logout()
    store.clear()

    assert len(client.cache) == 0
    assert client.token is None
    assert not (tmp_path / "credentials.json").exists()


def test_touched_resources():
    assert touched_resources("/stock/transfers/x/receive") == ["stock"]
    assert touched_resources("/rma/r1") == ["rma"]
    assert touched_resources("/asset-update-requests") == []
