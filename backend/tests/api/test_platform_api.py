"""
Tests for the application shell: health, middleware, config parsing, task wiring
"""
import pytest
from httpx import AsyncClient, ASGITransport
from starlette.applications import Starlette
from starlette.responses import PlainTextResponse
from starlette.routing import Route

from ticketops.core.config import parse_cors_origins
from ticketops.core.middleware import RequestSizeLimitMiddleware, should_skip_logging


class TestAppShell:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client: AsyncClient):
        response = await client.get("/health", headers={"X-Request-ID": "abc12345"})
        assert response.headers["X-Request-ID"] == "abc12345"
        assert response.headers["X-Response-Time"].endswith("ms")

    @pytest.mark.asyncio
    async def test_request_id_generated_and_security_headers(self, client: AsyncClient):
        response = await client.get("/")
        assert len(response.headers["X-Request-ID"]) == 8
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    @pytest.mark.asyncio
    async def test_domain_error_shape(self, client: AsyncClient, admin_headers):
        response = await client.get(
            "/api/v1/tickets/00000000-0000-0000-0000-000000000000", headers=admin_headers
        )
        assert response.status_code == 404
        body = response.json()
        assert body["error"]["code"] == "TICKET_NOT_FOUND"
        assert body["detail"] == body["error"]["message"]

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/v1/tickets")
        assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_request_size_limit():
    async def echo(request):
        return PlainTextResponse((await request.body()).decode())

    app = Starlette(routes=[Route("/echo", echo, methods=["POST"])])
    app.add_middleware(RequestSizeLimitMiddleware, max_size=16)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        small = await ac.post("/echo", content=b"short")
        large = await ac.post("/echo", content=b"x" * 64)

    assert small.status_code == 200
    assert small.text == "short"
    assert large.status_code == 413


@pytest.mark.parametrize("path,skipped", [
    ("/health", True),
    ("/api/v1/notifications/unread-count", True),
    ("/api/v1/tickets", False),
])
def test_should_skip_logging(path, skipped):
    assert should_skip_logging(path) is skipped


@pytest.mark.parametrize("raw,expected", [
    ("http://a.in, http://b.in", ["http://a.in", "http://b.in"]),
    ('["http://a.in"]', ["http://a.in"]),
    ("", []),
])
def test_parse_cors_origins(raw, expected):
    assert parse_cors_origins(raw) == expected


def test_sla_jobs_are_scheduled():
    from ticketops.core.celery_app import celery_app
    from ticketops.tasks import sla_tasks

    scheduled = {entry["task"] for entry in celery_app.conf.beat_schedule.values()}

    assert sla_tasks.send_breach_warnings_task.name in scheduled
    assert sla_tasks.check_sla_breaches_task.name in scheduled
