"""
TicketOps API Client

Async httpx client for the TicketOps backend. GET responses are served
from the TTL cache where the URL allows it; a successful mutation drops
cached data for the resource it touched.
"""

from typing import Any, Dict, Optional

import httpx

from ticketops_cli.cache import ResponseCache, RESOURCE_PATTERNS, cache_key, should_cache


class APIError(Exception):
    """Non-2xx response from the API"""

    def __init__(self, status_code: int, detail: str, code: Optional[str] = None):
        self.status_code = status_code
        self.detail = detail
        self.code = code
        super().__init__(f"{status_code}: {detail}")

    @classmethod
    def from_response(cls, response: httpx.Response) -> "APIError":
        try:
            body = response.json()
        except ValueError:
            return cls(response.status_code, response.text or response.reason_phrase)
        if not isinstance(body, dict):
            return cls(response.status_code, str(body))
        error = body.get("error") or {}
        detail = body.get("detail") or error.get("message") or response.reason_phrase
        return cls(response.status_code, str(detail), error.get("code"))


def touched_resources(url: str) -> list:
    return [name for name in RESOURCE_PATTERNS if f"/{name}" in url]


class TicketOpsClient:
    """API client for the TicketOps backend"""

    def __init__(
        self,
        base_url: str = "http://localhost:8000/api/v1",
        token: Optional[str] = None,
        cache: Optional[ResponseCache] = None,
        use_cache: bool = True,
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.cache = cache or ResponseCache()
        self.use_cache = use_cache
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    async def request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        skip_cache: bool = False,
    ) -> Any:
        method = method.upper()
        params = {k: v for k, v in (params or {}).items() if v is not None}
        cacheable = method == "GET" and self.use_cache and not skip_cache and should_cache(url)

        key = cache_key(url, params)
        if cacheable:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        response = await self._client.request(method, url, params=params or None, json=json, headers=self._headers())
        if response.is_error:
            raise APIError.from_response(response)

        data = response.json() if response.content else None
        if cacheable and data is not None:
            self.cache.set(key, data, url)
        elif method != "GET":
            for resource in touched_resources(url):
                self.cache.invalidate_resource(resource)
        return data

    async def get(self, url: str, params: Optional[Dict[str, Any]] = None, skip_cache: bool = False) -> Any:
        return await self.request("GET", url, params=params, skip_cache=skip_cache)

    async def post(self, url: str, json: Any = None) -> Any:
        return await self.request("POST", url, json=json)

    async def put(self, url: str, json: Any = None) -> Any:
        return await self.request("PUT", url, json=json)

    async def patch(self, url: str, json: Any = None) -> Any:
        return await self.request("PATCH", url, json=json)

    async def delete(self, url: str) -> Any:
        return await self.request("DELETE", url)

    # ==================== Authentication ====================

    async def login(self, username: str, password: str) -> Dict[str, Any]:
        """Username or e-mail; keeps the token for later calls"""
        data = await self.post("/auth/login", json={"username": username, "password": password})
        self.token = data["access_token"]
        return data

    def logout(self) -> None:
        self.token = None
        self.cache.clear()

    # ==================== Resources ====================

    async def list_tickets(self, **filters) -> Dict[str, Any]:
        return await self.get("/tickets", params=filters)

    async def get_ticket(self, ticket_id: str) -> Dict[str, Any]:
        return await self.get(f"/tickets/{ticket_id}")

    async def ticket_activities(self, ticket_id: str) -> list:
        return await self.get(f"/tickets/{ticket_id}/activities")

    async def dashboard_stats(self) -> Dict[str, Any]:
        return await self.get("/tickets/dashboard/stats")

    async def inventory(self, site_id: Optional[str] = None) -> list:
        return await self.get("/stock/inventory", params={"site_id": site_id})

    async def notifications(self, unread_only: bool = False) -> Dict[str, Any]:
        return await self.get("/notifications", params={"unread_only": unread_only})
