"""
Response Cache - in-memory TTL cache for API GET responses

Entries are keyed by URL plus sorted query params and expire according to
the first matching URL rule. Mutations invalidate by resource name.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional


class TTL:
    """Freshness tiers, in seconds"""
    SHORT = 60
    MEDIUM = 5 * 60
    LONG = 30 * 60
    VERY_LONG = 60 * 60


MAX_ITEMS = 200
CLEANUP_INTERVAL = 5 * 60

# First matching pattern wins
CACHE_RULES = (
    ("/lookups", TTL.VERY_LONG),
    ("/sites", TTL.LONG),
    ("/users", TTL.MEDIUM),
    ("/assets", TTL.SHORT),
    ("/tickets/dashboard/stats", TTL.SHORT),
    ("/stock/inventory", TTL.SHORT),
    ("/settings", TTL.LONG),
    ("/user-rights", TTL.MEDIUM),
)

# Checked before CACHE_RULES
NO_CACHE_PATTERNS = (
    "/auth/",
    "/notifications/unread-count",
    "/tickets/",
    "/rma/",
)

RESOURCE_PATTERNS: Dict[str, List[str]] = {
    "tickets": ["/tickets"],
    "assets": ["/assets", "/stock"],
    "users": ["/users"],
    "sites": ["/sites"],
    "stock": ["/stock", "/assets"],
    "rma": ["/rma", "/tickets"],
    "lookups": ["/lookups"],
}


def cache_key(url: str, params: Optional[Dict[str, Any]] = None) -> str:
    """``cache:{url}?a=1&b="x"`` with params sorted by name"""
    params = params or {}
    query = "&".join(
        f"{key}={json.dumps(params[key], separators=(',', ':'))}" for key in sorted(params)
    )
    return f"cache:{url}?{query}" if query else f"cache:{url}"


def should_cache(url: str) -> bool:
    if any(pattern in url for pattern in NO_CACHE_PATTERNS):
        return False
    return any(pattern in url for pattern, _ in CACHE_RULES)


def ttl_for(url: str) -> int:
    for pattern, ttl in CACHE_RULES:
        if pattern in url:
            return ttl
    return TTL.SHORT


@dataclass
class CacheEntry:
    data: Any
    url: str
    created_at: float
    expires_at: float


class ResponseCache:
    """
    TTL cache for API responses.

    ``clock`` returns seconds; tests pass a fake one to move time forward.
    """

    def __init__(self, clock: Callable[[], float] = time.time, max_items: int = MAX_ITEMS):
        self.clock = clock
        self.max_items = max_items
        self._entries: Dict[str, CacheEntry] = {}
        self._last_cleanup = clock()

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.clock() > entry.expires_at:
            del self._entries[key]
            return None
        return entry.data

    def set(self, key: str, data: Any, url: str) -> None:
        now = self.clock()
        self._entries[key] = CacheEntry(data=data, url=url, created_at=now, expires_at=now + ttl_for(url))
        self.maybe_cleanup()

    def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    def invalidate(self, pattern: str) -> int:
        """Drop entries whose key or URL contains ``pattern``"""
        doomed = [k for k, e in self._entries.items() if pattern in k or pattern in e.url]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def invalidate_resource(self, resource: str) -> int:
        return sum(self.invalidate(p) for p in RESOURCE_PATTERNS.get(resource, [resource]))

    def clear(self) -> None:
        self._entries.clear()

    def maybe_cleanup(self, force: bool = False) -> None:
        """Drop expired entries and keep the newest ``max_items``, at most every 5 minutes"""
        now = self.clock()
        if not force and now - self._last_cleanup < CLEANUP_INTERVAL:
            return

        live = sorted(
            ((k, e) for k, e in self._entries.items() if now < e.expires_at),
            key=lambda item: item[1].created_at,
            reverse=True,
        )
        self._entries = dict(live[:self.max_items])
        self._last_cleanup = now

    def stats(self) -> Dict[str, int]:
        now = self.clock()
        expired = sum(1 for e in self._entries.values() if now > e.expires_at)
        return {
            "total_items": len(self._entries),
            "expired_items": expired,
            "active_items": len(self._entries) - expired,
        }

    def __len__(self) -> int:
        return len(self._entries)
