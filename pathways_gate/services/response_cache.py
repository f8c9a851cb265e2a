"""Short-TTL memoizer for JSON GET responses.

Entries live in the injected store under ``cache:<resource>:<path>?<query>:<who>``
where ``<who>`` is ``anon`` or ``user:<id>``, so callers never see each
other's personalised reads. Route handlers call ``invalidate`` after any
mutation that could change previously cached reads.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping
from urllib.parse import urlencode

from pathways_gate.adapters.store.base import AbstractStore, normalize_pattern
from pathways_gate.core.auth import Identity
from pathways_gate.core.config import CacheRule
from pathways_gate.core.errors import StoreUnavailableError
from pathways_gate.core.policies import strip_api_prefix

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "cache"


def build_cache_key(
    resource: str,
    path: str,
    query_items: list[tuple[str, str]] | None,
    identity: Identity | None,
) -> str:
    """Build the cache key for a read.

    Query parameters are sorted so ``?a=1&b=2`` and ``?b=2&a=1`` share an entry.

    Args:
        resource: Resource class (first path segment under the API prefix).
        path: Request path.
        query_items: Query parameters as (name, value) pairs.
        identity: Authenticated caller, or None.

    Returns:
        Namespaced cache key.
    """

    query = urlencode(sorted(query_items or []))
    who = f"user:{identity.user_id}" if identity is not None else "anon"
    return f"{CACHE_NAMESPACE}:{resource}:{path}?{query}:{who}"


class ResponseCache:
    """Read-through cache for successful JSON GET responses.

    Attributes:
        rules: Cacheable resource classes and their TTL/visibility rules.
    """

    def __init__(
        self,
        store: AbstractStore,
        rules: Mapping[str, CacheRule],
        *,
        api_prefix: str = "/api",
        enabled: bool = True,
    ) -> None:
        self._store = store
        self.rules = dict(rules)
        self._api_prefix = api_prefix
        self.enabled = enabled
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._errors = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"ResponseCache(resources={sorted(self.rules)}, hits={self._hits}, misses={self._misses})"

    def rule_for(self, path: str) -> tuple[str, CacheRule] | None:
        """Return (resource, rule) when path belongs to a cacheable resource class."""

        route = strip_api_prefix(path, self._api_prefix)
        resource = route.strip("/").split("/", 1)[0]
        rule = self.rules.get(resource)
        if rule is None:
            return None
        return resource, rule

    def _count(self, attr: str) -> None:
        with self._lock:
            setattr(self, attr, getattr(self, attr) + 1)

    async def lookup(self, key: str) -> dict[str, Any] | None:
        """Return the stored ``{"status", "body"}`` entry, or None on a miss.

        A store failure counts as a miss.
        """
        try:
            entry = await self._store.get(key)
        except StoreUnavailableError as exc:
            self._count("_errors")
            logger.warning("cache.read_failed", extra={"error_code": exc.code})
            return None

        if entry is None:
            self._count("_misses")
            logger.debug("cache.miss", extra={"cache_key": key})
            return None

        self._count("_hits")
        logger.debug("cache.hit", extra={"cache_key": key})
        return entry

    async def save(self, key: str, *, status_code: int, body: Any, ttl_seconds: int) -> None:
        """Store a successful response body for ttl_seconds."""
        try:
            await self._store.set(key, {"status": status_code, "body": body}, ttl_seconds)
        except StoreUnavailableError as exc:
            self._count("_errors")
            logger.warning("cache.write_failed", extra={"error_code": exc.code})
            return
        logger.debug("cache.set", extra={"cache_key": key, "ttl_s": ttl_seconds})

    async def invalidate(self, pattern: str) -> int:
        """Remove every cached entry whose key matches pattern.

        Args:
            pattern: Glob over the key after the ``cache:`` namespace; a bare
                word matches as a substring (``"jobs"`` -> ``cache:*jobs*``).

        Returns:
            Number of entries removed.
        """
        glob = f"{CACHE_NAMESPACE}:{normalize_pattern(pattern)}"
        try:
            removed = await self._store.delete_matching(glob)
        except StoreUnavailableError as exc:
            self._count("_errors")
            logger.error("cache.invalidate_failed", extra={"pattern": pattern, "error_code": exc.code})
            return 0
        logger.info("cache.invalidated", extra={"pattern": pattern, "removed": removed})
        return removed

    def stats(self) -> dict[str, Any]:
        """Return lightweight cache metrics without exposing values.

        ``store`` carries the backend's own counters (entries, evictions)
        where it keeps them.
        """

        with self._lock:
            counters = {
                "enabled": self.enabled,
                "resources": sorted(self.rules),
                "hits": self._hits,
                "misses": self._misses,
                "errors": self._errors,
            }
        counters["store"] = self._store.stats()
        return counters
