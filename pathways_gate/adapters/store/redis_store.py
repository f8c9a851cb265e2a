"""Shared store backed by Redis.

Window logs are sorted sets scored by event timestamp. The prune, count and
conditional append of a sliding-window hit run as one Lua script, so
concurrent workers incrementing the same key cannot race between the read
and the write.

Every Redis failure is raised as ``StoreUnavailableError``; callers decide
whether to fall back or fail open.
"""

from __future__ import annotations

import json
import logging
import math
import uuid
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from pathways_gate.adapters.store.base import AbstractStore, WindowState, normalize_pattern
from pathways_gate.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


# KEYS[1] window key
# ARGV: now, window_seconds, limit, member
# Returns {allowed, count, oldest}; floats travel as strings because Lua
# numbers are truncated to integers in replies.
SLIDING_WINDOW_HIT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)
local count = redis.call('ZCARD', key)
local allowed = 0
if count < limit then
    redis.call('ZADD', key, now, ARGV[4])
    count = count + 1
    allowed = 1
end
redis.call('PEXPIRE', key, math.ceil(window * 1000))
local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
local oldest_score = ''
if oldest[2] then
    oldest_score = oldest[2]
end
return {allowed, count, oldest_score}
"""


class RedisStore(AbstractStore):
    """Store shared by every worker through one Redis instance."""

    backend = "redis"

    def __init__(self, redis: Redis, *, namespace: str = "pathways") -> None:
        self._redis = redis
        self._namespace = namespace
        self._hit_script = redis.register_script(SLIDING_WINDOW_HIT)

    @classmethod
    def from_url(cls, url: str, *, connect_timeout_ms: int = 500, namespace: str = "pathways") -> "RedisStore":
        """Build a store with its own connection pool.

        Args:
            url: Redis connection URL.
            connect_timeout_ms: Socket connect/read timeout in milliseconds.
            namespace: Prefix applied to every key.
        """
        timeout = connect_timeout_ms / 1000
        client = Redis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=timeout,
            socket_timeout=timeout,
        )
        return cls(client, namespace=namespace)

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def _unavailable(self, operation: str, exc: Exception) -> StoreUnavailableError:
        return StoreUnavailableError(
            code="store_unavailable",
            message=f"Redis {operation} failed: {type(exc).__name__}",
            details={"backend": self.backend, "operation": operation},
        )

    async def hit(
        self,
        key: str,
        *,
        now: float,
        limit: int,
        window_seconds: float,
    ) -> WindowState:
        member = f"{now}:{uuid.uuid4().hex}"
        try:
            allowed, count, oldest = await self._hit_script(
                keys=[self._key(key)],
                args=[repr(now), repr(float(window_seconds)), limit, member],
            )
        except RedisError as exc:
            raise self._unavailable("hit", exc) from exc

        return WindowState(
            allowed=bool(int(allowed)),
            count=int(count),
            oldest=float(oldest) if oldest not in (None, "", b"") else None,
        )

    async def peek(self, key: str, *, now: float, window_seconds: float) -> WindowState:
        redis_key = self._key(key)
        lower = f"({now - window_seconds!r}"
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.zcount(redis_key, lower, "+inf")
                pipe.zrangebyscore(redis_key, lower, "+inf", start=0, num=1, withscores=True)
                count, first = await pipe.execute()
        except RedisError as exc:
            raise self._unavailable("peek", exc) from exc

        oldest = float(first[0][1]) if first else None
        return WindowState(allowed=False, count=int(count), oldest=oldest)

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._redis.get(self._key(key))
        except RedisError as exc:
            raise self._unavailable("get", exc) from exc
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        payload = json.dumps(value, default=str)
        try:
            await self._redis.set(self._key(key), payload, px=max(1, math.ceil(ttl_seconds * 1000)))
        except RedisError as exc:
            raise self._unavailable("set", exc) from exc

    async def delete(self, key: str) -> bool:
        try:
            removed = await self._redis.delete(self._key(key))
        except RedisError as exc:
            raise self._unavailable("delete", exc) from exc
        return bool(removed)

    async def delete_matching(self, pattern: str) -> int:
        match = self._key(normalize_pattern(pattern))
        removed = 0
        try:
            batch: list[str] = []
            async for redis_key in self._redis.scan_iter(match=match, count=500):
                batch.append(redis_key)
                if len(batch) >= 500:
                    removed += await self._redis.delete(*batch)
                    batch = []
            if batch:
                removed += await self._redis.delete(*batch)
        except RedisError as exc:
            raise self._unavailable("delete_matching", exc) from exc
        return int(removed)

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as exc:
            logger.warning("store.ping_failed", extra={"backend": self.backend, "error_type": type(exc).__name__})
            return False

    async def close(self) -> None:
        await self._redis.aclose()
