"""Store that prefers a shared backend and degrades to a local one.

When the primary raises ``StoreUnavailableError`` the operation is replayed on
the fallback and a warning is logged; the caller never sees the failure.
Counters kept locally during an outage are per-process and are not merged
back once the primary recovers.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, TypeVar

from pathways_gate.adapters.store.base import AbstractStore, WindowState
from pathways_gate.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FallbackStore(AbstractStore):
    """Route to ``primary``; on outage, serve from ``fallback``."""

    def __init__(self, primary: AbstractStore, fallback: AbstractStore) -> None:
        self._primary = primary
        self._fallback = fallback
        self.backend = f"{primary.backend}+{fallback.backend}"

    @property
    def primary(self) -> AbstractStore:
        return self._primary

    @property
    def fallback(self) -> AbstractStore:
        return self._fallback

    async def _call(
        self,
        operation: str,
        primary_call: Callable[[], Awaitable[T]],
        fallback_call: Callable[[], Awaitable[T]],
    ) -> T:
        try:
            return await primary_call()
        except StoreUnavailableError as exc:
            logger.warning(
                "store.fallback",
                extra={
                    "operation": operation,
                    "primary": self._primary.backend,
                    "fallback": self._fallback.backend,
                    "error_code": exc.code,
                },
            )
            return await fallback_call()

    async def hit(self, key: str, *, now: float, limit: int, window_seconds: float) -> WindowState:
        return await self._call(
            "hit",
            lambda: self._primary.hit(key, now=now, limit=limit, window_seconds=window_seconds),
            lambda: self._fallback.hit(key, now=now, limit=limit, window_seconds=window_seconds),
        )

    async def peek(self, key: str, *, now: float, window_seconds: float) -> WindowState:
        return await self._call(
            "peek",
            lambda: self._primary.peek(key, now=now, window_seconds=window_seconds),
            lambda: self._fallback.peek(key, now=now, window_seconds=window_seconds),
        )

    async def get(self, key: str) -> Any | None:
        return await self._call("get", lambda: self._primary.get(key), lambda: self._fallback.get(key))

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        await self._call(
            "set",
            lambda: self._primary.set(key, value, ttl_seconds),
            lambda: self._fallback.set(key, value, ttl_seconds),
        )

    async def delete(self, key: str) -> bool:
        # Clear both sides so a stale local copy cannot outlive the shared one.
        local = await self._fallback.delete(key)
        shared = await self._call("delete", lambda: self._primary.delete(key), _false)
        return shared or local

    async def delete_matching(self, pattern: str) -> int:
        local = await self._fallback.delete_matching(pattern)
        shared = await self._call(
            "delete_matching",
            lambda: self._primary.delete_matching(pattern),
            _zero,
        )
        return shared + local

    async def ping(self) -> bool:
        return await self._primary.ping()

    async def close(self) -> None:
        await self._primary.close()
        await self._fallback.close()

    def stats(self) -> dict[str, Any]:
        return {"backend": self.backend, "fallback": self._fallback.stats()}


async def _false() -> bool:
    return False


async def _zero() -> int:
    return 0
