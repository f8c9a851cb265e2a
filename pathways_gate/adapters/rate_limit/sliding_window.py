"""Sliding-window rate limiter.

Each key keeps the timestamps of its admitted requests. A request is admitted
when fewer than ``limit`` timestamps are newer than ``now - window_seconds``,
so no interval of ``window_seconds`` ever holds more than ``limit`` admissions.
Rejected requests are not recorded.

Store failures fail open: the request is allowed and the error is logged.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from typing import Callable

from pathways_gate.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from pathways_gate.adapters.store.base import AbstractStore, WindowState
from pathways_gate.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


def hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing identities."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


class SlidingWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a sliding log of request timestamps per key."""

    def __init__(
        self,
        store: AbstractStore,
        *,
        clock: Callable[[], float] = time.time,
        key_prefix: str = "rl",
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Backend holding the window logs.
            clock: Time source function returning UNIX time in seconds.
            key_prefix: Namespace for window keys inside the store.
        """
        self._store = store
        self._clock = clock
        self._key_prefix = key_prefix

    @staticmethod
    def _validate(key: str, limit: int, window_seconds: float) -> None:
        if not key:
            raise ValueError("key must be a non-empty string")
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

    def _store_key(self, key: str) -> str:
        return f"{self._key_prefix}:{key}"

    def _build_result(
        self,
        state: WindowState,
        *,
        allowed: bool,
        now: float,
        limit: int,
        window_seconds: float,
    ) -> RateLimitResult:
        oldest = state.oldest if state.oldest is not None else now
        reset_at = oldest + window_seconds
        retry_after = None
        if not allowed:
            retry_after = max(1, int(math.ceil(reset_at - now)))
        return RateLimitResult(
            allowed=allowed,
            limit=limit,
            remaining=max(0, limit - state.count),
            reset_at=int(math.ceil(reset_at)),
            retry_after_seconds=retry_after,
        )

    def _open_result(self, *, now: float, limit: int, window_seconds: float) -> RateLimitResult:
        return RateLimitResult(
            allowed=True,
            limit=limit,
            remaining=limit,
            reset_at=int(math.ceil(now + window_seconds)),
            retry_after_seconds=None,
        )

    async def check(self, key: str, *, limit: int, window_seconds: float) -> RateLimitResult:
        """Consume rate limit budget for the provided key.

        Raises:
            ValueError: If key is empty or limit/window are invalid.
        """
        self._validate(key, limit, window_seconds)
        now = self._clock()

        try:
            state = await self._store.hit(
                self._store_key(key),
                now=now,
                limit=limit,
                window_seconds=window_seconds,
            )
        except StoreUnavailableError as exc:
            logger.error(
                "rate_limit.fail_open",
                extra={
                    "key_hash": hash_limiter_key(key),
                    "error_code": exc.code,
                    "error_message": exc.message,
                },
            )
            return self._open_result(now=now, limit=limit, window_seconds=window_seconds)

        return self._build_result(
            state,
            allowed=state.allowed,
            now=now,
            limit=limit,
            window_seconds=window_seconds,
        )

    async def usage(self, key: str, *, limit: int, window_seconds: float) -> RateLimitResult:
        self._validate(key, limit, window_seconds)
        now = self._clock()
        state = await self._store.peek(self._store_key(key), now=now, window_seconds=window_seconds)
        return self._build_result(
            state,
            allowed=state.count < limit,
            now=now,
            limit=limit,
            window_seconds=window_seconds,
        )

    async def reset(self, key: str) -> bool:
        removed = await self._store.delete(self._store_key(key))
        logger.info("rate_limit.reset", extra={"key_hash": hash_limiter_key(key), "removed": removed})
        return removed
