"""Temporary client address blocklist.

Blocked addresses are stored as expiring store values, so blocks are shared
between workers when the Redis store is in use and lapse on their own.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from pathways_gate.adapters.store.base import AbstractStore
from pathways_gate.core.errors import StoreUnavailableError, ValidationAppError

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_SECONDS = 24 * 60 * 60


class Blocklist:
    """Block, unblock and look up client addresses."""

    def __init__(
        self,
        store: AbstractStore,
        *,
        key_prefix: str = "blocked",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._key_prefix = key_prefix
        self._clock = clock

    def _key(self, ip: str) -> str:
        return f"{self._key_prefix}:{ip}"

    async def block(self, ip: str, duration_seconds: int = DEFAULT_BLOCK_SECONDS) -> float:
        """Block ip for duration_seconds. Returns the UNIX time the block lapses."""
        if not ip:
            raise ValidationAppError(code="invalid_ip", message="ip must be a non-empty string")
        if duration_seconds < 1:
            raise ValidationAppError(code="invalid_duration", message="duration_seconds must be >= 1")

        until = self._clock() + duration_seconds
        await self._store.set(self._key(ip), {"until": until}, duration_seconds)
        logger.warning("blocklist.blocked", extra={"ip": ip, "duration_s": duration_seconds})
        return until

    async def unblock(self, ip: str) -> bool:
        removed = await self._store.delete(self._key(ip))
        logger.info("blocklist.unblocked", extra={"ip": ip, "removed": removed})
        return removed

    async def is_blocked(self, ip: str) -> bool:
        """Return True while a block for ip is active.

        A store outage reads as "not blocked".
        """
        try:
            return await self._store.get(self._key(ip)) is not None
        except StoreUnavailableError as exc:
            logger.error("blocklist.lookup_failed", extra={"error_code": exc.code})
            return False
