"""In-process store for window logs and expiring values.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Cache trimming removes the oldest-created entries first (not LRU), and only
  touches keys under the evictable prefix. Other values (blocks) live until
  their TTL.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Any, Callable

from pathways_gate.adapters.store.base import AbstractStore, WindowState, normalize_pattern

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    window_seconds: float
    events: deque[float] = field(default_factory=deque)


@dataclass
class CacheItem:
    """Container for cached values with expiration metadata."""

    value: Any
    created_at: float
    expires_at: float


class InMemoryStore(AbstractStore):
    """Store backed by process-local dictionaries.

    Window logs are pruned lazily on every ``hit``/``peek``; logs whose events
    have all expired are garbage-collected by a sweep that runs at most once
    per ``sweep_interval_seconds``.
    """

    backend = "memory"

    def __init__(
        self,
        *,
        max_entries: int | None = 1000,
        evict_fraction: float = 0.2,
        evictable_prefix: str = "cache:",
        sweep_interval_seconds: float = 300,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory store.

        Args:
            max_entries: Value ceiling before trimming (None for unlimited).
            evict_fraction: Share of values removed, oldest created first, when trimming.
            evictable_prefix: Key prefix of values that count toward max_entries and
                may be trimmed.
            sweep_interval_seconds: Minimum seconds between idle-window sweeps.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If the limits are invalid.
        """
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        if not 0 < evict_fraction <= 1:
            raise ValueError("evict_fraction must be in (0, 1]")

        self._max_entries = max_entries
        self._evict_fraction = evict_fraction
        self._evictable_prefix = evictable_prefix
        self._sweep_interval = sweep_interval_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._windows: dict[str, _Window] = {}
        # Insertion order == creation order: ``set`` re-inserts on overwrite.
        self._entries: dict[str, CacheItem] = {}
        self._last_sweep = clock()
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryStore(max_entries={self._max_entries}, "
            f"entries={len(self._entries)}, windows={len(self._windows)})"
        )

    # Window logs

    @staticmethod
    def _prune(window: _Window, now: float) -> None:
        cutoff = now - window.window_seconds
        events = window.events
        while events and events[0] <= cutoff:
            events.popleft()

    async def hit(
        self,
        key: str,
        *,
        now: float,
        limit: int,
        window_seconds: float,
    ) -> WindowState:
        with self._lock:
            self._maybe_sweep_locked(now)

            window = self._windows.get(key)
            if window is None:
                window = _Window(window_seconds=window_seconds)
                self._windows[key] = window
            window.window_seconds = window_seconds
            self._prune(window, now)

            allowed = len(window.events) < limit
            if allowed:
                window.events.append(now)

            return WindowState(
                allowed=allowed,
                count=len(window.events),
                oldest=window.events[0] if window.events else None,
            )

    async def peek(self, key: str, *, now: float, window_seconds: float) -> WindowState:
        with self._lock:
            window = self._windows.get(key)
            if window is None:
                return WindowState(allowed=False, count=0, oldest=None)
            cutoff = now - window_seconds
            live = [ts for ts in window.events if ts > cutoff]
            return WindowState(allowed=False, count=len(live), oldest=live[0] if live else None)

    def sweep(self, now: float | None = None) -> int:
        """Drop window logs with no live events. Returns the number removed."""
        with self._lock:
            return self._sweep_locked(self._clock() if now is None else now)

    def _maybe_sweep_locked(self, now: float) -> None:
        if now - self._last_sweep >= self._sweep_interval:
            self._sweep_locked(now)

    def _sweep_locked(self, now: float) -> int:
        idle = [
            key
            for key, window in self._windows.items()
            if not window.events or window.events[-1] <= now - window.window_seconds
        ]
        for key in idle:
            del self._windows[key]
        self._last_sweep = now
        if idle:
            logger.debug("store.sweep", extra={"removed": len(idle), "windows": len(self._windows)})
        return len(idle)

    # Expiring values

    async def get(self, key: str) -> Any | None:
        with self._lock:
            item = self._entries.get(key)
            if item is None:
                return None
            if self._clock() >= item.expires_at:
                del self._entries[key]
                self._evictions += 1
                return None
            return item.value

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        now = self._clock()
        with self._lock:
            self._evict_expired_locked(now)
            self._entries.pop(key, None)
            self._entries[key] = CacheItem(value=value, created_at=now, expires_at=now + ttl_seconds)
            self._evict_if_over_capacity_locked()

    async def delete(self, key: str) -> bool:
        with self._lock:
            removed_entry = self._entries.pop(key, None) is not None
            removed_window = self._windows.pop(key, None) is not None
            return removed_entry or removed_window

    async def delete_matching(self, pattern: str) -> int:
        glob = normalize_pattern(pattern)
        with self._lock:
            entry_keys = [k for k in self._entries if fnmatchcase(k, glob)]
            window_keys = [k for k in self._windows if fnmatchcase(k, glob)]
            for key in entry_keys:
                del self._entries[key]
            for key in window_keys:
                del self._windows[key]
            return len(entry_keys) + len(window_keys)

    async def ping(self) -> bool:
        return True

    def stats(self) -> dict[str, Any]:
        """Return lightweight store metrics without exposing values."""

        with self._lock:
            cached = len(self._evictable_keys_locked())
            return {
                "backend": self.backend,
                "entries": cached,
                "pinned": len(self._entries) - cached,
                "windows": len(self._windows),
                "max_entries": self._max_entries,
                "evictions": self._evictions,
            }

    def _evict_expired_locked(self, now: float) -> None:
        expired = [k for k, item in self._entries.items() if item.expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._evictions += len(expired)

    def _evictable_keys_locked(self) -> list[str]:
        return [k for k in self._entries if k.startswith(self._evictable_prefix)]

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return
        evictable = self._evictable_keys_locked()
        if len(evictable) <= self._max_entries:
            return

        count = max(1, math.ceil(len(evictable) * self._evict_fraction))
        oldest = sorted(evictable, key=lambda k: self._entries[k].created_at)[:count]
        for key in oldest:
            del self._entries[key]
        self._evictions += len(oldest)
        logger.debug(
            "store.trimmed",
            extra={"evicted": len(oldest), "entries": len(evictable) - len(oldest)},
        )
