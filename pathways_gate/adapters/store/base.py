"""Store interfaces.

A store keeps two kinds of state: sliding-window request logs (for admission
control) and expiring JSON values (for response caching and the blocklist).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class WindowState:
    """Snapshot of one sliding-window log.

    Attributes:
        allowed: Whether the current event was recorded (always False for peeks).
        count: Live events in the window after the operation.
        oldest: Timestamp of the oldest live event, or None if the window is empty.
    """

    allowed: bool
    count: int
    oldest: float | None


def is_glob(pattern: str) -> bool:
    """Return True when the pattern carries glob wildcards."""
    return any(ch in pattern for ch in "*?[")


def normalize_pattern(pattern: str) -> str:
    """Turn a bare word into a substring glob (``jobs`` -> ``*jobs*``)."""
    return pattern if is_glob(pattern) else f"*{pattern}*"


class AbstractStore(ABC):
    """Interface for counter/cache stores."""

    backend: str = "abstract"

    @abstractmethod
    async def hit(
        self,
        key: str,
        *,
        now: float,
        limit: int,
        window_seconds: float,
    ) -> WindowState:
        """Record an event for key if the window still has room.

        Drops events with ``timestamp <= now - window_seconds``, then appends
        ``now`` only when fewer than ``limit`` events remain. Must be atomic
        per key.

        Args:
            key: Window key.
            now: Current UNIX time in seconds.
            limit: Maximum events per window.
            window_seconds: Window length in seconds.

        Returns:
            WindowState after the operation.
        """
        raise NotImplementedError

    @abstractmethod
    async def peek(self, key: str, *, now: float, window_seconds: float) -> WindowState:
        """Report the live window for key without recording an event."""
        raise NotImplementedError

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the unexpired value stored under key, or None."""
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Store a JSON-serializable value for ttl_seconds."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a value or window log. Returns True if something was removed."""
        raise NotImplementedError

    @abstractmethod
    async def delete_matching(self, pattern: str) -> int:
        """Delete every value whose key matches the glob pattern.

        A pattern without wildcards matches as a substring.

        Returns:
            Number of entries removed.
        """
        raise NotImplementedError

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the backend is reachable."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release backend resources."""
        return None

    def stats(self) -> dict[str, Any]:
        """Return lightweight metrics without exposing values."""
        return {"backend": self.backend}
