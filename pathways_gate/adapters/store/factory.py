"""Factory for the configured store backend."""

from __future__ import annotations

from pathways_gate.adapters.store.base import AbstractStore
from pathways_gate.adapters.store.fallback import FallbackStore
from pathways_gate.adapters.store.in_memory import InMemoryStore
from pathways_gate.adapters.store.redis_store import RedisStore
from pathways_gate.core.config import Settings


def create_store(config: Settings) -> AbstractStore:
    """Instantiate the store selected by ``RATE_LIMIT_STORE``.

    ``memory`` returns a process-local store. ``redis`` returns a Redis store
    wrapped so that outages degrade to a process-local store.

    Args:
        config: Resolved application settings.

    Returns:
        AbstractStore: Configured store instance.
    """
    local = InMemoryStore(
        max_entries=config.cache.max_entries,
        evict_fraction=config.cache.evict_fraction,
        sweep_interval_seconds=config.rate_limit.sweep_interval_seconds,
    )

    if config.rate_limit.store == "redis":
        shared = RedisStore.from_url(
            config.redis.url,
            connect_timeout_ms=config.redis.connect_timeout_ms,
        )
        return FallbackStore(primary=shared, fallback=local)

    return local
