"""Tests for the client address blocklist."""

from unittest.mock import AsyncMock

import pytest

from pathways_gate.adapters.store.in_memory import InMemoryStore
from pathways_gate.core.config import CacheRule
from pathways_gate.core.errors import StoreUnavailableError, ValidationAppError
from pathways_gate.services.blocklist import DEFAULT_BLOCK_SECONDS, Blocklist
from pathways_gate.services.response_cache import ResponseCache, build_cache_key


@pytest.fixture
def blocklist(store: InMemoryStore, clock) -> Blocklist:
    return Blocklist(store, clock=clock)


@pytest.mark.asyncio
async def test_block_until_duration_lapses(blocklist: Blocklist, clock) -> None:
    until = await blocklist.block("203.0.113.9", 60)

    assert until == clock.current + 60
    assert await blocklist.is_blocked("203.0.113.9") is True
    assert await blocklist.is_blocked("203.0.113.10") is False

    clock.advance(60)
    assert await blocklist.is_blocked("203.0.113.9") is False


@pytest.mark.asyncio
async def test_default_duration_is_one_day(blocklist: Blocklist, clock) -> None:
    until = await blocklist.block("203.0.113.9")
    assert until - clock.current == DEFAULT_BLOCK_SECONDS == 86_400


@pytest.mark.asyncio
async def test_unblock(blocklist: Blocklist) -> None:
    await blocklist.block("203.0.113.9", 60)

    assert await blocklist.unblock("203.0.113.9") is True
    assert await blocklist.is_blocked("203.0.113.9") is False
    assert await blocklist.unblock("203.0.113.9") is False


@pytest.mark.asyncio
@pytest.mark.parametrize(("ip", "duration"), [("", 60), ("203.0.113.9", 0)])
async def test_invalid_block_requests(blocklist: Blocklist, ip: str, duration: int) -> None:
    with pytest.raises(ValidationAppError):
        await blocklist.block(ip, duration)


@pytest.mark.asyncio
async def test_store_outage_reads_as_not_blocked(clock) -> None:
    failing = AsyncMock()
    failing.get.side_effect = StoreUnavailableError(code="store_unavailable", message="down")

    assert await Blocklist(failing, clock=clock).is_blocked("203.0.113.9") is False


@pytest.mark.asyncio
async def test_block_survives_cache_churn(clock) -> None:
    store = InMemoryStore(max_entries=10, clock=clock)
    blocklist = Blocklist(store, clock=clock)
    cache = ResponseCache(store, {"jobs": CacheRule(ttl_seconds=120)})
    await blocklist.block("6.6.6.6", DEFAULT_BLOCK_SECONDS)

    for page in range(25):
        clock.advance(1)
        key = build_cache_key("jobs", "/api/jobs", [("page", str(page))], None)
        await cache.save(key, status_code=200, body={"page": page}, ttl_seconds=120)

    assert await blocklist.is_blocked("6.6.6.6") is True
    assert cache.stats()["store"]["entries"] <= 10
