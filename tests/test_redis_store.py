"""Unit tests for the Redis store, with the client mocked out."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from pathways_gate.adapters.store.redis_store import SLIDING_WINDOW_HIT, RedisStore
from pathways_gate.core.errors import StoreUnavailableError


def _client(script_result=None) -> MagicMock:
    client = MagicMock()
    client.register_script.return_value = AsyncMock(return_value=script_result)
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    return client


def _scan(keys: list[str], seen: dict):
    async def _iter(*, match: str, count: int):
        seen["match"] = match
        for key in keys:
            yield key

    return _iter


@pytest.mark.asyncio
async def test_hit_runs_script_on_namespaced_key() -> None:
    client = _client(script_result=[1, 3, "1000.25"])
    store = RedisStore(client, namespace="test")

    state = await store.hit("rl:anon:ip:1.2.3.4", now=1_010.0, limit=5, window_seconds=60)

    client.register_script.assert_called_once_with(SLIDING_WINDOW_HIT)
    script = client.register_script.return_value
    kwargs = script.await_args.kwargs
    assert kwargs["keys"] == ["test:rl:anon:ip:1.2.3.4"]
    assert kwargs["args"][:3] == ["1010.0", "60.0", 5]
    assert (state.allowed, state.count, state.oldest) == (True, 3, 1000.25)


@pytest.mark.asyncio
async def test_hit_denied_with_empty_window() -> None:
    store = RedisStore(_client(script_result=[0, 0, ""]))

    state = await store.hit("k", now=1.0, limit=1, window_seconds=10)

    assert (state.allowed, state.count, state.oldest) == (False, 0, None)


@pytest.mark.asyncio
async def test_hit_members_are_unique_for_same_timestamp() -> None:
    client = _client(script_result=[1, 1, "5.0"])
    store = RedisStore(client)

    await store.hit("k", now=5.0, limit=10, window_seconds=10)
    await store.hit("k", now=5.0, limit=10, window_seconds=10)

    calls = client.register_script.return_value.await_args_list
    assert calls[0].kwargs["args"][3] != calls[1].kwargs["args"][3]


@pytest.mark.asyncio
async def test_peek_reads_live_window() -> None:
    client = _client()
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[2, [("m1", 1000.5)]])
    client.pipeline.return_value.__aenter__.return_value = pipe
    store = RedisStore(client, namespace="ns")

    state = await store.peek("k", now=1_030.0, window_seconds=60)

    pipe.zcount.assert_called_once_with("ns:k", "(970.0", "+inf")
    assert (state.allowed, state.count, state.oldest) == (False, 2, 1000.5)


@pytest.mark.asyncio
async def test_get_and_set_round_json() -> None:
    client = _client()
    client.get.return_value = '{"status": 200, "body": {"items": []}}'
    store = RedisStore(client, namespace="ns")

    await store.set("cache:jobs", {"status": 200}, ttl_seconds=120)
    value = await store.get("cache:jobs")

    client.set.assert_awaited_once_with("ns:cache:jobs", '{"status": 200}', px=120_000)
    assert value == {"status": 200, "body": {"items": []}}


@pytest.mark.asyncio
async def test_get_missing_returns_none() -> None:
    store = RedisStore(_client())
    assert await store.get("nope") is None


@pytest.mark.asyncio
async def test_delete_matching_scans_namespace() -> None:
    client = _client()
    seen: dict = {}
    client.scan_iter = _scan(["ns:cache:jobs:a", "ns:cache:jobs:b"], seen)
    client.delete.return_value = 2
    store = RedisStore(client, namespace="ns")

    removed = await store.delete_matching("cache:*jobs*")

    assert seen["match"] == "ns:cache:*jobs*"
    client.delete.assert_awaited_once_with("ns:cache:jobs:a", "ns:cache:jobs:b")
    assert removed == 2


@pytest.mark.asyncio
async def test_delete_matching_without_matches_skips_delete() -> None:
    client = _client()
    client.scan_iter = _scan([], {})
    store = RedisStore(client)

    assert await store.delete_matching("jobs") == 0
    client.delete.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("operation", ["hit", "get", "set", "delete"])
async def test_redis_errors_surface_as_store_unavailable(operation: str) -> None:
    client = _client()
    client.register_script.return_value.side_effect = RedisConnectionError("down")
    client.get.side_effect = RedisConnectionError("down")
    client.set.side_effect = RedisConnectionError("down")
    client.delete.side_effect = RedisConnectionError("down")
    store = RedisStore(client)

    calls = {
        "hit": lambda: store.hit("k", now=1.0, limit=1, window_seconds=1),
        "get": lambda: store.get("k"),
        "set": lambda: store.set("k", 1, 1),
        "delete": lambda: store.delete("k"),
    }
    with pytest.raises(StoreUnavailableError) as exc_info:
        await calls[operation]()

    assert exc_info.value.code == "store_unavailable"
    assert exc_info.value.details == {"backend": "redis", "operation": operation}


@pytest.mark.asyncio
async def test_ping_reports_outage_as_false() -> None:
    client = _client()
    client.ping.side_effect = RedisConnectionError("down")
    store = RedisStore(client)

    assert await store.ping() is False


@pytest.mark.asyncio
async def test_close_releases_client() -> None:
    client = _client()
    await RedisStore(client).close()
    client.aclose.assert_awaited_once()
