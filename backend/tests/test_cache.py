# backend/tests/test_cache.py

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from pokedex_api.cache import (
    CacheBackend,
    MemoryCacheBackend,
    PokemonCache,
    RedisCacheBackend,
    create_cache,
)
from pokedex_api.config import Settings
from pokedex_api.exceptions import CacheError

from conftest import FakeRedis


@pytest.mark.asyncio
async def test_get_or_compute_hit_skips_producer(memory_cache):
    producer = AsyncMock(return_value={"name": "bulbasaur"})

    first = await memory_cache.get_or_compute("details_1", producer)
    second = await memory_cache.get_or_compute("details_1", producer)

    assert first == second == {"name": "bulbasaur"}
    assert producer.await_count == 1


@pytest.mark.asyncio
async def test_entries_expire_after_ttl(memory_cache, clock):
    producer = AsyncMock(side_effect=[{"v": 1}, {"v": 2}])

    assert await memory_cache.get_or_compute("k", producer, ttl=60) == {"v": 1}
    clock.advance(59)
    assert await memory_cache.get_or_compute("k", producer, ttl=60) == {"v": 1}
    clock.advance(2)
    assert await memory_cache.get_or_compute("k", producer, ttl=60) == {"v": 2}


@pytest.mark.asyncio
async def test_concurrent_misses_call_producer_once(memory_cache):
    calls = 0

    async def slow_producer():
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.05)
        return {"count": 1292}

    results = await asyncio.gather(*[memory_cache.get_or_compute("list_20_0", slow_producer) for _ in range(5)])

    assert all(r == {"count": 1292} for r in results)
    assert calls == 1
    # per-key locks are released once nobody waits on them
    assert memory_cache._locks == {}


@pytest.mark.asyncio
async def test_producer_error_is_not_cached(memory_cache):
    producer = AsyncMock(side_effect=[RuntimeError("boom"), {"ok": True}])

    with pytest.raises(RuntimeError):
        await memory_cache.get_or_compute("k", producer)
    assert await memory_cache.get_or_compute("k", producer) == {"ok": True}


@pytest.mark.asyncio
async def test_invalidate_with_pattern_only_removes_matches(memory_cache):
    for key in ("list_20_0", "list_20_20", "details_abc"):
        await memory_cache.get_or_compute(key, AsyncMock(return_value={"k": key}))

    assert await memory_cache.invalidate("list_") is True

    assert await memory_cache.backend.keys(memory_cache.prefix) == ["pokemon:details_abc"]


@pytest.mark.asyncio
async def test_invalidate_without_pattern_clears_namespace_only(memory_cache):
    backend = memory_cache.backend
    await backend.set("other:keep-me", {"x": 1}, 60)
    await memory_cache.get_or_compute("list_20_0", AsyncMock(return_value={"a": 1}))

    assert await memory_cache.invalidate() is True

    assert await backend.keys("pokemon:") == []
    assert await backend.get("other:keep-me") == {"x": 1}


@pytest.mark.asyncio
async def test_delete_single_key(memory_cache):
    await memory_cache.get_or_compute("details_1", AsyncMock(return_value={"a": 1}))

    assert await memory_cache.delete("details_1") is True
    assert await memory_cache.delete("details_1") is False


@pytest.mark.asyncio
async def test_stats_counts_namespace_entries(memory_cache):
    await memory_cache.get_or_compute("list_20_0", AsyncMock(return_value={"a": 1}))
    await memory_cache.get_or_compute("details_1", AsyncMock(return_value={"b": 2}))

    stats = await memory_cache.stats()

    assert stats.total_cached_items == 2
    assert stats.cache_ttl == 86400
    assert stats.cache_backend == "memory"
    assert stats.error is None


@pytest.mark.asyncio
async def test_memory_backend_sweeps_expired_keys_on_write(clock):
    backend = MemoryCacheBackend(clock=clock)
    for offset in range(1000):
        await backend.set(f"pokemon:list_20_{offset}", {"offset": offset}, 10)

    clock.advance(3600)
    for offset in range(10):
        await backend.set(f"pokemon:details_{offset}", {"id": offset}, 10)

    assert len(backend._store) == 10
    assert await backend.get("pokemon:list_20_0") is None


@pytest.mark.asyncio
async def test_memory_backend_is_bounded(clock):
    backend = MemoryCacheBackend(max_entries=3, clock=clock)
    for i in range(5):
        await backend.set(f"pokemon:list_1_{i}", {"i": i}, 60 + i)

    assert len(backend._store) == 3
    # the oldest, untouched entries were evicted
    assert await backend.get("pokemon:list_1_0") is None
    assert await backend.get("pokemon:list_1_4") == {"i": 4}


class BrokenBackend(CacheBackend):
    name = "broken"

    async def get(self, key):
        raise CacheError("connection lost")

    async def set(self, key, value, ttl):
        raise CacheError("connection lost")

    async def delete(self, *keys):
        raise CacheError("connection lost")

    async def keys(self, prefix, contains=None):
        raise CacheError("connection lost")


@pytest.mark.asyncio
async def test_backend_failures_do_not_escape():
    cache = PokemonCache(BrokenBackend(), ttl=60)
    producer = AsyncMock(return_value={"name": "ditto"})

    # reads degrade to misses, writes are dropped
    assert await cache.get_or_compute("details_132", producer) == {"name": "ditto"}
    assert await cache.invalidate() is False
    assert await cache.invalidate("list_") is False
    stats = await cache.stats()
    assert stats.total_cached_items == 0
    assert stats.error == "connection lost"


# --- Redis backend ---

@pytest.mark.asyncio
async def test_redis_backend_round_trip():
    fake = FakeRedis()
    cache = PokemonCache(RedisCacheBackend(fake), ttl=3600)

    value = await cache.get_or_compute("details_1", AsyncMock(return_value={"name": "bulbasaur"}))

    assert value == {"name": "bulbasaur"}
    assert json.loads(fake.data["pokemon:details_1"]) == {"name": "bulbasaur"}
    assert fake.ttls["pokemon:details_1"] == 3600
    assert await cache.get_or_compute("details_1", AsyncMock(side_effect=AssertionError)) == {"name": "bulbasaur"}


@pytest.mark.asyncio
async def test_redis_backend_pattern_invalidation():
    fake = FakeRedis()
    fake.data = {
        "pokemon:list_20_0": "{}",
        "pokemon:details_1": "{}",
        "sessions:abc": "{}",
    }
    cache = PokemonCache(RedisCacheBackend(fake), ttl=3600)

    assert await cache.invalidate("details") is True
    assert set(fake.data) == {"pokemon:list_20_0", "sessions:abc"}

    assert await cache.invalidate() is True
    assert set(fake.data) == {"sessions:abc"}


@pytest.mark.asyncio
async def test_redis_backend_bad_json_is_a_miss():
    fake = FakeRedis()
    fake.data["pokemon:k"] = "not json"
    backend = RedisCacheBackend(fake)

    assert await backend.get("pokemon:k") is None


@pytest.mark.asyncio
async def test_redis_connection_failure_reports_false():
    cache = PokemonCache(RedisCacheBackend(FakeRedis(fail=True)), ttl=60)

    assert await cache.invalidate("list_") is False
    stats = await cache.stats()
    assert stats.cache_backend == "redis"
    assert "Connection refused" in stats.error


@pytest.mark.asyncio
async def test_redis_close():
    fake = FakeRedis()
    await RedisCacheBackend(fake).close()
    assert fake.closed


def test_create_cache_uses_configured_backend():
    cache = create_cache(Settings(cache_backend="memory", cache_ttl_seconds=120, cache_namespace="pkmn"))

    assert isinstance(cache.backend, MemoryCacheBackend)
    assert cache.ttl == 120
    assert cache.full_key("list_20_0") == "pkmn:list_20_0"
