# backend/pokedex_api/cache.py

import asyncio
import json
import logging
import re
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import redis.asyncio as redis
from cachetools import TLRUCache

from .exceptions import CacheError
from .models import CacheStats

logger = logging.getLogger(__name__)

_GLOB_SPECIALS = re.compile(r'([*?\[\]\\])')


class CacheBackend:
    """Minimal keyed store the read-through cache is built on."""

    name = "base"

    async def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    async def set(self, key: str, value: Any, ttl: int) -> None:
        raise NotImplementedError

    async def delete(self, *keys: str) -> int:
        raise NotImplementedError

    async def keys(self, prefix: str, contains: Optional[str] = None) -> List[str]:
        """Returns live keys starting with `prefix` and, if given, containing `contains`."""
        raise NotImplementedError

    async def close(self) -> None:
        pass


def _expires_at(key: str, item: Tuple[Any, int], now: float) -> float:
    return now + item[1]


class MemoryCacheBackend(CacheBackend):
    """
    In-process store with per-key expiry, bounded to `max_entries`.

    Every write sweeps expired entries; at capacity the least recently used
    entry is evicted.
    """

    name = "memory"

    def __init__(self, max_entries: int = 10000, clock: Callable[[], float] = time.monotonic):
        self._store = TLRUCache(maxsize=max_entries, ttu=_expires_at, timer=clock)

    async def get(self, key: str) -> Optional[Any]:
        item = self._store.get(key)
        return None if item is None else item[0]

    async def set(self, key: str, value: Any, ttl: int) -> None:
        self._store[key] = (value, ttl)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._store.pop(key, None) is not None:
                removed += 1
        return removed

    async def keys(self, prefix: str, contains: Optional[str] = None) -> List[str]:
        self._store.expire()
        return [
            key for key in list(self._store)
            if key.startswith(prefix)
            and (not contains or contains in key[len(prefix):])
        ]


def create_redis_client(redis_url: str) -> redis.Redis:
    """Creates an asynchronous Redis client backed by a connection pool."""
    logger.info(f"Attempting to connect to Redis at: {redis_url}")
    pool = redis.ConnectionPool.from_url(
        redis_url,
        decode_responses=True,  # Decode responses to strings automatically
        max_connections=20
    )
    return redis.Redis(connection_pool=pool)


class RedisCacheBackend(CacheBackend):
    """Stores JSON-serialized values with SETEX. Errors surface as CacheError."""

    name = "redis"

    def __init__(self, client: redis.Redis):
        self._client = client

    async def get(self, key: str) -> Optional[Any]:
        try:
            cached_data = await self._client.get(key)
        except redis.RedisError as e:
            raise CacheError(f"Redis GET error for key '{key}': {e}") from e
        if cached_data is None:
            return None
        try:
            return json.loads(cached_data)
        except json.JSONDecodeError:
            logger.warning(f"Failed to decode JSON from cache for key: {key}. Treating as miss.")
            return None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        try:
            json_value = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise CacheError(f"Failed to serialize data to JSON for key '{key}': {e}") from e
        try:
            await self._client.setex(key, ttl, json_value)
        except redis.RedisError as e:
            raise CacheError(f"Redis SET error for key '{key}': {e}") from e

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return await self._client.delete(*keys)
        except redis.RedisError as e:
            raise CacheError(f"Redis DELETE error: {e}") from e

    async def keys(self, prefix: str, contains: Optional[str] = None) -> List[str]:
        match = _GLOB_SPECIALS.sub(r'\\\1', prefix) + "*"
        if contains:
            match += _GLOB_SPECIALS.sub(r'\\\1', contains) + "*"
        try:
            return [key async for key in self._client.scan_iter(match=match)]
        except redis.RedisError as e:
            raise CacheError(f"Redis SCAN error for match '{match}': {e}") from e

    async def close(self) -> None:
        try:
            await self._client.aclose()
            logger.info("Redis connection pool disconnected.")
        except redis.RedisError as e:
            logger.error(f"Error closing Redis client: {e}", exc_info=True)


class PokemonCache:
    """
    Read-through cache for upstream payloads.

    Every key lives under `{namespace}:`. get_or_compute is atomic per key:
    concurrent misses on the same key wait on one lock, so the producer runs
    once and the other callers read what it stored.
    """

    def __init__(self, backend: CacheBackend, ttl: int, namespace: str = "pokemon"):
        self.backend = backend
        self.ttl = ttl
        self.namespace = namespace
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @property
    def prefix(self) -> str:
        return f"{self.namespace}:"

    def full_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def _read(self, full_key: str) -> Optional[Any]:
        try:
            return await self.backend.get(full_key)
        except CacheError as e:
            logger.error(f"Cache read failed, treating as miss: {e}")
            return None

    async def _write(self, full_key: str, value: Any, ttl: int) -> None:
        try:
            await self.backend.set(full_key, value, ttl)
            logger.debug(f"Cache SET for key: {full_key} with TTL: {ttl}s")
        except CacheError as e:
            logger.error(f"Cache write failed, value not cached: {e}")

    async def get_or_compute(
        self,
        key: str,
        producer: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
    ) -> Any:
        full_key = self.full_key(key)
        cached = await self._read(full_key)
        if cached is not None:
            logger.debug(f"Cache HIT for key: {full_key}")
            return cached

        lock = self._locks.get(full_key)
        if lock is None:
            lock = self._locks[full_key] = asyncio.Lock()
        self._lock_users[full_key] = self._lock_users.get(full_key, 0) + 1
        try:
            async with lock:
                # Another caller may have filled it while we waited
                cached = await self._read(full_key)
                if cached is not None:
                    logger.debug(f"Cache HIT after wait for key: {full_key}")
                    return cached
                logger.debug(f"Cache MISS for key: {full_key}")
                value = await producer()
                if value is not None:
                    await self._write(full_key, value, ttl if ttl is not None else self.ttl)
                return value
        finally:
            self._lock_users[full_key] -= 1
            if self._lock_users[full_key] == 0:
                del self._lock_users[full_key]
                del self._locks[full_key]

    async def delete(self, key: str) -> bool:
        """Removes a single entry. Returns False if it was absent or the backend failed."""
        try:
            removed = await self.backend.delete(self.full_key(key))
        except CacheError as e:
            logger.error(f"Failed to delete cache key '{key}': {e}")
            return False
        return removed > 0

    async def invalidate(self, pattern: Optional[str] = None) -> bool:
        """
        Bulk delete inside the namespace.

        With `pattern`, only keys containing that substring are removed;
        without it, the whole namespace is cleared. Backend failures are
        logged and reported as False.
        """
        try:
            keys = await self.backend.keys(self.prefix, contains=pattern)
            if keys:
                await self.backend.delete(*keys)
        except CacheError as e:
            logger.error(f"Failed to clear Pokemon cache (pattern={pattern!r}): {e}")
            return False
        logger.info(f"Pokemon cache cleared (pattern={pattern!r}, removed={len(keys)})")
        return True

    async def stats(self) -> CacheStats:
        try:
            keys = await self.backend.keys(self.prefix)
        except CacheError as e:
            logger.error(f"Failed to get cache stats: {e}")
            return CacheStats(
                total_cached_items=0,
                cache_ttl=self.ttl,
                cache_backend=self.backend.name,
                error=str(e),
            )
        return CacheStats(
            total_cached_items=len(keys),
            cache_ttl=self.ttl,
            cache_backend=self.backend.name,
        )

    async def close(self) -> None:
        await self.backend.close()


def create_cache(settings) -> PokemonCache:
    """Builds the configured backend and wraps it in a PokemonCache."""
    if settings.cache_backend == "redis":
        backend: CacheBackend = RedisCacheBackend(create_redis_client(settings.redis_url))
    else:
        backend = MemoryCacheBackend(max_entries=settings.cache_max_entries)
    logger.info(f"Using '{backend.name}' cache backend (ttl={settings.cache_ttl_seconds}s)")
    return PokemonCache(backend, ttl=settings.cache_ttl_seconds, namespace=settings.cache_namespace)
