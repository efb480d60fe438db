# backend/pokedex_client/request_cache.py
"""
Client-side request cache.

Results are stored in an LRU keyed by a parameter fingerprint. Concurrent
requests for the same fingerprint share one in-flight task, failed requests
are retried with bounded exponential backoff (client errors never are), and
stale entries are served while a background refresh runs when the policy
asks for it.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from .api import ApiError
from .config import ClientSettings
from .lru import LRUCache
from .models import ListParams

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]
RetryCallback = Callable[[int], None]


def fingerprint(params: ListParams) -> str:
    """Deterministic key for a parameter set: strings trimmed, None and blank values dropped, keys sorted."""
    clean = {}
    for key, value in params.items():
        if isinstance(value, str):
            value = value.strip() or None
        if value is not None:
            clean[key] = value
    return "pokemon-list-" + json.dumps(clean, sort_keys=True, separators=(",", ":"))


@dataclass(frozen=True)
class CachePolicy:
    # Within this many seconds of the last fetch an entry is served as-is
    dedupe_interval: float
    # Past the interval: refresh in the background (True) or keep serving (False)
    revalidate_if_stale: bool
    # Keep showing the previous parameters' data while new ones load
    keep_previous_data: bool


# The Pokémon list hardly changes, a fetched page is never considered stale
LIST_POLICY = CachePolicy(dedupe_interval=300.0, revalidate_if_stale=False, keep_previous_data=True)
SEARCH_POLICY = CachePolicy(dedupe_interval=30.0, revalidate_if_stale=True, keep_previous_data=False)


def has_search(params: ListParams) -> bool:
    search = params.get("search")
    return bool(search and str(search).strip())


def policy_for(params: ListParams) -> CachePolicy:
    return SEARCH_POLICY if has_search(params) else LIST_POLICY


@dataclass
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0

    def delay_for(self, retry_count: int) -> float:
        """Backoff before retry number `retry_count + 1`: min(base * 2^n, max)."""
        return min(self.base_delay * (2 ** retry_count), self.max_delay)

    def should_retry(self, error: Exception, retry_count: int) -> bool:
        if not isinstance(error, ApiError):
            return False
        # 4xx means the request itself is wrong; repeating it will not help
        if error.is_client_error:
            return False
        return retry_count < self.max_retries


@dataclass
class CacheEntry:
    data: Any
    timestamp: float


class RequestCache:

    def __init__(
        self,
        max_size: int = 150,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = LRUCache(max_size)
        self.retry_policy = retry_policy or RetryPolicy()
        self._clock = clock
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._background: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: Optional[ClientSettings] = None) -> "RequestCache":
        settings = settings or ClientSettings()
        return cls(
            max_size=settings.cache_max_size,
            retry_policy=RetryPolicy(
                max_retries=settings.retry_count,
                base_delay=settings.retry_base_delay,
                max_delay=settings.retry_max_delay,
            ),
        )

    # --- store access ---

    def get(self, key: str) -> Optional[CacheEntry]:
        return self.store.get(key)

    def peek(self, key: str) -> Optional[CacheEntry]:
        return self.store.peek(key)

    def set(self, key: str, data: Any) -> None:
        self.store.set(key, CacheEntry(data=data, timestamp=self._clock()))

    def invalidate(self, key: Optional[str] = None) -> None:
        if key is None:
            self.store.clear()
        else:
            self.store.delete(key)

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    # --- fetching ---

    async def fetch(
        self,
        key: str,
        fetcher: Fetcher,
        policy: CachePolicy = LIST_POLICY,
        on_retry: Optional[RetryCallback] = None,
    ) -> Any:
        """Returns cached data when the policy allows it, otherwise fetches (deduplicated)."""
        entry = self.store.get(key)
        if entry is not None:
            age = self._clock() - entry.timestamp
            if age >= policy.dedupe_interval and policy.revalidate_if_stale and key not in self._in_flight:
                logger.debug(f"Serving stale {key} while revalidating")
                self._spawn_background(key, fetcher)
            return entry.data
        return await self._request(key, fetcher, on_retry)

    async def revalidate(self, key: str, fetcher: Fetcher, on_retry: Optional[RetryCallback] = None) -> Any:
        """Fetches regardless of what is cached (still deduplicated) and stores the result."""
        return await self._request(key, fetcher, on_retry)

    # Stores a result without any view being involved (used for prefetching)
    mutate = revalidate

    async def _request(self, key: str, fetcher: Fetcher, on_retry: Optional[RetryCallback]) -> Any:
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(self._fetch_with_retry(key, fetcher, on_retry))
            self._in_flight[key] = task
            task.add_done_callback(lambda done, key=key: self._forget(key, done))
            logger.debug(f"Request deduplication: starting new request for {key}")
        else:
            logger.debug(f"Request deduplication: joining in-flight request for {key}")
        # A cancelled caller must not cancel the request other callers share
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _fetch_with_retry(self, key: str, fetcher: Fetcher, on_retry: Optional[RetryCallback]) -> Any:
        retry_count = 0
        while True:
            try:
                data = await fetcher()
            except ApiError as error:
                if not self.retry_policy.should_retry(error, retry_count):
                    logger.error(f"Request for {key} failed after {retry_count} retries: {error}")
                    raise
                delay = self.retry_policy.delay_for(retry_count)
                retry_count += 1
                logger.warning(
                    f"Request for {key} failed: {error}. "
                    f"Retry {retry_count}/{self.retry_policy.max_retries} in {delay:.1f}s..."
                )
                await asyncio.sleep(delay)
                if on_retry:
                    on_retry(retry_count)
                continue
            self.set(key, data)
            return data

    def _spawn_background(self, key: str, fetcher: Fetcher) -> None:
        async def refresh() -> None:
            try:
                await self._request(key, fetcher, None)
            except ApiError as error:
                logger.warning(f"Background revalidation of {key} failed: {error}")

        task = asyncio.create_task(refresh())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def drain(self) -> None:
        """Waits for background revalidations and in-flight requests to settle."""
        pending = list(self._background) + list(self._in_flight.values())
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._background) + list(self._in_flight.values()):
            task.cancel()
        await self.drain()
