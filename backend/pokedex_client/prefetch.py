# backend/pokedex_client/prefetch.py

import asyncio
import logging
from typing import List, Optional, Sequence, Set

from .api import ApiClient, ApiError
from .connectivity import Connectivity, when_online
from .models import ListParams, PokemonListResponse
from .request_cache import RequestCache, fingerprint, has_search

logger = logging.getLogger(__name__)

# Larger pages take longer to scroll through, so the next one can start sooner
LARGE_PAGE_THRESHOLD = 10
LARGE_PAGE_DELAY = 0.5
SMALL_PAGE_DELAY = 1.0
SECOND_PAGE_EXTRA_DELAY = 2.0

WARM_PAGES = 3
WARM_LIMIT = 20
POPULAR_SEARCHES = ('pikachu', 'charizard', 'blastoise', 'venusaur', 'mewtwo')
POPULAR_STAGGER = 1.0


class PrefetchScheduler:
    """
    Queue of delayed background fetches that only fill the request cache.

    A scheduled page that is already cached or in flight when its delay
    expires is skipped. Failures are logged; nothing is surfaced to views.
    """

    def __init__(self, cache: RequestCache, api: ApiClient, connectivity: Optional[Connectivity] = None):
        self.cache = cache
        self.api = api
        self.connectivity = connectivity
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, params: ListParams, delay: float = 0.0) -> asyncio.Task:
        task = asyncio.create_task(self._run(dict(params), delay))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def schedule_after_success(self, params: ListParams, response: PokemonListResponse) -> List[asyncio.Task]:
        """Queues the next page (and the one after) of a successful non-search list fetch."""
        if has_search(params) or not response.pagination.has_next:
            return []

        page = params.get('page') or 1
        delay = LARGE_PAGE_DELAY if len(response.data) > LARGE_PAGE_THRESHOLD else SMALL_PAGE_DELAY
        tasks = [self.schedule({**params, 'page': page + 1}, delay)]
        if response.pagination.current_page < response.pagination.total_pages - 1:
            tasks.append(self.schedule({**params, 'page': page + 2}, delay + SECOND_PAGE_EXTRA_DELAY))
        return tasks

    def warm_cache(self, pages: int = WARM_PAGES, limit: int = WARM_LIMIT) -> List[asyncio.Task]:
        return [self.schedule({'page': page, 'limit': limit}) for page in range(1, pages + 1)]

    def preload_popular(
        self,
        searches: Sequence[str] = POPULAR_SEARCHES,
        limit: int = WARM_LIMIT,
        stagger: float = POPULAR_STAGGER,
    ) -> List[asyncio.Task]:
        return [
            self.schedule({'page': 1, 'limit': limit, 'search': search}, index * stagger)
            for index, search in enumerate(searches)
        ]

    async def _run(self, params: ListParams, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        key = fingerprint(params)
        if self.cache.peek(key) is not None or self.cache.is_in_flight(key):
            logger.debug(f"Prefetch skipped, {key} already cached or loading")
            return

        async def fetch() -> PokemonListResponse:
            return await self.api.get_pokemon_list(**params)

        fetcher = when_online(self.connectivity, fetch) if self.connectivity else fetch
        try:
            await self.cache.mutate(key, fetcher)
            logger.debug(f"Prefetched {key}")
        except ApiError as e:
            logger.warning(f"Prefetch of {key} failed: {e}")

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()
