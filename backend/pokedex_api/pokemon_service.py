# backend/pokedex_api/pokemon_service.py

import asyncio
import logging
import math
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .exceptions import PokedexError, ValidationError
from .formatter import format_pokemon
from .models import ListResult, PaginationInfo, PokemonSummary, SkippedEntry
from .pokeapi_client import PokeApiClient

logger = logging.getLogger(__name__)


def build_pagination(page: int, limit: int, total_count: int) -> PaginationInfo:
    total_pages = math.ceil(total_count / limit) if total_count else 0
    return PaginationInfo(
        current_page=page,
        total_pages=total_pages,
        total_count=total_count,
        has_next=page < total_pages,
    )


class PokemonService:
    """
    Builds paginated, optionally searched, pages of PokemonSummary.

    One index fetch plus one detail fetch per entry on the page. Detail
    fetches run concurrently (bounded by `detail_concurrency`); an entry whose
    detail fetch or formatting fails is logged and dropped, the rest of the
    page is still returned. Index failures are not caught here.
    """

    def __init__(
        self,
        client: PokeApiClient,
        search_pool_size: int = 200,
        detail_concurrency: int = 20,
        max_page_limit: int = 100,
        max_search_length: int = 255,
    ):
        self.client = client
        self.search_pool_size = search_pool_size
        self.detail_concurrency = detail_concurrency
        self.max_page_limit = max_page_limit
        self.max_search_length = max_search_length

    def validate_params(self, page: int, limit: int, search: Optional[str]) -> None:
        errors: Dict[str, List[str]] = {}
        if page < 1:
            errors['page'] = ["The page field must be at least 1."]
        if not 1 <= limit <= self.max_page_limit:
            errors['limit'] = [f"The limit field must be between 1 and {self.max_page_limit}."]
        if search is not None and len(search) > self.max_search_length:
            errors['search'] = [f"The search field must not be greater than {self.max_search_length} characters."]
        if errors:
            raise ValidationError(errors)

    async def list_pokemon(self, page: int = 1, limit: int = 20, search: Optional[str] = None) -> ListResult:
        self.validate_params(page, limit, search)
        logger.info(f"Fetching Pokemon list page={page} limit={limit} search={search!r}")
        try:
            if search and search.strip():
                return await self._search_pokemon(search, page, limit)
            return await self._paginated_pokemon(page, limit)
        except Exception as e:
            logger.error(f"Failed to get Pokemon list page={page} limit={limit} search={search!r}: {e}")
            raise

    async def _paginated_pokemon(self, page: int, limit: int) -> ListResult:
        offset = (page - 1) * limit
        index = await self.client.fetch_index(limit, offset)

        entries = index['results'][:limit]
        data, skipped = await self._resolve_entries(entries)
        return ListResult(
            data=data,
            pagination=build_pagination(page, limit, int(index['count'])),
            skipped=skipped,
        )

    async def _search_pokemon(self, search: str, page: int, limit: int) -> ListResult:
        search_term = search.strip().lower()
        logger.info(f"Searching Pokemon term={search_term!r} page={page} limit={limit}")

        # Only the first `search_pool_size` upstream entries are searchable
        index = await self.client.fetch_index(self.search_pool_size, 0)
        matching = [
            entry for entry in index['results']
            if search_term in str(entry.get('name', '')).lower()
        ]

        offset = (page - 1) * limit
        data, skipped = await self._resolve_entries(matching[offset:offset + limit])
        return ListResult(
            data=data,
            pagination=build_pagination(page, limit, len(matching)),
            skipped=skipped,
        )

    async def _resolve_entries(
        self, entries: List[Dict[str, Any]]
    ) -> Tuple[List[PokemonSummary], List[SkippedEntry]]:
        semaphore = asyncio.Semaphore(self.detail_concurrency)

        async def resolve(entry: Dict[str, Any]) -> Union[PokemonSummary, SkippedEntry]:
            name, url = entry.get('name'), entry.get('url')
            try:
                if not url:
                    raise PokedexError("Index entry has no detail URL")
                async with semaphore:
                    details = await self.client.fetch_detail(url)
                return format_pokemon(details)
            except (PokedexError, ValueError, TypeError) as e:
                logger.warning(f"Failed to fetch Pokemon details name={name or 'unknown'} url={url or 'unknown'}: {e}")
                return SkippedEntry(name=name, url=url, reason=str(e))

        # gather keeps index order
        results = await asyncio.gather(*(resolve(entry) for entry in entries))
        data = [r for r in results if isinstance(r, PokemonSummary)]
        skipped = [r for r in results if isinstance(r, SkippedEntry)]
        return data, skipped

    async def warm_cache(
        self,
        pages: int = 5,
        limit: int = 20,
        pause: float = 0.1,
        on_page: Optional[Callable[[int], None]] = None,
    ) -> Tuple[int, List[Tuple[int, str]]]:
        """
        Loads pages 1..`pages` so their upstream payloads land in the cache.

        Returns the number of Pokémon loaded and a (page, error) list for
        pages that failed; a failed page does not stop the others.
        """
        loaded = 0
        failures: List[Tuple[int, str]] = []
        for page in range(1, pages + 1):
            try:
                result = await self.list_pokemon(page, limit)
                loaded += len(result.data)
                logger.info(f"Warmed cache for page {page} ({len(result.data)} Pokemon)")
            except PokedexError as e:
                logger.error(f"Cache warming failed for page {page}: {e}")
                failures.append((page, str(e)))
            if on_page:
                on_page(page)
            if pause and page < pages:
                await asyncio.sleep(pause)
        return loaded, failures
