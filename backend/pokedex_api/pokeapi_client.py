# backend/pokedex_api/pokeapi_client.py

import hashlib
import logging
from typing import Any, Dict, Optional

import httpx

from .cache import PokemonCache
from .config import Settings
from .exceptions import MalformedUpstreamResponse, UpstreamUnavailable
from .models import CacheStats

logger = logging.getLogger(__name__)


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    """Creates the pooled httpx client used to talk to PokeAPI."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.request_timeout, connect=settings.connect_timeout),
        headers={
            "Accept": "application/json",
            "User-Agent": settings.user_agent,
        },
        follow_redirects=True,
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20)
    )


class PokeApiClient:
    """
    Read-through access to the PokeAPI pokemon index and detail records.

    Raw JSON payloads are cached as they come from the upstream, keyed by
    request shape. Errors are raised as UpstreamUnavailable (transport or
    status problems) or MalformedUpstreamResponse (unexpected payload).
    """

    def __init__(self, http_client: httpx.AsyncClient, cache: PokemonCache, base_url: str):
        self._http = http_client
        self.cache = cache
        self.base_url = base_url.rstrip("/")

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        logger.debug(f"Fetching data from PokeAPI: {url} params={params}")
        try:
            response = await self._http.get(url, params=params)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.error(f"Request timed out for PokeAPI endpoint: {url}")
            raise UpstreamUnavailable(f"PokeAPI request timed out: {url}") from e
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.error(f"HTTP error occurred: {status_code} {e.response.reason_phrase} for url {url!r}")
            raise UpstreamUnavailable(
                f"PokeAPI request failed with status {status_code}", status_code=status_code
            ) from e
        except httpx.RequestError as e:
            logger.error(f"An error occurred while requesting {url!r}: {e}")
            raise UpstreamUnavailable(f"PokeAPI request failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise MalformedUpstreamResponse(f"PokeAPI returned a non-JSON body for {url}") from e

    async def fetch_index(self, limit: int, offset: int) -> Dict[str, Any]:
        """Returns one page of the pokemon index: {"count": int, "results": [{name, url}]}."""

        async def produce() -> Dict[str, Any]:
            data = await self._get_json(f"{self.base_url}/pokemon", params={"limit": limit, "offset": offset})
            if not isinstance(data, dict) or "results" not in data or "count" not in data:
                raise MalformedUpstreamResponse("Invalid Pokemon list response format")
            logger.info(f"Fetched Pokemon list limit={limit} offset={offset} count={len(data['results'])}")
            return data

        return await self.cache.get_or_compute(f"list_{limit}_{offset}", produce)

    async def fetch_detail(self, url: str) -> Dict[str, Any]:
        """Returns the raw detail record behind an index entry URL."""

        async def produce() -> Dict[str, Any]:
            data = await self._get_json(url)
            if not isinstance(data, dict) or "name" not in data:
                raise MalformedUpstreamResponse(f"Invalid Pokemon details response format for {url}")
            logger.debug(f"Fetched Pokemon details name={data['name']} url={url}")
            return data

        cache_key = "details_" + hashlib.md5(url.encode("utf-8")).hexdigest()
        return await self.cache.get_or_compute(cache_key, produce)

    async def clear_cache(self, pattern: Optional[str] = None) -> bool:
        return await self.cache.invalidate(pattern)

    async def cache_stats(self) -> CacheStats:
        return await self.cache.stats()

    async def close(self) -> None:
        if not self._http.is_closed:
            await self._http.aclose()
            logger.info("PokeAPI httpx client closed.")
