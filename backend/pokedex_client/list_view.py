# backend/pokedex_client/list_view.py

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from .api import ApiClient, ApiError
from .connectivity import Connectivity, when_online
from .models import ListParams, PokemonListResponse
from .prefetch import PrefetchScheduler
from .request_cache import CachePolicy, RequestCache, fingerprint, has_search, policy_for

logger = logging.getLogger(__name__)


@dataclass
class ListState:
    data: Optional[PokemonListResponse] = None
    error: Optional[ApiError] = None
    is_loading: bool = False
    is_offline: bool = False
    retry_count: int = 0


class PokemonListView:
    """
    State holder for one paginated, searchable Pokémon list.

    Every load takes a token; when a load finishes after the parameters have
    moved on, its result (or error) is dropped so it cannot overwrite the
    state of the current parameters. Superseded requests are not cancelled.
    """

    def __init__(
        self,
        api: ApiClient,
        cache: RequestCache,
        connectivity: Optional[Connectivity] = None,
        prefetcher: Optional[PrefetchScheduler] = None,
        params: Optional[ListParams] = None,
    ):
        self.api = api
        self.cache = cache
        self.connectivity = connectivity or Connectivity()
        self.prefetcher = prefetcher
        self.params: ListParams = dict(params or {})
        self.state = ListState(is_offline=not self.connectivity.is_online)
        self._token = 0
        self._remove_listener = self.connectivity.add_listener(self._on_connectivity_change)

    @property
    def key(self) -> str:
        return fingerprint(self.params)

    @property
    def policy(self) -> CachePolicy:
        return policy_for(self.params)

    def _on_connectivity_change(self, online: bool) -> None:
        self.state.is_offline = not online

    def _fetcher(self, params: ListParams):
        async def fetch() -> PokemonListResponse:
            return await self.api.get_pokemon_list(**params)

        return when_online(self.connectivity, fetch)

    def _is_current(self, token: int) -> bool:
        return token == self._token

    async def load(self, force: bool = False) -> ListState:
        self._token += 1
        token = self._token
        params = dict(self.params)
        key = fingerprint(params)

        def on_retry(retry_count: int) -> None:
            if self._is_current(token):
                self.state.retry_count = retry_count

        self.state.is_loading = True
        self.state.error = None
        try:
            if force:
                data = await self.cache.revalidate(key, self._fetcher(params), on_retry=on_retry)
            else:
                data = await self.cache.fetch(key, self._fetcher(params), policy_for(params), on_retry=on_retry)
        except ApiError as error:
            if not self._is_current(token):
                logger.debug(f"Ignoring error from superseded request {key}: {error}")
                return self.state
            self.state.error = error
            self.state.is_loading = False
            return self.state

        if not self._is_current(token):
            logger.debug(f"Ignoring result from superseded request {key}")
            return self.state

        self.state.data = data
        self.state.is_loading = False
        self.state.retry_count = 0
        if self.prefetcher:
            self.prefetcher.schedule_after_success(params, data)
        return self.state

    async def set_params(self, **params) -> ListState:
        """Switches to new parameters (page, limit, search) and loads them."""
        self.params = {key: value for key, value in params.items() if value is not None}
        if not self.policy.keep_previous_data:
            self.state.data = None
        return await self.load()

    async def retry(self) -> ListState:
        self.state.retry_count = 0
        return await self.load(force=True)

    def prefetch_next_page(self) -> Optional[asyncio.Task]:
        data = self.state.data
        if not self.prefetcher or data is None or not data.pagination.has_next or has_search(self.params):
            return None
        next_params = {**self.params, 'page': (self.params.get('page') or 1) + 1}
        return self.prefetcher.schedule(next_params)

    def close(self) -> None:
        self._remove_listener()
