# pokedex_client/__init__.py

# Expose the client-side data layer for easy import
from .api import ApiClient, ApiError
from .config import ClientSettings
from .connectivity import Connectivity, when_online
from .list_view import ListState, PokemonListView
from .lru import LRUCache
from .models import Pokemon, PaginationInfo, PokemonListResponse
from .prefetch import PrefetchScheduler
from .request_cache import (
    LIST_POLICY, SEARCH_POLICY, CachePolicy, RequestCache, RetryPolicy,
    fingerprint, has_search, policy_for,
)

__all__ = [
    # API
    "ApiClient", "ApiError", "ClientSettings",
    # Cache
    "RequestCache", "RetryPolicy", "CachePolicy", "LIST_POLICY", "SEARCH_POLICY",
    "LRUCache", "fingerprint", "has_search", "policy_for",
    # Scheduling / state
    "PrefetchScheduler", "Connectivity", "when_online", "PokemonListView", "ListState",
    # Models
    "Pokemon", "PaginationInfo", "PokemonListResponse",
]

__version__ = "1.0.0"
