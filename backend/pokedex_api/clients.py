# backend/pokedex_api/clients.py

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx
from fastapi import Request

from .cache import PokemonCache, create_cache
from .config import Settings
from .pokeapi_client import PokeApiClient, create_http_client
from .pokemon_service import PokemonService

logger = logging.getLogger(__name__)


@dataclass
class Components:
    """Everything a request needs, built once by the app lifespan or the CLI."""
    settings: Settings
    cache: PokemonCache
    pokeapi: PokeApiClient
    service: PokemonService


def build_components(
    settings: Settings,
    cache: Optional[PokemonCache] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> Components:
    cache = cache or create_cache(settings)
    pokeapi = PokeApiClient(
        http_client or create_http_client(settings),
        cache,
        base_url=settings.pokeapi_base_url,
    )
    service = PokemonService(
        pokeapi,
        search_pool_size=settings.search_pool_size,
        detail_concurrency=settings.detail_concurrency,
        max_page_limit=settings.max_page_limit,
        max_search_length=settings.max_search_length,
    )
    return Components(settings=settings, cache=cache, pokeapi=pokeapi, service=service)


async def close_components(components: Components) -> None:
    await components.pokeapi.close()
    await components.cache.close()
    logger.info("Resources cleaned up.")


@asynccontextmanager
async def open_components(settings: Settings) -> AsyncIterator[Components]:
    """Builds components for a one-off job and closes them afterwards."""
    components = build_components(settings)
    try:
        yield components
    finally:
        await close_components(components)


# --- FastAPI dependencies ---

def get_components(request: Request) -> Components:
    return request.app.state.components


def get_pokemon_service(request: Request) -> PokemonService:
    return request.app.state.components.service


def get_pokeapi_client(request: Request) -> PokeApiClient:
    return request.app.state.components.pokeapi
