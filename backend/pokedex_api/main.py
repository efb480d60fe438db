# backend/pokedex_api/main.py

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .clients import (
    Components,
    build_components,
    close_components,
    get_components,
    get_pokeapi_client,
    get_pokemon_service,
)
from .config import Settings, get_settings
from .exceptions import ValidationError, UpstreamUnavailable
from .models import (
    CacheStats,
    ErrorResponse,
    HealthResponse,
    MessageResponse,
    PokemonListResponse,
)
from .pokeapi_client import PokeApiClient
from .pokemon_service import PokemonService

logger = logging.getLogger(__name__)

INVALID_PARAMS_MESSAGE = "Invalid request parameters"
UPSTREAM_DOWN_MESSAGE = "External service temporarily unavailable. Please try again later."
INTERNAL_ERROR_MESSAGE = "An internal error occurred. Please try again later."


def _error_response(status_code: int, message: str, errors: Optional[Dict[str, List[str]]] = None) -> JSONResponse:
    body = ErrorResponse(message=message, errors=errors).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health(components: Components = Depends(get_components)):
    """Liveness check; does not touch the upstream or the cache."""
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        service=components.settings.service_name,
    )


@router.get(
    "/pokemons",
    response_model=PokemonListResponse,
    summary="List Pokémon",
    description="Paginated Pokémon cards, optionally filtered by a case-insensitive name substring.",
    tags=["Pokemon"],
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def list_pokemons(
    page: int = Query(1, description="1-based page number"),
    limit: int = Query(20, description="Pokémon per page (1-100)"),
    search: Optional[str] = Query(None, description="Name substring to search for"),
    service: PokemonService = Depends(get_pokemon_service),
):
    try:
        result = await service.list_pokemon(page=page, limit=limit, search=search)
    except ValidationError as e:
        logger.warning(f"Pokemon API validation error: {e.errors}")
        return _error_response(status.HTTP_400_BAD_REQUEST, INVALID_PARAMS_MESSAGE, e.errors)
    except UpstreamUnavailable as e:
        logger.error(f"Pokemon API upstream error (status={e.status_code}): {e}")
        return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, UPSTREAM_DOWN_MESSAGE)
    except Exception as e:
        logger.error(f"Pokemon API error: {e}", exc_info=True)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE)

    if result.skipped:
        logger.info(f"Returning page {page} with {len(result.skipped)} skipped entries")
    return PokemonListResponse(
        message="Pokemon list retrieved successfully",
        data=result.data,
        pagination=result.pagination,
    )


# --- Cache maintenance ---

@router.get("/admin/cache/stats", response_model=CacheStats, tags=["Admin"])
async def cache_stats(pokeapi: PokeApiClient = Depends(get_pokeapi_client)):
    return await pokeapi.cache_stats()


@router.delete(
    "/admin/cache",
    response_model=MessageResponse,
    summary="Clear Pokémon cache",
    description="Removes cached upstream payloads whose key contains `pattern`, or all of them.",
    tags=["Admin"],
)
async def clear_cache(
    pattern: Optional[str] = Query(None, description="Only clear keys containing this substring"),
    pokeapi: PokeApiClient = Depends(get_pokeapi_client),
):
    logger.warning(f"Received admin request to clear cache (pattern={pattern!r})")
    if not await pokeapi.clear_cache(pattern):
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=MessageResponse(success=False, message="Failed to clear Pokemon cache").model_dump(),
        )
    message = (
        f"Cleared Pokemon cache matching pattern: {pattern}" if pattern
        else "Cleared all Pokemon cache data"
    )
    return MessageResponse(success=True, message=message)


def create_app(settings: Optional[Settings] = None, components: Optional[Components] = None) -> FastAPI:
    """
    Builds the FastAPI app.

    Components passed in are used as-is and left open on shutdown (their
    owner closes them); otherwise the lifespan builds and closes its own.
    """
    settings = settings or (components.settings if components else get_settings())
    logging.basicConfig(level=settings.log_level, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application startup...")
        owned = None
        if getattr(app.state, "components", None) is None:
            owned = app.state.components = build_components(settings)
        yield
        logger.info("Application shutdown...")
        if owned is not None:
            await close_components(owned)

    app = FastAPI(
        title="Pokedex API",
        description="Paginated, searchable Pokémon cards backed by a cached PokeAPI proxy",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.components = components

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
        max_age=86400,
    )

    @app.middleware("http")
    async def performance_headers_middleware(request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        response.headers["X-Response-Time"] = f"{elapsed_ms:.2f}ms"
        response.headers["Vary"] = "Accept-Encoding"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors: Dict[str, List[str]] = {}
        for error in exc.errors():
            field = str(error["loc"][-1]) if error.get("loc") else "request"
            errors.setdefault(field, []).append(error.get("msg", "Invalid value"))
        logger.warning(f"Request validation error on {request.url.path}: {errors}")
        return _error_response(status.HTTP_400_BAD_REQUEST, INVALID_PARAMS_MESSAGE, errors)

    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()

# Run locally with:
#    uvicorn pokedex_api.main:app --app-dir backend --port 8000
