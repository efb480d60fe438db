# backend/pokedex_client/api.py

import asyncio
import logging
from typing import Any, Dict, Optional, Union

import httpx
from pydantic import ValidationError

from .config import ClientSettings
from .models import PokemonListResponse

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    400: "Invalid request parameters",
    404: "Pokemon data not found",
    429: "Too many requests - please wait a moment",
    500: "Server error - please try again later",
    503: "Pokemon service is temporarily unavailable",
}


class ApiError(Exception):
    """
    Failure talking to the Pokedex API.

    `status` is set for HTTP errors; transport failures set
    `is_network_error` and timeouts set `is_timeout_error` instead.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        status_text: Optional[str] = None,
        is_network_error: bool = False,
        is_timeout_error: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.status_text = status_text
        self.is_network_error = is_network_error
        self.is_timeout_error = is_timeout_error

    @property
    def is_client_error(self) -> bool:
        return self.status is not None and 400 <= self.status < 500


class ApiClient:
    """Async client for the Pokedex API with a hard per-request timeout."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000/api",
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    @classmethod
    def from_settings(cls, settings: Optional[ClientSettings] = None) -> "ApiClient":
        settings = settings or ClientSettings()
        return cls(base_url=settings.pokedex_api_url, timeout=settings.request_timeout)

    async def get(self, endpoint: str, params: Optional[Dict[str, Union[str, int]]] = None) -> Any:
        url = f"{self.base_url}{endpoint}"
        try:
            response = await asyncio.wait_for(self._http.get(url, params=params), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise ApiError("Request timeout", is_timeout_error=True) from e
        except httpx.TransportError as e:
            raise ApiError("Network error - please check your internet connection", is_network_error=True) from e

        if response.is_error:
            message = STATUS_MESSAGES.get(
                response.status_code,
                f"API Error: {response.status_code} {response.reason_phrase}",
            )
            raise ApiError(message, status=response.status_code, status_text=response.reason_phrase)

        try:
            return response.json()
        except ValueError as e:
            raise ApiError("Invalid response from server", status=response.status_code) from e

    async def get_pokemon_list(
        self,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        search: Optional[str] = None,
    ) -> PokemonListResponse:
        query: Dict[str, Union[str, int]] = {}
        if page is not None:
            query["page"] = page
        if limit is not None:
            query["limit"] = limit
        if search is not None and search.strip():
            query["search"] = search.strip()

        logger.debug(f"Requesting Pokemon list {query}")
        payload = await self.get("/pokemons", query)
        try:
            return PokemonListResponse.model_validate(payload)
        except ValidationError as e:
            logger.error(f"Unexpected Pokemon list payload: {e}")
            raise ApiError("Invalid response from server", status=200) from e

    async def close(self) -> None:
        await self._http.aclose()
