# backend/pokedex_api/exceptions.py

from typing import Dict, List, Optional


class PokedexError(Exception):
    """Base class for all errors raised by the backend."""


class ValidationError(PokedexError):
    """Request parameters have the wrong shape (page < 1, limit out of range...)."""

    def __init__(self, errors: Dict[str, List[str]]):
        self.errors = errors
        super().__init__(f"Invalid request parameters: {errors}")


class UpstreamError(PokedexError):
    """Base for anything that went wrong talking to PokeAPI."""


class UpstreamUnavailable(UpstreamError):
    """Transport failure, timeout or non-2xx status from PokeAPI."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class MalformedUpstreamResponse(UpstreamError):
    """PokeAPI answered, but the payload is missing keys we rely on."""


class MissingRequiredField(PokedexError):
    """A raw detail record lacks a field the formatter cannot default."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Pokemon {field} is missing from API response")


class CacheError(PokedexError):
    """The cache backend failed (connection lost, bad payload...)."""
