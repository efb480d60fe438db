# backend/pokedex_api/models.py

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class PokemonSummary(BaseModel):
    """Card data for a single Pokémon, in raw PokeAPI units."""
    name: str = Field(..., min_length=1, description="Pokémon name")
    image: Optional[str] = Field(None, description="Official artwork, or front sprite as fallback")
    types: List[str] = Field(default_factory=list, description="Type names in upstream slot order")
    height: int = Field(0, description="Height in decimeters")
    weight: int = Field(0, description="Weight in hectograms")


class PaginationInfo(BaseModel):
    current_page: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)
    total_count: int = Field(..., ge=0)
    has_next: bool


class SkippedEntry(BaseModel):
    """An index entry that was dropped while building a page."""
    name: Optional[str] = None
    url: Optional[str] = None
    reason: str


class ListResult(BaseModel):
    data: List[PokemonSummary]
    pagination: PaginationInfo
    # Diagnostics only, never serialized into the HTTP response
    skipped: List[SkippedEntry] = Field(default_factory=list)


class PokemonListResponse(BaseModel):
    success: bool = True
    message: str
    data: List[PokemonSummary]
    pagination: PaginationInfo


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    errors: Optional[Dict[str, List[str]]] = None


class MessageResponse(BaseModel):
    success: bool
    message: str


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    service: str


class CacheStats(BaseModel):
    total_cached_items: int
    cache_ttl: int
    cache_backend: str
    error: Optional[str] = None
