# backend/pokedex_client/models.py

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# {"page": int, "limit": int, "search": str}; any key may be missing
ListParams = Dict[str, Any]


class Pokemon(BaseModel):
    name: str
    image: Optional[str] = None
    types: List[str] = Field(default_factory=list)
    height: int = 0
    weight: int = 0


class PaginationInfo(BaseModel):
    current_page: int
    total_pages: int
    total_count: int
    has_next: bool


class PokemonListResponse(BaseModel):
    success: bool = True
    message: str = ""
    data: List[Pokemon]
    pagination: PaginationInfo
