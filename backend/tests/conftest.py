# backend/tests/conftest.py

import fnmatch
from typing import Dict, Iterable, List, Optional

import pytest
import redis.asyncio as redis
import respx

from pokedex_api.cache import MemoryCacheBackend, PokemonCache
from pokedex_api.config import Settings
from pokedex_client import PokemonListResponse

POKEAPI = "https://pokeapi.co/api/v2"


def detail_url(pokemon_id: int) -> str:
    return f"{POKEAPI}/pokemon/{pokemon_id}/"


def index_entry(name: str, pokemon_id: int) -> Dict[str, str]:
    return {"name": name, "url": detail_url(pokemon_id)}


def index_payload(entries: List[Dict[str, str]], count: Optional[int] = None) -> Dict:
    return {"count": len(entries) if count is None else count, "next": None, "previous": None, "results": entries}


def make_detail(name: str, pokemon_id: int, types: Iterable[str] = ("grass", "poison"),
                height: int = 7, weight: int = 69) -> Dict:
    """A trimmed PokeAPI /pokemon/{id} record with the fields the formatter reads."""
    return {
        "id": pokemon_id,
        "name": name,
        "height": height,
        "weight": weight,
        "types": [{"slot": slot, "type": {"name": t, "url": f"{POKEAPI}/type/{t}/"}}
                  for slot, t in enumerate(types, start=1)],
        "sprites": {
            "front_default": f"https://raw.githubusercontent.com/PokeAPI/sprites/master/sprites/pokemon/{pokemon_id}.png",
            "other": {
                "official-artwork": {
                    "front_default": f"https://raw.githubusercontent.com/PokeAPI/sprites/master/sprites/pokemon/other/official-artwork/{pokemon_id}.png"
                }
            },
        },
    }


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedis:
    """Just enough of redis.asyncio.Redis for RedisCacheBackend."""

    def __init__(self, fail: bool = False):
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.fail = fail
        self.closed = False

    def _check(self):
        if self.fail:
            raise redis.ConnectionError("Connection refused")

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self._check()
        self.data[key] = value
        self.ttls[key] = ttl

    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    async def scan_iter(self, match=None):
        self._check()
        for key in list(self.data):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def aclose(self):
        self.closed = True


@pytest.fixture
def settings():
    return Settings(cache_backend="memory", log_level="DEBUG")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_cache(clock):
    return PokemonCache(MemoryCacheBackend(clock=clock), ttl=86400)


def mock_index(limit: int, offset: int):
    """respx route for GET /pokemon?limit=&offset= (query must match exactly)."""
    return respx.get(f"{POKEAPI}/pokemon", params={"limit": limit, "offset": offset})


def make_list_response(page: int = 1, total_pages: int = 65, size: int = 20, prefix: str = "mon"):
    return PokemonListResponse.model_validate({
        "success": True,
        "message": "Pokemon list retrieved successfully",
        "data": [{"name": f"{prefix}-{page}-{i}"} for i in range(size)],
        "pagination": {
            "current_page": page,
            "total_pages": total_pages,
            "total_count": total_pages * size,
            "has_next": page < total_pages,
        },
    })


class FakeListApi:
    """Stands in for pokedex_client.ApiClient; pages can be gated or made to fail."""

    def __init__(self, total_pages: int = 65, size: int = 20):
        self.total_pages = total_pages
        self.size = size
        self.calls: List[Dict] = []
        self.gates: Dict = {}
        self.errors: Dict = {}

    async def get_pokemon_list(self, page=None, limit=None, search=None):
        key = search or (page or 1)
        self.calls.append({"page": page, "limit": limit, "search": search})
        gate = self.gates.get(key)
        if gate is not None:
            await gate.wait()
        if key in self.errors:
            raise self.errors[key]
        prefix = search or "mon"
        return make_list_response(page or 1, self.total_pages, self.size, prefix)
