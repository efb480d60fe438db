# backend/pokedex_api/config.py

import os
from typing import Literal

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from backend/.env if it exists
env_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), '.env')
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Backend settings, read from the environment (no prefix) or backend/.env."""

    # Upstream PokeAPI
    pokeapi_base_url: str = "https://pokeapi.co/api/v2"
    connect_timeout: float = 10.0
    request_timeout: float = 30.0
    user_agent: str = "Pokedex-App/1.0"

    # Cache
    # "memory" keeps everything in-process, "redis" uses redis_url
    cache_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl_seconds: int = 60 * 60 * 24
    cache_namespace: str = "pokemon"
    # Upper bound for the memory backend; least recently used entries go first
    cache_max_entries: int = 10000

    # List aggregation
    # Search only scans this many entries from the start of the upstream index
    search_pool_size: int = 200
    detail_concurrency: int = 20
    default_page_limit: int = 20
    max_page_limit: int = 100
    max_search_length: int = 255

    # HTTP surface
    api_prefix: str = "/api"
    service_name: str = "Pokedex API"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file_encoding='utf-8', extra='ignore')


def get_settings() -> Settings:
    """Builds settings from the current environment."""
    return Settings()
