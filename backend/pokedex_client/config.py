# backend/pokedex_client/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Settings for code consuming the Pokedex API (env vars, no prefix)."""

    pokedex_api_url: str = "http://localhost:8000/api"
    request_timeout: float = 10.0

    # Request cache
    cache_max_size: int = 150
    retry_count: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 10.0

    model_config = SettingsConfigDict(extra='ignore')
