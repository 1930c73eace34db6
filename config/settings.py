"""
Runtime settings for the Albi Mall assistant.

Values come from environment variables prefixed with ``ALBI_`` (or a local
``.env`` file). Components never read settings directly: ``build_assistant``
and ``create_app`` take a ``Settings`` instance and pass plain values down.

Usage:
    from config.settings import get_settings

    settings = get_settings()
    settings.session_ttl_seconds  # 3600
"""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):

    # Core
    app_name: str = "Albi Mall Assistant"
    store_brand: str = "Michael Kors"
    debug: bool = False
    api_prefix: str = "/api"
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Catalog (empty string = no local catalog)
    catalog_path: str = "data/sample_products.json"

    # Sessions
    session_ttl_seconds: int = 3600
    max_history: int = 10
    prompt_history: int = 6

    # Retrieval
    result_limit: int = 5
    search_limit: int = 10
    context_pool_limit: int = 20

    # Cache
    cache_max_size: int = 500
    search_cache_ttl: int = 300        # 5 minutes
    response_cache_ttl: int = 300
    cache_sweep_interval: int = 300    # 0 disables the background sweeper

    # Text generation (OpenAI-compatible endpoint, Groq by default)
    llm_api_key: str = ""
    llm_base_url: str = "https://api.groq.com/openai/v1"
    llm_model: str = "llama-3.1-70b-versatile"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 500
    llm_timeout: float = 10.0          # seconds
    llm_max_attempts: int = 1

    # Search provider
    trieve_api_key: str = ""
    trieve_dataset_id: str = ""
    trieve_base_url: str = "https://api.trieve.ai"
    search_timeout: float = 10.0

    # Input limits
    max_message_length: int = 500
    min_message_length: int = 1

    # Logging
    log_dir: str = "logs"
    log_level: str = "INFO"
    log_to_file: bool = False

    model_config = SettingsConfigDict(
        env_prefix="ALBI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def llm_enabled(self) -> bool:
        return bool(self.llm_api_key)

    @property
    def remote_search_enabled(self) -> bool:
        return bool(self.trieve_api_key and self.trieve_dataset_id)


@lru_cache
def get_settings() -> Settings:
    """Cached settings factory (cheap to call from FastAPI dependencies)."""
    return Settings()
