"""Centralized configuration loaded from environment variables."""

from pydantic_settings import BaseSettings

DEFAULT_PROVIDER_ORDER = ["semantic_scholar", "crossref", "openalex", "web_search"]


class Settings(BaseSettings):
    """Application settings loaded from .env file or environment variables."""

    openalex_email: str = ""
    crossref_email: str = ""
    semantic_scholar_api_key: str = ""
    serper_api_key: str = ""

    # Run budget and per-call bounds, in milliseconds
    budget_ms: int = 6500
    call_timeout_ms: int = 3000
    min_call_ms: int = 1000

    max_publications: int = 300
    provider_order: list[str] = list(DEFAULT_PROVIDER_ORDER)

    database_path: str = "faculty.db"

    model_config = {"env_file": ".env"}


settings = Settings()
