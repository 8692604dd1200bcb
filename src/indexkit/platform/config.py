"""
indexkit Configuration Management

Uses Pydantic Settings for type-safe configuration from environment variables.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Client configuration loaded from environment variables."""

    # =========================================================================
    # APPLICATION
    # =========================================================================
    APP_ENV: str = "development"
    LOG_LEVEL: str = "info"

    # =========================================================================
    # SEARCH SERVICE (Remote Index Service)
    # =========================================================================
    SEARCH_SERVICE_NAME: str = ""
    # Overrides the URL derived from SEARCH_SERVICE_NAME
    SEARCH_SERVICE_URL: Optional[str] = None
    SEARCH_API_KEY: str = ""
    SEARCH_API_VERSION: str = "2020-06-30"
    SEARCH_TIMEOUT_SECONDS: float = 10.0

    # =========================================================================
    # INDEXING
    # =========================================================================
    INDEXING_MAX_RETRIES: int = 3
    ATOMIC_UPDATE_MAX_RETRIES: int = 10

    # =========================================================================
    # SCHEMA
    # =========================================================================
    SCHEMA_CREATION_DELAY_SECONDS: float = 0.0
    # None keeps re-applying until the conflict goes away
    SCHEMA_CONFLICT_MAX_RETRIES: Optional[int] = None
    SCHEMA_CONFLICT_BACKOFF_SECONDS: float = 0.0

    # =========================================================================
    # SUGGEST
    # =========================================================================
    SUGGEST_DEFAULT_TOP: int = 5

    @property
    def service_url(self) -> str:
        """Base URL of the search service."""
        if self.SEARCH_SERVICE_URL:
            return self.SEARCH_SERVICE_URL.rstrip("/")
        if not self.SEARCH_SERVICE_NAME:
            return ""
        return f"https://{self.SEARCH_SERVICE_NAME}.search.windows.net"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Singleton instance for easy import
settings = get_settings()
