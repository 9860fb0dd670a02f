"""
Application settings using Pydantic.

Provides environment-based configuration loading with RULEBOOK_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Rule files (glob patterns)
    rule_paths: list[str] = []
    validate_templates: bool = True
    validate_expressions: bool = True

    # Datasource
    datasource_url: str = "http://localhost:8428"
    datasource_user: str | None = None
    datasource_password: str | None = None
    datasource_tenancy: bool = False
    datasource_lookback: str = "0s"

    # HTTP client settings
    http_timeout: float = 30.0

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "RULEBOOK_"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
