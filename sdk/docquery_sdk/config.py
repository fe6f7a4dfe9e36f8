"""
Process-wide defaults for docquery models.

Uses pydantic-settings for environment variable loading. Values here
are only fallbacks: options passed to register_model() always win.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Defaults loaded from the environment."""

    # Read limits
    default_limit: int = Field(default=100, description="Maximum documents per list() call")

    # Field visibility
    default_secret_fields: list[str] = Field(
        default=["__v"],
        description="Fields hidden from every projection unless a model overrides them",
    )
    strict_fields: bool = Field(
        default=False,
        description="Raise on unknown field paths instead of dropping them",
    )

    # Caching
    default_cache_ttl: Optional[float] = Field(
        default=None, description="Cache TTL seconds (unset = no caching)"
    )
    default_lean: bool = Field(default=True, description="Return plain snapshots by default")

    model_config = {"env_prefix": "DOCQUERY_"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings instance shared by every registration."""
    return Settings()
