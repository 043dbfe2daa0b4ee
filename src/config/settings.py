"""
Dicekeeper - Application Settings

Loads configuration from environment variables using Pydantic Settings.
Supabase credentials are optional: without them the in-memory stores are used.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase
    supabase_url: str | None = None
    supabase_anon_key: str | None = None

    # Rules
    max_attributes_per_card: int = Field(default=100, ge=1)
    coc_rule: int = Field(default=0, ge=0, le=5)

    # Application
    debug: bool = False
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "DICEKEEPER_",
    }

    @property
    def use_supabase(self) -> bool:
        """True when both Supabase credentials are configured."""
        return bool(self.supabase_url and self.supabase_anon_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached singleton settings instance."""
    return Settings()
