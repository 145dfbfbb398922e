"""Runtime settings and logging setup.

Values come from the environment (or a local ``.env`` file). Every external
collaborator is optional so the service still boots for local development:
without Supabase credentials the rule store is an empty in-memory store, and
without a Gemini key the AI endpoints answer 503.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Trade Compliance Checker"

    # Rule store (Supabase / Postgres)
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    # Generative model
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-pro"
    llm_max_attempts: int = Field(default=3, ge=1, le=10)
    llm_backoff_seconds: float = Field(default=1.0, ge=0)

    # Bulk evaluation
    batch_chunk_size: int = Field(default=100, ge=1)

    log_level: str = "INFO"

    @property
    def store_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @property
    def llm_configured(self) -> bool:
        return bool(self.gemini_api_key)


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    else:
        root.setLevel(level.upper())
