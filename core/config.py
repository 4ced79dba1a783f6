"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Gatekeeper happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. token_ttl_seconds -> TOKEN_TTL_SECONDS).

There is no global signing key. Every app carries its own secret in the
database, so the only security-relevant knobs here are the token lifetime
and the bcrypt cost factor.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("gatekeeper.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'gatekeeper.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    # Restart the server on code changes (main.py serve). Development only.
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Lifetime of every issued session token. Default 1 hour.
    token_ttl_seconds: int = 3600
    # bcrypt cost factor; each +1 doubles hashing time. 12 is the usual floor
    # for production. Tests drop it to 4 (the bcrypt minimum).
    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # Server (main.py serve)
    # ------------------------------------------------------------------

    host: str = "127.0.0.1"
    port: int = 8000

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("token_ttl_seconds")
    @classmethod
    def validate_token_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("TOKEN_TTL_SECONDS must be positive.")
        return value

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, value: int) -> int:
        if not 4 <= value <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        if value < 10:
            logger.warning("BCRYPT_ROUNDS=%d is below the recommended minimum of 10.", value)
        return value

    @property
    def token_ttl(self) -> timedelta:
        return timedelta(seconds=self.token_ttl_seconds)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
