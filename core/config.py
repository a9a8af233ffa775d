"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the identity service happen here (the one
exception is core/secret_store.EnvSecretStore, which treats the environment as a
secret store rather than as configuration). Import get_settings() instead of
calling os.getenv() directly.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. bcrypt_rounds -> BCRYPT_ROUNDS). Type coercion is built in.

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved, so a bad deployment fails at startup instead of on first login.

The JWT signing key is NOT a setting. It is fetched from the secret store
named by secret_store / jwt_secret_name (see core/secret_store.py).

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("identity.config")


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

    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "sqlite:///identity.db"
    cors_allow_origins: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Secret store
    # ------------------------------------------------------------------

    secret_store: Literal["env", "file"] = "env"
    secrets_dir: str = "/run/secrets"
    jwt_secret_name: str = "jwt-secret"

    # ------------------------------------------------------------------
    # Credential lifetimes (seconds)
    # ------------------------------------------------------------------

    access_token_expire_seconds: int = 3600
    refresh_token_expire_seconds: int = 7 * 24 * 3600
    reset_token_expire_seconds: int = 3600

    # ------------------------------------------------------------------
    # Hashing / reset lookup
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 10
    # "index": O(1) lookup by HMAC digest of the reset secret.
    # "scan":  paginated walk over every user, one bcrypt check per candidate.
    reset_token_lookup: Literal["index", "scan"] = "index"
    user_scan_page_size: int = 100

    @model_validator(mode="after")
    def validate_ranges(self) -> "Settings":
        """Reject values that would silently weaken or break the auth flows.

        bcrypt accepts cost factors 4..31; anything outside raises deep inside
        the library on the first registration. Non-positive lifetimes would
        mint tokens that are already expired.
        """
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        for name in (
            "access_token_expire_seconds",
            "refresh_token_expire_seconds",
            "reset_token_expire_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name.upper()} must be a positive number of seconds.")
        if self.user_scan_page_size < 1:
            raise ValueError("USER_SCAN_PAGE_SIZE must be at least 1.")
        if self.reset_token_lookup == "scan":
            logger.warning("RESET_TOKEN_LOOKUP=scan: reset completion cost grows with the number of users.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
