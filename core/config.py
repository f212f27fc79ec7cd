"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Wayfarer happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET). Type coercion and validation are built in.

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Dev mode (DEBUG=true) generates a signing secret with a
      warning; production mode refuses to start without one.

Security notes:
  JWT_SECRET shorter than 32 chars is rejected outright.
  Outside debug mode a missing JWT_SECRET is a hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("wayfarer.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
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
    environment: Literal["development", "production"] = "development"
    database_url: str = "sqlite:///./wayfarer_users.db"

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The validator
    # either generates a dev secret or raises, so callers never see "".
    jwt_secret: str = ""
    jwt_expires_in_seconds: int = Field(default=90 * 24 * 3600, gt=0)
    jwt_cookie_expires_in_days: int = Field(default=90, gt=0)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # Client-settable signup fields beyond name/email/password/confirmation.
    signup_fields: list[str] = ["role", "password_changed_at"]

    # ------------------------------------------------------------------
    # Outbound email (password reset)
    # ------------------------------------------------------------------

    email_host: str = ""
    email_port: int = 587
    email_username: str = ""
    email_password: str = ""
    email_from: str = "Wayfarer Accounts <accounts@wayfarer.local>"
    email_timeout: float = 10.0
    email_use_ssl: bool = False

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    forgot_password_rate_limit: str = "5/minute"
    cors_origins: list[str] = ["http://localhost:3000"]
    allowed_hosts: list[str] = ["*"]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Enforce the JWT_SECRET policy.

        Dev mode (DEBUG=true): auto-generate a random secret with a warning.
            Sessions will not survive a restart.

        Production mode: refuse to start if JWT_SECRET is missing.

        Both modes: reject secrets shorter than 32 characters.
        """
        if not self.jwt_secret:
            if self.debug:
                self.jwt_secret = secrets.token_hex(32)
                logger.warning("Using auto-generated JWT_SECRET. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "JWT_SECRET is required outside debug mode. "
                    "Set JWT_SECRET in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
