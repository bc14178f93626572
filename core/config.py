"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Shopfront happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. app_secret -> APP_SECRET). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. DEBUG mode generates an APP_SECRET with a
      warning; production mode refuses to start without one.

Security notes:
  APP_SECRET shorter than 32 chars is rejected outright. Session tokens are
  HS256 JWTs, so the secret is the whole of their strength.

  APP_SECRET is read once per process. The session issuer receives it at
  startup and never re-reads the environment.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or items/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("shopfront.config")

_ROOT = Path(__file__).resolve().parent.parent


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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev secret or raises, so callers never see "".
    app_secret: str = ""
    frontend_url: str = "http://localhost:7777"

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = f"sqlite:///{_ROOT / 'auth' / 'shopfront_users.db'}"
    items_database_url: str = f"sqlite:///{_ROOT / 'items' / 'shopfront_items.db'}"

    # ------------------------------------------------------------------
    # Session cookie
    # ------------------------------------------------------------------

    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Mail (reset-token delivery)
    # ------------------------------------------------------------------

    # "smtp" or "console". Empty means smtp when MAIL_HOST is set, else console.
    mail_mode: str = ""
    mail_host: str = ""
    mail_port: int = 587
    mail_user: str = ""
    mail_password: str = ""
    mail_starttls: bool = True
    mail_from: str = "no-reply@shopfront.local"
    mail_timeout_seconds: float = 15.0

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    signin_rate_limit: str = "10/minute"
    reset_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_app_secret(self) -> "Settings":
        """Enforce the APP_SECRET policy.

        Dev mode (DEBUG=true): auto-generate a random secret with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            APP_SECRET is missing.

        Both modes: reject secrets shorter than 32 characters.
        """
        if not self.app_secret:
            if self.debug:
                self.app_secret = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated APP_SECRET. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "APP_SECRET is required in production mode. "
                    "Set APP_SECRET in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.app_secret) < 32:
            raise ValueError("APP_SECRET must be at least 32 characters.")
        return self

    @property
    def resolved_mail_mode(self) -> str:
        forced = self.mail_mode.strip().lower()
        if forced in ("smtp", "console"):
            return forced
        return "smtp" if self.mail_host.strip() else "console"


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
