"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Stockroom happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Dev mode generates missing secrets with a warning;
      production mode refuses to start without them.

Security notes:
  SECRET_KEY signs JWTs; SESSION_SECRET signs the session id cookie. Both are
  injected, never rotated by the app. Values shorter than 32 chars are rejected.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
auth/, or inventory/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("stockroom.config")

_ROOT = Path(__file__).resolve().parent.parent

_MIN_SECRET_LENGTH = 32


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
    # Empty string is the sentinel for "not configured". The validator below
    # either generates a dev value or raises, so callers never see "".
    secret_key: str = ""
    session_secret: str = ""
    database_url: str = f"sqlite:///{_ROOT / 'stockroom.db'}"
    port: int = 4000
    allowed_hosts: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    # Fixed token validity window: one hour.
    token_expire_seconds: int = 3600
    bcrypt_rounds: int = 10
    session_backend: str = "memory"  # "memory" | "sql"
    session_cookie_name: str = "stockroom_session"
    session_max_age: int = 86400
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    upload_dir: str = str(_ROOT / "uploads")

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Enforce the secret policy for SECRET_KEY and SESSION_SECRET.

        Dev mode (DEBUG=true): auto-generate a random value with a warning.
            Sessions and tokens will not survive restart.

        Production mode: refuse to start if either secret is missing.

        Both modes: reject values shorter than 32 characters.
        """
        for name in ("secret_key", "session_secret"):
            value = getattr(self, name)
            if not value:
                if not self.debug:
                    raise ValueError(
                        f"{name.upper()} is required in production mode. "
                        f"Set {name.upper()} in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
                value = secrets.token_hex(32)
                setattr(self, name, value)
                logger.warning("Using auto-generated %s. It will not persist across restarts.", name.upper())
            if len(value) < _MIN_SECRET_LENGTH:
                raise ValueError(f"{name.upper()} must be at least {_MIN_SECRET_LENGTH} characters.")
        if self.session_backend not in ("memory", "sql"):
            raise ValueError("SESSION_BACKEND must be 'memory' or 'sql'.")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
