"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for SessionGuard happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Missing required configuration is a hard
      startup failure, never a lazy error on the first request.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. JWT signing and
       the OAuth state cookie both rely on key entropy.

  [M7] In production mode (DEBUG not set or false), a missing SECRET_KEY or
       DATABASE_URL is a hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from urllib.parse import parse_qs, urlparse

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("sessionguard.config")

_DEV_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'sessionguard.db'}"


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
    # Empty string is the sentinel for "not configured".
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    database_url: str = ""
    turso_auth_token: str = ""

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    # 30 days -- same lifetime the JWT session strategy has always used.
    token_expire_seconds: int = 30 * 24 * 3600

    # ------------------------------------------------------------------
    # Lockout / registration policy
    # ------------------------------------------------------------------

    lockout_threshold: int = 5
    lockout_minutes: int = 15
    min_password_length: int = 8

    # ------------------------------------------------------------------
    # OAuth providers (optional -- empty string means provider is disabled)
    # ------------------------------------------------------------------

    github_client_id: str = ""
    github_client_secret: str = ""
    google_client_id: str = ""
    google_client_secret: str = ""

    sign_in_path: str = "/signIn"
    post_login_path: str = "/dashboard"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce SECRET_KEY policy [M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
        Production mode: refuse to start if SECRET_KEY is missing.
        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def validate_database_url(self) -> "Settings":
        """Resolve DATABASE_URL, failing fast when it cannot be used.

        Dev mode falls back to a local SQLite file. Hosted libsql URLs carry
        their credentials either in TURSO_AUTH_TOKEN or in an authToken query
        parameter; without one the store could never connect.
        """
        if not self.database_url:
            if self.debug:
                self.database_url = _DEV_DB_URL
            else:
                raise ValueError("DATABASE_URL is required in production mode.")
        if self.database_url.startswith("libsql://") and not self.database_auth_token():
            raise ValueError("TURSO_AUTH_TOKEN is required when using a libsql:// database.")
        return self

    def database_auth_token(self) -> str | None:
        """Return the libsql auth token from the env var or the URL query string."""
        if self.turso_auth_token:
            return self.turso_auth_token
        values = parse_qs(urlparse(self.database_url).query).get("authToken")
        return values[0] if values else None

    def engine_options(self) -> tuple[str, dict]:
        """Return (SQLAlchemy URL, connect_args) for UserStore.

        libsql:// URLs are rewritten for the sqlite+libsql dialect (the optional
        "libsql" extra). The auth token moves from the query string into
        connect_args so it never appears in logged engine URLs.
        """
        if not self.database_url.startswith("libsql://"):
            return self.database_url, {}
        host = urlparse(self.database_url).netloc
        return f"sqlite+libsql://{host}/?secure=true", {"auth_token": self.database_auth_token()}

    @property
    def github_enabled(self) -> bool:
        return bool(self.github_client_id and self.github_client_secret)

    @property
    def google_enabled(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
