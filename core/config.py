"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for ReelGuard happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. session_secret -> SESSION_SECRET). Type coercion and validation are
      built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Used for the APP_ENV-conditional
      SESSION_SECRET policy: development falls back to a well-known insecure
      key with a warning, production refuses to start without a real one.

Security notes:
  [M6] SESSION_SECRET shorter than 32 chars is rejected outright. The HMAC
       over every session id relies on key entropy -- a short key weakens it.

  [M7] In production a missing SESSION_SECRET, or the development default,
       is a hard startup failure.

  Rotating SESSION_SECRET invalidates every outstanding session cookie. That
  is the expected fail-safe, not a bug.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
auth/, or library/.
"""

import logging
from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("reelguard.config")

# Deliberately public. Only accepted outside production.
DEV_SESSION_SECRET = "reelguard-insecure-development-secret-change-me"

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'reelguard.db'}"


class AppEnv(str, Enum):
    development = "development"
    production = "production"
    test = "test"


class PasswordScheme(str, Enum):
    bcrypt = "bcrypt"
    pbkdf2_sha512 = "pbkdf2_sha512"


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

    app_env: AppEnv = AppEnv.development
    log_level: str = "INFO"
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either substitutes the dev key or raises.
    session_secret: str = ""
    # Milliseconds, same unit the SESSION_MAX_AGE variable has always used.
    session_max_age: int = Field(default=86_400_000, gt=0)
    session_sweep_interval_seconds: int = Field(default=3600, gt=0)
    # Forces the Secure cookie attribute outside production (e.g. staging
    # behind TLS). Production always sets it.
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Password hashing
    # ------------------------------------------------------------------

    password_scheme: PasswordScheme = PasswordScheme.bcrypt
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    pbkdf2_iterations: int = Field(default=10_000, ge=10_000)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def is_production(self) -> bool:
        return self.app_env is AppEnv.production

    @property
    def cookie_secure(self) -> bool:
        return self.is_production or self.secure_cookies

    @property
    def session_ttl_seconds(self) -> int:
        """Session lifetime in whole seconds (cookie Max-Age is in seconds)."""
        return max(1, self.session_max_age // 1000)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_session_secret(self) -> "Settings":
        """Enforce the SESSION_SECRET policy [M6][M7].

        Development/test: fall back to DEV_SESSION_SECRET with a warning.
            Anyone can forge session signatures with it -- acceptable only
            on a developer machine.

        Production: refuse to start when SESSION_SECRET is missing or still
            the development default.

        All modes: reject keys shorter than 32 characters.
        """
        if not self.session_secret or self.session_secret == DEV_SESSION_SECRET:
            if self.is_production:
                raise ValueError(
                    "SESSION_SECRET is required in production. "
                    "Set SESSION_SECRET in your environment or .env file."
                )
            if not self.session_secret:
                logger.warning("WARNING: Using the insecure development SESSION_SECRET.")
            self.session_secret = DEV_SESSION_SECRET
        if len(self.session_secret) < 32:
            raise ValueError("SESSION_SECRET must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
