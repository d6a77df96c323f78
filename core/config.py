"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the grader happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  TokenConfig: the signing key and algorithm are copied out of Settings into a
      frozen dataclass once at startup and handed to TokenCodec. The codec
      never reads Settings, so nothing can swap the key under a running app.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. HS256 signing
       relies on key entropy -- a short key weakens every issued token.

  [M7] In production mode (DEBUG not set or false), a missing SECRET_KEY is a
       hard startup failure. A random key in production would silently
       invalidate every session on restart.

  [M8] Only HMAC algorithms are accepted for JWT_ALGORITHM. The codec rejects
       tokens whose header declares anything other than the configured value.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or catalog/.
"""

import logging
import secrets
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("grader.config")

_HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")
_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'grader.db'}"


@dataclass(frozen=True)
class TokenConfig:
    """Immutable signing configuration for TokenCodec.

    Built once from Settings at startup. secret_key is raw bytes so the codec
    does not need to know how the operator encoded it in the environment.
    """

    secret_key: bytes
    algorithm: str = "HS256"
    ttl_seconds: int = 1800


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
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Tokens and sessions
    # ------------------------------------------------------------------

    jwt_algorithm: str = "HS256"
    # 30 minutes. Every token carries this as exp - iat and the matching
    # session record expires at the same instant.
    token_expire_seconds: int = 1800

    # ------------------------------------------------------------------
    # Backing stores
    # ------------------------------------------------------------------

    redis_url: str = "redis://localhost:6379/0"
    database_url: str = _DEFAULT_DB_URL
    # Upper bound for every store round-trip. A timed-out call is an
    # internal failure, never a silent success.
    store_timeout_seconds: float = 1.0

    # ------------------------------------------------------------------
    # Rate limiting and registration
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    self_registration_enabled: bool = True

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    # List values are read from the environment as JSON, e.g.
    # ALLOWED_HOSTS='["grader.example.com"]'.
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce SECRET_KEY policy [M7] and the HMAC-only algorithm rule [M8].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Sessions will not persist across restarts."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if self.jwt_algorithm not in _HMAC_ALGORITHMS:
            raise ValueError(f"JWT_ALGORITHM must be one of {', '.join(_HMAC_ALGORITHMS)}.")
        if self.token_expire_seconds <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be positive.")
        return self

    def token_config(self) -> TokenConfig:
        """Snapshot the signing settings into an immutable TokenConfig."""
        return TokenConfig(
            secret_key=self.secret_key.encode("utf-8"),
            algorithm=self.jwt_algorithm,
            ttl_seconds=self.token_expire_seconds,
        )


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings() directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
