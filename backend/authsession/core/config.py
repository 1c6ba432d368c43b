"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

# Public selector env var
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

# Load .env during development (no-op when the file is missing)
load_dotenv()

DAY: Final[int] = 24 * 60 * 60


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable, falling back to ``default``."""
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return int(val)


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    JWT_SECRET_KEY: str | None
        HMAC secret used to sign access tokens. There is deliberately no
        default: the app factory refuses to start without it.
    ACCESS_TOKEN_TTL: int
        Access token lifetime in seconds (1 hour).
    REFRESH_TOKEN_TTL: int
        Sliding refresh window in seconds, renewed on every rotation (7 days).
    SESSION_TTL: int
        Absolute session lifetime in seconds, never extended (30 days).
    SESSION_BACKEND: str
        ``"sql"``, ``"redis"`` or ``"memory"``; selects the session repository.
    SESSION_LOCK_TIMEOUT: float
        Seconds a session operation may wait for the exclusive section.
    REDIS_URL: str | None
        Redis connection string, required by the ``redis`` backend and used
        for the access-token denylist when present.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    REFRESH_COOKIE_NAME / REFRESH_COOKIE_PATH / REFRESH_COOKIE_SECURE / REFRESH_COOKIE_SAMESITE
        Attributes of the HTTP-only cookie carrying the refresh token.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.
    AUTH_LOGIN_RATE_LIMIT: str
        Flask-Limiter expression applied to the login endpoint.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")

    # Session lifecycle
    ACCESS_TOKEN_TTL = env_int("ACCESS_TOKEN_TTL", 3600)
    REFRESH_TOKEN_TTL = env_int("REFRESH_TOKEN_TTL", 7 * DAY)
    SESSION_TTL = env_int("SESSION_TTL", 30 * DAY)
    SESSION_BACKEND = os.getenv("SESSION_BACKEND", "sql")
    SESSION_LOCK_TIMEOUT = float(os.getenv("SESSION_LOCK_TIMEOUT", "5"))
    REDIS_URL = os.getenv("REDIS_URL") or None

    # Refresh cookie
    REFRESH_COOKIE_NAME = "refreshToken"
    REFRESH_COOKIE_PATH = "/api/v1/auth/refresh"
    REFRESH_COOKIE_SECURE = env_bool("REFRESH_COOKIE_SECURE", False)
    REFRESH_COOKIE_SAMESITE = "Lax"

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False
    MAX_CONTENT_LENGTH = 1024 * 1024

    # Logging & CORS
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")

    # Rate limiting
    AUTH_LOGIN_RATE_LIMIT = os.getenv("AUTH_LOGIN_RATE_LIMIT", "5 per minute")
    RATELIMIT_ENABLED = env_bool("RATELIMIT_ENABLED", True)
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default and honors ``SQLALCHEMY_ECHO`` for verbose
    SQL logging when requested.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables rate limiting.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Ships a fixed signing secret so tests never depend on the environment.
    """

    TESTING = True
    DEBUG = False
    JWT_SECRET_KEY = "testing-secret-key-with-at-least-32-bytes"
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ECHO = False
    SESSION_BACKEND = "sql"
    REDIS_URL = None
    RATELIMIT_ENABLED = False
    PROPAGATE_EXCEPTIONS = False
    LOG_LEVEL = "WARNING"


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug and SQL echoing disabled and always marks the refresh cookie
    as ``Secure``.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False
    REFRESH_COOKIE_SECURE = True


CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
