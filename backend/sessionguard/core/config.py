"""Environment-driven settings for the session service."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

# 'development' | 'testing' | 'production'
ENV_VAR: Final[str] = "APP_ENV"

STORE_BACKENDS: Final[frozenset[str]] = frozenset({"sqlalchemy", "redis", "memory"})

_TRUTHY = frozenset({"1", "true", "yes", "y", "on"})

# no-op when .env is missing
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """``True`` for ``1/true/yes/y/on`` (any case); ``default`` when unset."""
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip().lower() in _TRUTHY


def env_int(name: str, default: int) -> int:
    """Parse an integer variable; blank or malformed values give ``default``."""
    val = (os.getenv(name) or "").strip()
    try:
        return int(val) if val else default
    except ValueError:
        return default


def env_float(name: str, default: float) -> float:
    val = (os.getenv(name) or "").strip()
    try:
        return float(val) if val else default
    except ValueError:
        return default


class BaseConfig:
    """Settings shared by every environment.

    Session settings
    ----------------
    SESSION_STORE_BACKEND: str
        Refresh token store adapter, one of :data:`STORE_BACKENDS`.
    REDIS_URL: str | None
        Required when the Redis adapter is selected.
    REFRESH_TOKEN_LIFETIME_DAYS: int
        Absolute lifetime of every refresh token. Rotation never extends it
        beyond ``created_at + lifetime`` of the successor.
    REFRESH_TOKEN_RETENTION_DAYS: int
        Grace period after expiry before the reaper may delete a record.
    ACCESS_TOKEN_EXPIRES_MINUTES: int
        Lifetime of access tokens minted after a start or refresh.
    STORE_TIMEOUT_SECONDS: float
        Deadline given to each use-case call; ``0`` disables it.
    REVOKE_BATCH_SIZE / REAPER_BATCH_SIZE: int
        Rows touched per transaction by bulk revocation and by the reaper.
    REAPER_ENABLED / REAPER_INTERVAL_SECONDS
        Run the background expiry reaper and how often it sweeps.

    Operational settings
    --------------------
    LOG_LEVEL, AUDIT_LOG_LEVEL
        Root verbosity and the ``sessionguard.audit`` override.
    CORS_ORIGINS, CORS_MAX_AGE
        Comma-separated browser origins and preflight cache duration.
    USE_PROXYFIX, PROXYFIX_X_FOR
        Trust ``X-Forwarded-For`` and how many hops of it.
    """

    API_BASE_PREFIX = "/api"
    APP_VERSION = os.getenv("APP_VERSION", "dev")

    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME_JWT")
    JWT_TOKEN_LOCATION = ["headers"]

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # ---- refresh sessions ----
    SESSION_STORE_BACKEND = os.getenv("SESSION_STORE_BACKEND", "sqlalchemy")
    REDIS_URL = os.getenv("REDIS_URL")
    REDIS_HEALTH_CHECK_INTERVAL = env_int("REDIS_HEALTH_CHECK_INTERVAL", 30)
    REFRESH_TOKEN_LIFETIME_DAYS = env_int("REFRESH_TOKEN_LIFETIME_DAYS", 7)
    REFRESH_TOKEN_RETENTION_DAYS = env_int("REFRESH_TOKEN_RETENTION_DAYS", 30)
    ACCESS_TOKEN_EXPIRES_MINUTES = env_int("ACCESS_TOKEN_EXPIRES_MINUTES", 60)
    STORE_TIMEOUT_SECONDS = env_float("STORE_TIMEOUT_SECONDS", 5.0)
    REVOKE_BATCH_SIZE = env_int("REVOKE_BATCH_SIZE", 200)

    # ---- expiry reaper ----
    REAPER_ENABLED = env_bool("REAPER_ENABLED", False)
    REAPER_INTERVAL_SECONDS = env_int("REAPER_INTERVAL_SECONDS", 3600)
    REAPER_BATCH_SIZE = env_int("REAPER_BATCH_SIZE", 500)

    # ---- operational ----
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    AUDIT_LOG_LEVEL = os.getenv("AUDIT_LOG_LEVEL") or None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")
    CORS_MAX_AGE = env_int("CORS_MAX_AGE", 600)
    USE_PROXYFIX = env_bool("USE_PROXYFIX", True)
    PROXYFIX_X_FOR = env_int("PROXYFIX_X_FOR", 1)

    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Local runs: debug on, SQL echo on request."""

    DEBUG = env_bool("FLASK_DEBUG", True)


class TestingConfig(BaseConfig):
    """
    Automated test runs.

    In-memory SQLite unless ``TEST_DATABASE_URL`` is set; the reaper thread
    never starts because tests drive sweeps explicitly.
    """

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    PROPAGATE_EXCEPTIONS = True
    REAPER_ENABLED = False


class ProductionConfig(BaseConfig):
    """
    Deployments.

    The reaper runs in-process unless ``REAPER_ENABLED=0`` (for instance when a
    dedicated ``flask sessions run-reaper`` process is deployed).
    """

    SQLALCHEMY_ECHO = False
    REAPER_ENABLED = env_bool("REAPER_ENABLED", True)


CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config(name: str | None = None) -> type[BaseConfig]:
    """
    Resolve a configuration class by name, ``APP_ENV`` by default.

    Unknown or missing names fall back to :class:`DevelopmentConfig`.
    """
    key = (name if name is not None else os.getenv(ENV_VAR, "development")).strip().lower()
    return CONFIG_MAP.get(key, DevelopmentConfig)
