"""Wire the refresh-token store, session service and expiry reaper onto the app."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import cast

from flask import Flask, current_app

from sessionguard.core.config import STORE_BACKENDS
from sessionguard.infra.jwt.flask_jwt_token_provider import JWTAccessTokenMinter
from sessionguard.services._shared.ports import (
    InMemoryRefreshTokenStore,
    LoggingSessionEventSink,
    RefreshTokenStore,
)
from sessionguard.services.sessions.dto import SessionConfig
from sessionguard.services.sessions.reaper import ExpiryReaper
from sessionguard.services.sessions.service import SessionService

log = logging.getLogger(__name__)

EXTENSION_KEY = "sessionguard"


def session_config(app: Flask) -> SessionConfig:
    """Build a :class:`SessionConfig` from the Flask config mapping."""
    cfg = app.config
    timeout = cfg.get("STORE_TIMEOUT_SECONDS")
    return SessionConfig(
        refresh_lifetime=timedelta(days=int(cfg.get("REFRESH_TOKEN_LIFETIME_DAYS", 7))),
        access_lifetime=timedelta(minutes=int(cfg.get("ACCESS_TOKEN_EXPIRES_MINUTES", 60))),
        retention=timedelta(days=int(cfg.get("REFRESH_TOKEN_RETENTION_DAYS", 30))),
        revoke_batch_size=int(cfg.get("REVOKE_BATCH_SIZE", 200)),
        reap_batch_size=int(cfg.get("REAPER_BATCH_SIZE", 500)),
        timeout_seconds=float(timeout) if timeout else None,
    )


def build_store(app: Flask) -> RefreshTokenStore:
    """
    Select the refresh-token store adapter from ``SESSION_STORE_BACKEND``.

    :raises RuntimeError: For an unknown backend name.
    """
    backend = str(app.config.get("SESSION_STORE_BACKEND", "sqlalchemy")).strip().lower()
    if backend == "sqlalchemy":
        from sessionguard.infra.sqlalchemy.sqlalchemy_refresh_token_store import (
            SQLAlchemyRefreshTokenStore,
        )

        return SQLAlchemyRefreshTokenStore()
    if backend == "redis":
        from sessionguard.core.extensions import get_redis
        from sessionguard.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore

        return RedisRefreshTokenStore(r=get_redis())
    if backend == "memory":
        return InMemoryRefreshTokenStore()
    raise RuntimeError(
        f"Unknown SESSION_STORE_BACKEND {backend!r}; expected one of {sorted(STORE_BACKENDS)}"
    )


def init_app(app: Flask) -> None:
    """
    Attach the session service (and reaper) to ``app.extensions``.

    The reaper thread is only started when ``REAPER_ENABLED`` is true.
    """
    cfg = session_config(app)
    store = build_store(app)
    events = LoggingSessionEventSink()
    service = SessionService(
        store=store, minter=JWTAccessTokenMinter(), events=events, config=cfg
    )
    reaper = ExpiryReaper(
        store=store,
        retention=cfg.retention,
        interval_seconds=float(app.config.get("REAPER_INTERVAL_SECONDS", 3600)),
        batch_size=cfg.reap_batch_size,
        events=events,
        context_factory=app.app_context,
    )
    app.extensions[EXTENSION_KEY] = {"service": service, "reaper": reaper, "store": store}

    if app.config.get("REAPER_ENABLED"):
        reaper.start()
        log.info("Expiry reaper scheduled every %ss", reaper.interval_seconds)


def get_session_service() -> SessionService:
    """Return the session service bound to the current application."""
    return cast(SessionService, current_app.extensions[EXTENSION_KEY]["service"])


def get_reaper() -> ExpiryReaper:
    """Return the expiry reaper bound to the current application."""
    return cast(ExpiryReaper, current_app.extensions[EXTENSION_KEY]["reaper"])
