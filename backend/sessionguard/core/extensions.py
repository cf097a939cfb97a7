"""Flask extension singletons shared by the session store adapters."""

from __future__ import annotations

import logging

import redis  # type: ignore[import-untyped]
from flask import Flask
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import MetaData

log = logging.getLogger(__name__)

# Constraint names must stay stable across migrations (see versions/)
metadata = MetaData(
    naming_convention={
        "ix": "ix_%(table_name)s_%(column_0_name)s",
        "uq": "uq_%(table_name)s_%(column_0_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
migrate = Migrate(render_as_batch=True)
jwt = JWTManager()
redis_client: redis.Redis | None = None


def _connect_redis(app: Flask) -> redis.Redis:
    """
    Open the client used by the Redis refresh token store.

    Socket timeouts follow ``STORE_TIMEOUT_SECONDS`` so a stalled server
    surfaces as a storage error instead of blocking a refresh forever.

    :raises RuntimeError: When ``REDIS_URL`` is missing or unreachable.
    """
    url = app.config.get("REDIS_URL")
    if not url:
        raise RuntimeError("SESSION_STORE_BACKEND=redis requires REDIS_URL")
    timeout = app.config.get("STORE_TIMEOUT_SECONDS") or None
    client = redis.Redis.from_url(
        url,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
        health_check_interval=int(app.config.get("REDIS_HEALTH_CHECK_INTERVAL", 30)),
    )
    try:
        client.ping()
    except RedisError as exc:
        raise RuntimeError(f"Failed to connect to Redis at {url!r}") from exc
    log.info("Redis refresh token store connected")
    return client


def init_app(app: Flask) -> None:
    """
    Bind the database, migrations and JWT extensions to ``app``.

    Redis is only contacted when it backs the refresh token store.
    """
    global redis_client

    db.init_app(app)
    # metadata must hold refresh_tokens before Alembic inspects it
    from sessionguard import models as _models  # noqa: F401

    migrate.init_app(app, db)
    jwt.init_app(app)

    backend = str(app.config.get("SESSION_STORE_BACKEND", "sqlalchemy")).strip().lower()
    if backend == "redis":
        redis_client = _connect_redis(app)
        app.extensions["redis_client"] = redis_client


def get_redis() -> redis.Redis:
    """Return the Redis client opened by :func:`init_app`."""
    if redis_client is None:
        raise RuntimeError("Redis client is not initialized. Call init_app() first.")
    return redis_client
