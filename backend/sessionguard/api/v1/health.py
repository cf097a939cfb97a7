"""Liveness of the database, the refresh token store and the expiry reaper."""

from __future__ import annotations

import redis  # type: ignore[import-untyped]
from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from sessionguard.api.deps import json_response, timing
from sessionguard.core.extensions import db
from sessionguard.core.sessions import get_reaper, get_session_service
from sessionguard.services._shared.deadline import Deadline
from sessionguard.services._shared.errors import ServiceError

bp = Blueprint("health", __name__)

PROBE_TOKEN = "__health_probe__"
PROBE_TIMEOUT_SECONDS = 1.0


def _database_status() -> str:
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:  # pragma: no cover - depends on DB backend
        current_app.logger.exception("healthcheck.db_error")
        return "fail"
    return "ok"


def _store_status() -> str:
    """Round-trip a lookup through the configured store adapter."""
    try:
        get_session_service().store.get_by_token(
            PROBE_TOKEN, deadline=Deadline.after(PROBE_TIMEOUT_SECONDS)
        )
    except (ServiceError, SQLAlchemyError, redis.RedisError):
        current_app.logger.warning("healthcheck.store_error", exc_info=True)
        return "fail"
    return "ok"


@bp.get("/health")
@timing
def healthcheck():
    """Report component status; ``503`` when the database or store is down."""

    checks = {"db": _database_status(), "store_status": _store_status()}
    healthy = all(v == "ok" for v in checks.values())
    payload = {
        "status": "ok" if healthy else "degraded",
        **checks,
        "store": current_app.config.get("SESSION_STORE_BACKEND", "sqlalchemy"),
        "reaper": get_reaper().status(),
        "version": current_app.config.get("APP_VERSION", "dev"),
    }
    return json_response(payload, status=200 if healthy else 503)
