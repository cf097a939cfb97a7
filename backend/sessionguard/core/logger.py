"""JSON logging with request correlation and a separately tunable audit channel."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from flask import Flask, Response, g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_HEADERS = (REQUEST_ID_HEADER, "X-Correlation-ID")
AUDIT_LOGGER = "sessionguard.audit"

# ``extra=`` fields promoted into the JSON payload. Token values never appear
# here, only their fingerprints.
EXTRA_KEYS = (
    "endpoint",
    "elapsed_ms",
    "event",
    "user_id",
    "session_id",
    "token_fp",
    "client_ip",
    "count",
    "reason",
)


def _level(value: str | int) -> int:
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(value.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level {value!r}")
    return resolved


class JSONFormatter(logging.Formatter):
    """One JSON object per line, timestamped from the record itself."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, UTC).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        payload.update(
            {key: getattr(record, key) for key in EXTRA_KEYS if hasattr(record, key)}
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class RequestIdFilter(logging.Filter):
    """Stamp ``request_id`` on records emitted inside a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = ensure_request_id() if has_request_context() else None
        return True


def ensure_request_id() -> str:
    """
    Return the correlation id of the current request.

    Reuses an inbound ``X-Request-ID``/``X-Correlation-ID`` header when present
    and caches the value on :data:`flask.g`. Outside a request a fresh UUID4 is
    returned.
    """
    if not has_request_context():
        return str(uuid4())
    cached = g.get("request_id")
    if cached:
        return cached
    inbound = next(
        (request.headers[h] for h in CORRELATION_HEADERS if request.headers.get(h)), None
    )
    g.request_id = inbound or str(uuid4())
    return g.request_id


def configure_logging(level: str | int = "INFO", *, audit_level: str | int | None = None) -> None:
    """
    Route every logger through one JSON handler on stdout.

    :param level: Root verbosity.
    :param audit_level: Verbosity of the ``sessionguard.audit`` channel; when
        ``None`` it follows the root level.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_level(level))

    audit = logging.getLogger(AUDIT_LOGGER)
    audit.setLevel(logging.NOTSET if audit_level is None else _level(audit_level))


def init_app(app: Flask) -> None:
    """Echo the correlation id on every response and tag app-logger records."""

    app.logger.addFilter(RequestIdFilter())

    @app.before_request
    def _seed_request_id() -> None:
        # g outlives the request when an app context was already pushed
        g.pop("request_id", None)
        ensure_request_id()

    @app.after_request
    def _echo_request_id(response: Response) -> Response:
        response.headers.setdefault(REQUEST_ID_HEADER, ensure_request_id())
        return response


__all__ = ["AUDIT_LOGGER", "JSONFormatter", "configure_logging", "ensure_request_id", "init_app"]
