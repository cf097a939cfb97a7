"""CORS for browser clients exchanging refresh tokens."""

from __future__ import annotations

from flask import Flask
from flask_cors import CORS

ALLOWED_METHODS = ["GET", "POST", "OPTIONS"]
ALLOWED_HEADERS = ["Authorization", "Content-Type", "X-Request-ID"]


def _origins(raw: str | None) -> list[str] | None:
    """Parse ``CORS_ORIGINS``; ``None`` means any origin."""
    origins = [o.strip() for o in (raw or "").split(",") if o.strip()]
    if not origins or origins == ["*"]:
        return None
    return origins


def init_app(app: Flask) -> None:
    """
    Enable CORS on the versioned API only.

    Credentials are allowed solely for an explicit origin list; a wildcard
    never carries cookies or ``Authorization`` across origins.
    """
    origins = _origins(app.config.get("CORS_ORIGINS"))
    api_base = app.config.get("API_BASE_PREFIX", "/api").rstrip("/")

    CORS(
        app,
        resources={f"{api_base}/*": {"origins": origins or "*"}},
        methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
        expose_headers=["X-Request-ID"],
        supports_credentials=origins is not None,
        max_age=app.config.get("CORS_MAX_AGE", 600),
    )
