"""Version 1 of the session API."""

from __future__ import annotations

from flask import Blueprint

from .admin import bp as admin_bp
from .auth import bp as auth_bp
from .health import bp as health_bp

API_VERSION = "v1"

# (blueprint, prefix relative to /api/v1)
REGISTRY: tuple[tuple[Blueprint, str], ...] = (
    (auth_bp, "/auth"),
    (admin_bp, "/admin"),
    (health_bp, ""),
)

__all__ = ["API_VERSION", "REGISTRY"]
