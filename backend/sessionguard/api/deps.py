"""Request helpers and decorators shared by the session blueprints."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from flask import Response, current_app, jsonify, make_response, request
from flask_jwt_extended import get_jwt, verify_jwt_in_request

from sessionguard.core.errors import Forbidden

F = TypeVar("F", bound=Callable[..., Any])


def client_ip() -> str | None:
    """Caller address recorded on tokens (rewritten by ``ProxyFix`` when enabled)."""
    return request.remote_addr


def _roles() -> set[str]:
    roles = (get_jwt() or {}).get("roles", [])
    return {roles} if isinstance(roles, str) else set(roles)


def require_auth(func: F) -> F:
    """Reject the request unless it carries a valid access token."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        verify_jwt_in_request()
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def require_role(required: str) -> Callable[[F], F]:
    """
    Require a valid access token whose ``roles`` claim contains ``required``.

    A missing token yields flask-jwt-extended's 401; a token without the role
    raises :class:`Forbidden` (403).
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            verify_jwt_in_request()
            if required not in _roles():
                raise Forbidden("Insufficient role")
            return func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator


def no_store(func: F) -> F:
    """Forbid caching of responses that carry token material."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        response = make_response(func(*args, **kwargs))
        response.headers["Cache-Control"] = "no-store"
        response.headers["Pragma"] = "no-cache"
        return response

    return wrapper  # type: ignore[return-value]


def json_response(payload: Any, *, status: int = 200) -> Response:
    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Log handler latency at DEBUG as ``elapsed_ms``."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            current_app.logger.debug(
                "request.elapsed",
                extra={
                    "endpoint": request.endpoint,
                    "elapsed_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )

    return wrapper  # type: ignore[return-value]
