"""RFC 7807 problem responses for the session API."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any, cast

from flask import Flask, Response, has_request_context, jsonify, request
from marshmallow import ValidationError as MarshmallowValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from werkzeug.exceptions import HTTPException

from sessionguard.core.logger import ensure_request_id
from sessionguard.services._shared.errors import ServiceError

log = logging.getLogger(__name__)

PROBLEM_MIMETYPE = "application/problem+json"


def _status_code_name(status: int) -> str:
    """``422`` -> ``"unprocessable_entity"``; unknown codes map to ``"error"``."""
    try:
        return HTTPStatus(status).name.lower()
    except ValueError:
        return "error"


def _as_problem(
    *,
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build an RFC 7807 Problem Details dict.

    :param status: HTTP status code.
    :param code: Stable machine-consumable error code.
    :param message: Client-safe summary. Never carries token values.
    :param details: Optional safe, structured details.
    :rtype: dict
    """
    problem: dict[str, Any] = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": status,
        "detail": message,
        "instance": request.path if has_request_context() else None,
        "code": code,
        "request_id": ensure_request_id(),
    }
    if details:
        problem["details"] = details
    return problem


def _problem_response(problem: dict[str, Any]) -> tuple[Response, int]:
    resp = jsonify(problem)
    resp.mimetype = PROBLEM_MIMETYPE
    # problem bodies on the refresh endpoint must not be cached either
    resp.headers["Cache-Control"] = "no-store"
    return resp, int(problem["status"])


class APIError(Exception):
    """
    JSON-serializable API error.

    Parameters
    ----------
    message : str
        Human-readable description presented to clients.
    status_code : int, optional
        HTTP status code to return. Defaults to ``400``.
    code : str, optional
        Machine-readable identifier. Defaults to ``"bad_request"``.
    details : dict[str, Any] | None, optional
        Structured payload included in the response body.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "bad_request",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code)
        self.code = code
        self.details = details or {}

    def to_problem(self) -> dict[str, Any]:
        return _as_problem(
            status=self.status_code,
            code=self.code,
            message=self.message,
            details=self.details or None,
        )


class NotFound(APIError):
    """404 when a token or replacement does not exist."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, status_code=HTTPStatus.NOT_FOUND, code="not_found")


class Conflict(APIError):
    """409 for rotation conflicts and collisions."""

    def __init__(self, message: str = "Conflict") -> None:
        super().__init__(message, status_code=HTTPStatus.CONFLICT, code="conflict")


class Unauthorized(APIError):
    """401 for every rejected refresh token."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, status_code=HTTPStatus.UNAUTHORIZED, code="unauthorized")


class Forbidden(APIError):
    """403 when the caller lacks the admin role."""

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message, status_code=HTTPStatus.FORBIDDEN, code="forbidden")


class ServiceUnavailable(APIError):
    """503 when the token store is unreachable or the call ran out of time."""

    def __init__(self, message: str = "Service temporarily unavailable") -> None:
        super().__init__(
            message, status_code=HTTPStatus.SERVICE_UNAVAILABLE, code="service_unavailable"
        )


# Database failures escaping the store adapters: (status, code, client message)
_DATABASE_ERRORS: dict[type[Exception], tuple[int, str, str]] = {
    IntegrityError: (HTTPStatus.CONFLICT, "conflict", "Resource conflict"),
    OperationalError: (
        HTTPStatus.SERVICE_UNAVAILABLE,
        "service_unavailable",
        "Service temporarily unavailable",
    ),
}


def init_app(app: Flask) -> None:
    """
    Attach problem+json error handlers to the Flask app.

    Notes
    -----
    - Service errors go through :meth:`BaseService.translate_exceptions`, so
      every refresh rejection renders the same 401 body.
    - 5xx are logged with ``exc_info``; 4xx as warnings without traceback.
    """

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        problem = err.to_problem()
        level = log.error if err.status_code >= 500 else log.warning
        level(
            "APIError: code=%s status=%s msg=%s request_id=%s",
            err.code,
            err.status_code,
            err.message,
            problem["request_id"],
        )
        return _problem_response(problem)

    @app.errorhandler(ServiceError)
    def handle_service_error(err: ServiceError):
        from sessionguard.services._shared.base import BaseService

        return handle_api_error(cast(APIError, BaseService().translate_exceptions(err)))

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        message = (err.description or HTTPStatus(status).phrase).strip()
        if status == HTTPStatus.NOT_FOUND:
            message = f"Route '{request.path}' not found"
        problem = _as_problem(status=status, code=_status_code_name(status), message=message)
        level = log.error if status >= 500 else log.warning
        level("HTTPException: status=%s request_id=%s", status, problem["request_id"])
        return _problem_response(problem)

    @app.errorhandler(MarshmallowValidationError)
    def handle_validation_error(err: MarshmallowValidationError):
        problem = _as_problem(
            status=HTTPStatus.UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Validation failed",
            details={"errors": err.normalized_messages()},
        )
        log.warning("ValidationError: request_id=%s", problem["request_id"])
        return _problem_response(problem)

    def handle_database_error(err: Exception):
        status, code, message = next(
            mapping for kind, mapping in _DATABASE_ERRORS.items() if isinstance(err, kind)
        )
        problem = _as_problem(status=status, code=code, message=message)
        log.error(
            "%s: request_id=%s", type(err).__name__, problem["request_id"], exc_info=True
        )
        return _problem_response(problem)

    for kind in _DATABASE_ERRORS:
        app.register_error_handler(kind, handle_database_error)

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        problem = _as_problem(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            code="internal_server_error",
            message="Unexpected error",
        )
        log.error("Unhandled exception: request_id=%s", problem["request_id"], exc_info=True)
        return _problem_response(problem)
