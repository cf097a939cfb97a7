# sessionguard/services/_shared/base.py
from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from sessionguard.core import errors as api_errors
from sessionguard.services._shared.deadline import Deadline
from sessionguard.services._shared.errors import (
    AuthenticationFailure,
    NotFoundError,
    OperationCancelled,
    ServiceError,
    StorageUnavailable,
    ValidationError,
)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Provide a single injectable clock (``now_utc``) so time travel in tests
      and production use the same code path.
    * Build deadlines for store calls from the configured timeout.
    * Centralize error translation to API errors.

    Notes
    -----
    - Services never touch the ORM session; they talk to ports.
    """

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        """
        Initialize the base service.

        :param clock: Callable returning an aware UTC ``datetime``.
        :type clock: Callable[[], datetime] | None
        :param timeout_seconds: Default per-call timeout when the caller gives no deadline.
        :type timeout_seconds: float | None
        """
        self._clock: Clock = clock or utc_now
        self.timeout_seconds = timeout_seconds

    def now_utc(self) -> datetime:
        return self._clock()

    def deadline(self, deadline: Deadline | None = None) -> Deadline:
        """
        Return ``deadline`` or a fresh one derived from ``timeout_seconds``.

        :rtype: Deadline
        """
        if deadline is not None:
            return deadline
        return Deadline.after(self.timeout_seconds)

    # -------------------------- Error handling ------------------------------

    def translate_exceptions(self, exc: Exception) -> Exception:
        """
        Map domain/service-level errors to API-level (HTTP) errors.

        :param exc: Exception raised within the service.
        :type exc: Exception
        :returns: Translated exception ready to be re-raised.
        :rtype: Exception
        """
        if isinstance(exc, AuthenticationFailure):
            # → 401, single opaque message for every rejection reason
            return api_errors.Unauthorized(str(exc))

        if isinstance(exc, ValidationError):
            # → 422 Unprocessable Entity
            return api_errors.APIError(
                message=str(exc), status_code=422, code="validation_error"
            )

        if isinstance(exc, NotFoundError):
            # → 404 Not Found
            return api_errors.NotFound(str(exc))

        if isinstance(exc, StorageUnavailable | OperationCancelled):
            # → 503, transient; clients may retry
            return api_errors.ServiceUnavailable()

        # Any other ServiceError subclass → 409 Conflict (concurrency violations)
        if isinstance(exc, ServiceError):
            return api_errors.Conflict(str(exc))

        # Fallback: return untouched (will bubble up to Flask handler)
        return exc
