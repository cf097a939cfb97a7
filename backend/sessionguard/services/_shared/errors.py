"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and should never import or depend
on Flask or HTTP. They serve as stable contracts between the token stores,
the session services and the API layer.

The translation to HTTP responses (RFC 7807) is handled by
``sessionguard/core/errors.py`` via ``BaseService.translate_exceptions()``.
"""

from __future__ import annotations

from dataclasses import dataclass

# Single external message for every rejected refresh; the reason stays internal.
AUTH_FAILURE_MESSAGE = "Invalid or expired refresh token"


# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - They can be safely raised from stores or domain logic.
    - The API layer or BaseService will later translate them to APIError.
    """

    pass


# --------------------------------------------------------------------------- #
# Specific domain-level errors
# --------------------------------------------------------------------------- #


class ValidationError(ServiceError):
    """Raised for malformed input before any storage access (e.g. empty token)."""


class AuthenticationFailure(ServiceError):
    """
    Uniform rejection of a presented refresh token.

    :param reason: Internal classification (``unknown``, ``expired``,
        ``revoked``). Used for audit logs only; ``str(exc)`` never includes it.
    :type reason: str
    """

    def __init__(self, reason: str = "unknown") -> None:
        super().__init__(AUTH_FAILURE_MESSAGE)
        self.reason = reason


class CompromiseDetected(AuthenticationFailure):
    """
    A revoked token was presented again.

    Surfaced to callers exactly like :class:`AuthenticationFailure`; only the
    audit trail tells them apart.

    :param session_root: Root token of the revoked session (never logged raw).
    :param revoked_count: Number of records revoked by the chain sweep.
    """

    def __init__(self, *, session_root: str, revoked_count: int) -> None:
        super().__init__(reason="reuse_detected")
        self.session_root = session_root
        self.revoked_count = revoked_count


class StorageUnavailable(ServiceError):
    """Transient failure of the backing token store."""


class OperationCancelled(ServiceError):
    """The caller's deadline elapsed before the operation could commit."""

    def __init__(self, message: str = "Operation cancelled: deadline exceeded") -> None:
        super().__init__(message)


class RotationConflictError(ServiceError):
    """
    A replacement link was requested on a record that is already revoked.

    This is a concurrency violation: another worker won the rotation.
    """


class TokenCollisionError(ServiceError):
    """A freshly generated token value already exists in the store."""


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found.

    :param entity: Entity name (e.g., "RefreshToken").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    entity: str
    key: str | int

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.entity} not found: {self.key}"
