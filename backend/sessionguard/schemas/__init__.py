"""Convenience exports for application schemas."""

from __future__ import annotations

from .sessions import (
    LogoutResponseSchema,
    RefreshSchema,
    RevokeUserTokensResponseSchema,
    RevokeUserTokensSchema,
    SessionSchema,
    TokenPairSchema,
)

__all__ = [
    "LogoutResponseSchema",
    "RefreshSchema",
    "RevokeUserTokensResponseSchema",
    "RevokeUserTokensSchema",
    "SessionSchema",
    "TokenPairSchema",
]
