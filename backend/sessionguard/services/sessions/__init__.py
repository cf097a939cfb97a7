"""Refresh-token session services and their DTOs."""

from __future__ import annotations

from .dto import (
    LogoutIn,
    LogoutOut,
    RefreshIn,
    RevokeUserTokensIn,
    RevokeUserTokensOut,
    SessionConfig,
    SessionView,
    StartSessionIn,
    TokenPairOut,
)
from .issuer import TokenIssuer, generate_token
from .reaper import ExpiryReaper
from .revocation import RevocationService
from .rotation import Rotation, RotationValidator, TokenState, classify
from .service import SessionService

__all__ = [
    "ExpiryReaper",
    "RevocationService",
    "Rotation",
    "RotationValidator",
    "SessionService",
    "TokenIssuer",
    "TokenState",
    "classify",
    "generate_token",
    # DTOs
    "LogoutIn",
    "LogoutOut",
    "RefreshIn",
    "RevokeUserTokensIn",
    "RevokeUserTokensOut",
    "SessionConfig",
    "SessionView",
    "StartSessionIn",
    "TokenPairOut",
]
