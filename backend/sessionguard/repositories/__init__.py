"""Repository package exposing persistence helpers for the token store."""

from .base import BaseRepository
from .refresh_token import RefreshTokenRepository

__all__ = [
    "BaseRepository",
    "RefreshTokenRepository",
]
