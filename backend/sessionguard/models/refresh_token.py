"""Refresh token model backing rotating long-lived sessions."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from sessionguard.core.extensions import db

from .base import ReprMixin, UTCDateTime

TOKEN_MAX_LENGTH = 256
IP_MAX_LENGTH = 45  # IPv6 textual max
USER_ID_MAX_LENGTH = 450


class RefreshToken(ReprMixin, db.Model):
    """
    One issued refresh token, keyed by its opaque value.

    Rows are created on sign-in or rotation, mutated only by revocation, and
    deleted only by the expiry reaper once the retention window has elapsed.

    Fields
    ------
    token : str
        Opaque credential and primary key.
    user_id : str
        Owning identity (secondary index for revoke-all and listings).
    session_root : str
        Token of the first record of the rotation chain; copied to every
        descendant so a whole session is revoked by one indexed update.
    parent_token : str | None
        Predecessor in the chain.
    created_at, expires_at : datetime
        Issuance time and absolute expiry (never extended).
    created_by_ip, revoked_by_ip : str | None
        Client addresses for audit.
    revoked_at : datetime | None
        Set once on revocation.
    replaced_by_token : str | None
        Successor token when revoked by rotation.
    revocation_reason : str | None
        Audit label (``rotated``, ``logout``, ``reuse_detected``, ...).
    """

    __tablename__ = "refresh_tokens"
    __repr_attrs__ = ("user_id", "expires_at", "revoked_at")

    token: Mapped[str] = mapped_column(String(TOKEN_MAX_LENGTH), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(USER_ID_MAX_LENGTH), nullable=False)
    session_root: Mapped[str] = mapped_column(String(TOKEN_MAX_LENGTH), nullable=False)
    parent_token: Mapped[str | None] = mapped_column(String(TOKEN_MAX_LENGTH), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    created_by_ip: Mapped[str | None] = mapped_column(String(IP_MAX_LENGTH), nullable=True)

    revoked_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    revoked_by_ip: Mapped[str | None] = mapped_column(String(IP_MAX_LENGTH), nullable=True)
    replaced_by_token: Mapped[str | None] = mapped_column(
        String(TOKEN_MAX_LENGTH), nullable=True
    )
    revocation_reason: Mapped[str | None] = mapped_column(String(32), nullable=True)

    __table_args__ = (
        Index("ix_refresh_tokens_user_id", "user_id"),
        Index("ix_refresh_tokens_session_root", "session_root"),
        Index("ix_refresh_tokens_expires_at", "expires_at"),
        CheckConstraint("expires_at > created_at", name="expiry_after_creation"),
        CheckConstraint(
            "replaced_by_token IS NULL OR revoked_at IS NOT NULL",
            name="replacement_requires_revocation",
        ),
    )
