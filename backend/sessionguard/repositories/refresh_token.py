"""Refresh token repository: lookups and set-based conditional updates."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from sqlalchemy import delete, select, update

from sessionguard.models.refresh_token import RefreshToken
from sessionguard.repositories.base import BaseRepository


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    """Persistence-only repository for :class:`RefreshToken`.

    Every revocation is a single ``UPDATE ... WHERE revoked_at IS NULL`` so
    the database arbitrates races: the returned row count tells the caller
    whether it won (check-and-set).
    """

    model = RefreshToken
    key = "token"

    # ---------------------------- Lookup helpers ----------------------------

    def get_by_token(self, token: str) -> RefreshToken | None:
        """Fetch a row by its token value.

        :param token: Opaque token value.
        :type token: str
        :returns: Row or ``None``.
        :rtype: RefreshToken | None
        """
        return self.get(token)

    def exists_token(self, token: str) -> bool:
        """Return ``True`` when a row with ``token`` exists."""
        stmt = select(RefreshToken.token).where(RefreshToken.token == token)
        return self.session.execute(stmt).first() is not None

    def list_active_for_user(self, user_id: str, now: datetime) -> list[RefreshToken]:
        """Return non-revoked, unexpired rows for ``user_id`` (oldest first).

        :param user_id: Owning identity.
        :type user_id: str
        :param now: Reference time for expiry.
        :type now: datetime
        :rtype: list[RefreshToken]
        """
        stmt = (
            select(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .order_by(RefreshToken.created_at.asc(), RefreshToken.token.asc())
        )
        return self.scalars(stmt)

    def unrevoked_tokens_for_user(self, user_id: str, *, limit: int) -> list[str]:
        """Return up to ``limit`` token values of ``user_id`` that are not revoked yet."""
        stmt = (
            select(RefreshToken.token)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
            .order_by(RefreshToken.token.asc())
            .limit(max(1, limit))
        )
        return self.scalars(stmt)

    def expired_tokens_before(self, cutoff: datetime, *, limit: int) -> list[str]:
        """Return up to ``limit`` token values whose expiry is older than ``cutoff``."""
        stmt = (
            select(RefreshToken.token)
            .where(RefreshToken.expires_at < cutoff)
            .order_by(RefreshToken.expires_at.asc())
            .limit(max(1, limit))
        )
        return self.scalars(stmt)

    # ---------------------------- Conditional writes ----------------------------

    def revoke_if_unrevoked(
        self,
        token: str,
        *,
        now: datetime,
        by_ip: str | None,
        reason: str,
        replacement: str | None = None,
        require_unexpired: bool = False,
    ) -> int:
        """Revoke ``token`` only if it is not revoked yet.

        :param require_unexpired: Also require ``expires_at > now`` (rotation).
        :returns: ``1`` when this call won the transition, ``0`` otherwise.
        :rtype: int
        """
        conditions = [RefreshToken.token == token, RefreshToken.revoked_at.is_(None)]
        if require_unexpired:
            conditions.append(RefreshToken.expires_at > now)
        stmt = (
            update(RefreshToken)
            .where(*conditions)
            .values(
                revoked_at=now,
                revoked_by_ip=by_ip,
                replaced_by_token=replacement,
                revocation_reason=reason,
            )
            .execution_options(synchronize_session=False)
        )
        return self.execute_count(stmt)

    def revoke_tokens(
        self, tokens: Sequence[str], *, now: datetime, by_ip: str | None, reason: str
    ) -> int:
        """Revoke every still-unrevoked row among ``tokens``."""
        if not tokens:
            return 0
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.token.in_(list(tokens)), RefreshToken.revoked_at.is_(None))
            .values(revoked_at=now, revoked_by_ip=by_ip, revocation_reason=reason)
            .execution_options(synchronize_session=False)
        )
        return self.execute_count(stmt)

    def revoke_session(
        self, session_root: str, *, now: datetime, by_ip: str | None, reason: str
    ) -> int:
        """Revoke every unrevoked row of one rotation chain in a single indexed update."""
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.session_root == session_root,
                RefreshToken.revoked_at.is_(None),
            )
            .values(revoked_at=now, revoked_by_ip=by_ip, revocation_reason=reason)
            .execution_options(synchronize_session=False)
        )
        return self.execute_count(stmt)

    def delete_tokens(self, tokens: Sequence[str]) -> int:
        """Physically delete the rows listed in ``tokens``."""
        if not tokens:
            return 0
        stmt = (
            delete(RefreshToken)
            .where(RefreshToken.token.in_(list(tokens)))
            .execution_options(synchronize_session=False)
        )
        return self.execute_count(stmt)
