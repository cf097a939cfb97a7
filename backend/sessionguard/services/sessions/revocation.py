# sessionguard/services/sessions/revocation.py
from __future__ import annotations

from datetime import datetime

from sessionguard.services._shared.deadline import Deadline
from sessionguard.services._shared.ports import (
    LoggingSessionEventSink,
    RefreshTokenStore,
    RevocationReason,
    SessionEvent,
    SessionEventSink,
    token_fingerprint,
)


class RevocationService:
    """
    Sole writer of revocation state.

    Revoking an already-revoked record is a silent no-op: concurrent logout and
    rotation are expected and never surface as failures. The single exception
    is linking a replacement onto a revoked record, which the store rejects
    with :class:`~sessionguard.services._shared.errors.RotationConflictError`.
    """

    def __init__(
        self,
        *,
        store: RefreshTokenStore,
        events: SessionEventSink | None = None,
        batch_size: int = 200,
    ) -> None:
        self.store = store
        self.events = events or LoggingSessionEventSink()
        self.batch_size = max(1, batch_size)

    def revoke(
        self,
        token: str,
        *,
        now: datetime,
        by_ip: str | None = None,
        replacement: str | None = None,
        reason: str = RevocationReason.REVOKED.value,
        deadline: Deadline | None = None,
    ) -> bool:
        """
        Revoke one record (logout of a single device, or part of a rotation).

        :returns: ``True`` if this call revoked it, ``False`` for a no-op.
        :rtype: bool
        """
        changed = self.store.mark_revoked(
            token,
            now=now,
            by_ip=by_ip,
            replacement=replacement,
            reason=reason,
            deadline=deadline,
        )
        if changed:
            self.events.emit(
                SessionEvent(
                    name="revoked",
                    token_fp=token_fingerprint(token),
                    client_ip=by_ip,
                    reason=reason,
                )
            )
        return changed

    def revoke_all_for_user(
        self,
        user_id: str,
        *,
        now: datetime,
        by_ip: str | None = None,
        reason: str = RevocationReason.LOGOUT.value,
        deadline: Deadline | None = None,
    ) -> int:
        """
        Revoke every non-revoked record of ``user_id``, batch by batch.

        :returns: Number of records revoked by this call.
        :rtype: int
        """
        count = self.store.revoke_all_for_user(
            user_id,
            now=now,
            by_ip=by_ip,
            reason=reason,
            batch_size=self.batch_size,
            deadline=deadline,
        )
        self.events.emit(
            SessionEvent(
                name="revoked_all",
                user_id=user_id,
                client_ip=by_ip,
                count=count,
                reason=reason,
            )
        )
        return count

    def revoke_session(
        self,
        session_root: str,
        *,
        now: datetime,
        by_ip: str | None = None,
        reason: str = RevocationReason.REUSE_DETECTED.value,
        deadline: Deadline | None = None,
    ) -> int:
        """Revoke every record of one rotation chain; returns the number revoked."""
        return self.store.revoke_session(
            session_root, now=now, by_ip=by_ip, reason=reason, deadline=deadline
        )
