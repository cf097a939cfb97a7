# sessionguard/services/sessions/rotation.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum, auto
from typing import NoReturn

from sessionguard.services._shared.deadline import Deadline, ensure_deadline
from sessionguard.services._shared.errors import (
    AuthenticationFailure,
    CompromiseDetected,
    TokenCollisionError,
    ValidationError,
)
from sessionguard.services._shared.ports import (
    LoggingSessionEventSink,
    RefreshTokenRecord,
    RefreshTokenStore,
    RevocationReason,
    RotationOutcome,
    SessionEvent,
    SessionEventSink,
    token_fingerprint,
)
from sessionguard.services.sessions.issuer import TokenIssuer
from sessionguard.services.sessions.revocation import RevocationService

log = logging.getLogger(__name__)

MAX_ROTATION_ATTEMPTS = 5


class TokenState(Enum):
    """State of a presented token at validation time."""

    UNKNOWN = auto()
    EXPIRED = auto()
    REVOKED = auto()
    ACTIVE = auto()


def classify(record: RefreshTokenRecord | None, now: datetime) -> TokenState:
    """
    Map a stored record to its validation state.

    Revocation wins over expiry: an expired record that was also revoked is
    still a reuse signal.
    """
    if record is None:
        return TokenState.UNKNOWN
    if record.is_revoked:
        return TokenState.REVOKED
    if record.is_expired(now):
        return TokenState.EXPIRED
    return TokenState.ACTIVE


@dataclass(frozen=True, slots=True)
class Rotation:
    """
    Result of a successful rotation.

    :ivar presented: Snapshot of the presented record as revoked by the rotation.
    :ivar successor: The newly issued, active record.
    """

    presented: RefreshTokenRecord
    successor: RefreshTokenRecord


class RotationValidator:
    """
    Refresh-token state machine: reject, accept-and-rotate, or flag compromise.

    ``ACTIVE`` tokens are rotated through the store's atomic check-and-set. A
    caller that loses the race re-runs validation from scratch and therefore
    lands in the ``REVOKED`` branch, which revokes the whole session.
    """

    def __init__(
        self,
        *,
        store: RefreshTokenStore,
        issuer: TokenIssuer,
        revocation: RevocationService,
        events: SessionEventSink | None = None,
        max_attempts: int = MAX_ROTATION_ATTEMPTS,
    ) -> None:
        self.store = store
        self.issuer = issuer
        self.revocation = revocation
        self.events = events or LoggingSessionEventSink()
        self.max_attempts = max(1, max_attempts)

    def rotate(
        self,
        token: str,
        *,
        client_ip: str | None,
        now: datetime,
        lifetime: timedelta,
        deadline: Deadline | None = None,
    ) -> Rotation:
        """
        Validate ``token`` and, if active, rotate it.

        :param token: Presented refresh token.
        :param client_ip: Caller address, recorded on both records.
        :param now: Reference time for expiry checks and timestamps.
        :param lifetime: Lifetime of the successor.
        :returns: The revoked presented record and its successor.
        :raises ValidationError: If ``token`` is empty.
        :raises AuthenticationFailure: Unknown or expired token.
        :raises CompromiseDetected: Revoked token presented again.
        """
        if not token or not token.strip():
            raise ValidationError("Refresh token is required.")
        dl = ensure_deadline(deadline)
        lost: RotationOutcome | None = None

        for _ in range(self.max_attempts):
            record = self.store.get_by_token(token, deadline=dl)
            if record is None:
                self._reject(token, client_ip, reason="unknown")

            state = classify(record, now)
            if state is TokenState.EXPIRED:
                self._reject(token, client_ip, reason="expired", user_id=record.user_id)
            if state is TokenState.REVOKED:
                self._compromise(record, client_ip=client_ip, now=now, deadline=dl)

            successor = self.issuer.build(
                user_id=record.user_id,
                client_ip=client_ip,
                lifetime=lifetime,
                now=now,
                parent=record,
            )
            try:
                outcome = self.store.rotate(
                    presented=token,
                    successor=successor,
                    now=now,
                    by_ip=client_ip,
                    deadline=dl,
                )
            except TokenCollisionError:
                log.warning("Refresh token collision on rotation; regenerating")
                lost = None
                continue

            if outcome is RotationOutcome.ROTATED:
                self.events.emit(
                    SessionEvent(
                        name="rotated",
                        user_id=record.user_id,
                        session_id=token_fingerprint(record.session_root),
                        token_fp=token_fingerprint(successor.token),
                        client_ip=client_ip,
                    )
                )
                presented = record.revoked(
                    now=now,
                    by_ip=client_ip,
                    replacement=successor.token,
                    reason=RevocationReason.ROTATED.value,
                )
                return Rotation(presented=presented, successor=successor)

            # lost the check-and-set; start over from a fresh read
            lost = outcome
            log.info(
                "Rotation lost race (%s); revalidating",
                outcome.name.lower(),
                extra={"token_fp": token_fingerprint(token)},
            )

        if lost is not None:
            # the store kept refusing a token that reads as active
            self._reject(token, client_ip, reason=f"rotation_{lost.name.lower()}")
        raise TokenCollisionError("Could not generate a unique refresh token.")

    # ---- helpers ----

    def _reject(
        self, token: str, client_ip: str | None, *, reason: str, user_id: str | None = None
    ) -> NoReturn:
        self.events.emit(
            SessionEvent(
                name="rejected",
                user_id=user_id,
                token_fp=token_fingerprint(token),
                client_ip=client_ip,
                reason=reason,
            )
        )
        raise AuthenticationFailure(reason)

    def _compromise(
        self,
        record: RefreshTokenRecord,
        *,
        client_ip: str | None,
        now: datetime,
        deadline: Deadline,
    ) -> NoReturn:
        count = self.revocation.revoke_session(
            record.session_root,
            now=now,
            by_ip=client_ip,
            reason=RevocationReason.REUSE_DETECTED.value,
            deadline=deadline,
        )
        self.events.emit(
            SessionEvent(
                name="reuse_detected",
                user_id=record.user_id,
                session_id=token_fingerprint(record.session_root),
                token_fp=token_fingerprint(record.token),
                client_ip=client_ip,
                count=count,
            )
        )
        raise CompromiseDetected(session_root=record.session_root, revoked_count=count)
