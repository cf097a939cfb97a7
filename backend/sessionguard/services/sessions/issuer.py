# sessionguard/services/sessions/issuer.py
from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta

from sessionguard.services._shared.base import Clock, utc_now
from sessionguard.services._shared.deadline import Deadline
from sessionguard.services._shared.errors import TokenCollisionError
from sessionguard.services._shared.ports import (
    LoggingSessionEventSink,
    RefreshTokenRecord,
    RefreshTokenStore,
    SessionEvent,
    SessionEventSink,
    token_fingerprint,
)

log = logging.getLogger(__name__)

# 64 random bytes = 512 bits of entropy
TOKEN_BYTES = 64
MAX_GENERATION_ATTEMPTS = 5


def generate_token() -> str:
    """Return a URL-safe token drawn from the OS CSPRNG."""
    return secrets.token_urlsafe(TOKEN_BYTES)


class TokenIssuer:
    """
    Create refresh-token records bound to a user and client address.

    The issuer never overwrites: a generated value that already exists is a
    generation failure and a new value is drawn.

    :param store: Backing token store.
    :param events: Audit sink for ``issued`` events.
    :param clock: Source of aware UTC timestamps.
    :param generator: Token value factory (tests inject deterministic ones).
    :param max_attempts: Values drawn before giving up on collisions.
    """

    def __init__(
        self,
        *,
        store: RefreshTokenStore,
        events: SessionEventSink | None = None,
        clock: Clock | None = None,
        generator: Callable[[], str] = generate_token,
        max_attempts: int = MAX_GENERATION_ATTEMPTS,
    ) -> None:
        self.store = store
        self.events = events or LoggingSessionEventSink()
        self.clock = clock or utc_now
        self.generator = generator
        self.max_attempts = max(1, max_attempts)

    def build(
        self,
        *,
        user_id: str,
        client_ip: str | None,
        lifetime: timedelta,
        now: datetime,
        parent: RefreshTokenRecord | None = None,
    ) -> RefreshTokenRecord:
        """
        Build (without persisting) a record with a freshly generated value.

        A successor inherits ``session_root`` from ``parent``; a root record is
        its own session root.

        :param lifetime: Absolute lifetime; ``expires_at = now + lifetime``.
        :type lifetime: timedelta
        :rtype: RefreshTokenRecord
        """
        token = self.generator()
        return RefreshTokenRecord(
            token=token,
            user_id=user_id,
            session_root=parent.session_root if parent is not None else token,
            parent_token=parent.token if parent is not None else None,
            created_at=now,
            expires_at=now + lifetime,
            created_by_ip=client_ip,
        )

    def issue(
        self,
        user_id: str,
        client_ip: str | None,
        lifetime: timedelta,
        *,
        deadline: Deadline | None = None,
    ) -> RefreshTokenRecord:
        """
        Persist a new root record for ``user_id`` and return it.

        :raises TokenCollisionError: If every attempt produced an existing value.
        :raises StorageUnavailable: If the store cannot be reached.
        :raises OperationCancelled: If ``deadline`` elapsed before commit.
        """
        for attempt in range(1, self.max_attempts + 1):
            record = self.build(
                user_id=user_id, client_ip=client_ip, lifetime=lifetime, now=self.clock()
            )
            try:
                self.store.create(record, deadline=deadline)
            except TokenCollisionError:
                log.warning("Refresh token collision on issue (attempt %s)", attempt)
                continue
            self.events.emit(
                SessionEvent(
                    name="issued",
                    user_id=user_id,
                    session_id=token_fingerprint(record.session_root),
                    token_fp=token_fingerprint(record.token),
                    client_ip=client_ip,
                )
            )
            return record
        raise TokenCollisionError("Could not generate a unique refresh token.")
