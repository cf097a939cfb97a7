from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum, auto
from typing import Protocol

from sessionguard.services._shared.deadline import Deadline, ensure_deadline
from sessionguard.services._shared.errors import (
    NotFoundError,
    OperationCancelled,
    RotationConflictError,
    TokenCollisionError,
)


class RotationOutcome(Enum):
    """Outcome of an atomic check-and-set rotation attempt."""

    ROTATED = auto()
    NOT_FOUND = auto()
    EXPIRED = auto()
    REVOKED = auto()


class RevocationReason(str, Enum):
    """Audit label stored alongside ``revoked_at``."""

    ROTATED = "rotated"
    LOGOUT = "logout"
    REUSE_DETECTED = "reuse_detected"
    ADMIN = "admin"
    REVOKED = "revoked"


@dataclass(frozen=True, slots=True)
class RefreshTokenRecord:
    """
    Snapshot of a refresh-token row.

    :ivar token: Opaque credential and primary key. Never log it.
    :ivar user_id: Owning identity.
    :ivar session_root: Token of the first record of the rotation chain.
    :ivar created_at: Issuance time (UTC).
    :ivar expires_at: Absolute expiry (UTC), fixed at issuance.
    :ivar created_by_ip: Client address at issuance.
    :ivar parent_token: Predecessor in the chain, ``None`` for the root.
    :ivar revoked_at: Revocation time, set once.
    :ivar revoked_by_ip: Client address that revoked the record.
    :ivar replaced_by_token: Successor token when revoked by rotation.
    :ivar revocation_reason: Audit label for the revocation.
    """

    token: str
    user_id: str
    session_root: str
    created_at: datetime
    expires_at: datetime
    created_by_ip: str | None = None
    parent_token: str | None = None
    revoked_at: datetime | None = None
    revoked_by_ip: str | None = None
    replaced_by_token: str | None = None
    revocation_reason: str | None = None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_active(self, now: datetime) -> bool:
        """``revoked_at is None and now < expires_at``."""
        return not self.is_revoked and not self.is_expired(now)

    def revoked(
        self,
        *,
        now: datetime,
        by_ip: str | None,
        replacement: str | None = None,
        reason: str | None = None,
    ) -> RefreshTokenRecord:
        """Return a revoked copy of this record."""
        return replace(
            self,
            revoked_at=now,
            revoked_by_ip=by_ip,
            replaced_by_token=replacement,
            revocation_reason=reason,
        )


class RefreshTokenStore(Protocol):
    """
    Durable keyed storage for refresh-token records.

    Write operations are idempotent for already-revoked records, except that a
    replacement link can never be written onto a revoked record. ``rotate`` MUST
    be atomic. Bulk operations MUST commit in batches.
    """

    def create(self, record: RefreshTokenRecord, *, deadline: Deadline | None = None) -> None:
        """
        Persist a brand-new record.

        :raises TokenCollisionError: If ``record.token`` already exists.
        """

    def get_by_token(
        self, token: str, *, deadline: Deadline | None = None
    ) -> RefreshTokenRecord | None:
        """Fetch a single record snapshot (if present)."""

    def get_active_for_user(
        self, user_id: str, *, now: datetime, deadline: Deadline | None = None
    ) -> list[RefreshTokenRecord]:
        """List non-revoked, non-expired records of ``user_id``."""

    def mark_revoked(
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
        Revoke a single record.

        :returns: ``True`` if the record transitioned, ``False`` for unknown or
            already-revoked records (no-op).
        :raises RotationConflictError: If ``replacement`` is given and the record
            is already revoked.
        :raises NotFoundError: If ``replacement`` does not reference a stored record.
        """

    def rotate(
        self,
        *,
        presented: str,
        successor: RefreshTokenRecord,
        now: datetime,
        by_ip: str | None = None,
        deadline: Deadline | None = None,
    ) -> RotationOutcome:
        """
        Atomically revoke ``presented`` (linking it to ``successor``) and create ``successor``.

        The write only happens if ``presented`` is still non-revoked and
        unexpired at commit time.

        :raises TokenCollisionError: If ``successor.token`` already exists.
        """

    def revoke_session(
        self,
        session_root: str,
        *,
        now: datetime,
        by_ip: str | None = None,
        reason: str = RevocationReason.REUSE_DETECTED.value,
        deadline: Deadline | None = None,
    ) -> int:
        """
        Revoke every non-revoked record sharing ``session_root``.

        :returns: Number of records that transitioned.
        """

    def revoke_all_for_user(
        self,
        user_id: str,
        *,
        now: datetime,
        by_ip: str | None = None,
        reason: str = RevocationReason.LOGOUT.value,
        batch_size: int = 200,
        deadline: Deadline | None = None,
    ) -> int:
        """
        Revoke every non-revoked record of ``user_id``, ``batch_size`` rows per transaction.

        :returns: Number of records that transitioned.
        """

    def delete_expired_before(
        self, cutoff: datetime, *, batch_size: int = 500, deadline: Deadline | None = None
    ) -> int:
        """
        Physically delete records whose ``expires_at`` is older than ``cutoff``.

        :returns: Number of records deleted.
        """


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """
    In-memory refresh token store with atomic rotation behavior.

    .. note::
       A single lock serialises writers; batches release it between rounds so
       per-token operations can interleave with bulk ones.
    """

    def __init__(self) -> None:
        self._by_token: dict[str, RefreshTokenRecord] = {}
        self._by_user: dict[str, set[str]] = {}
        self._by_root: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    # ------------------------- helpers -------------------------

    @contextmanager
    def _locked(self, deadline: Deadline | None) -> Iterator[Deadline]:
        dl = ensure_deadline(deadline)
        dl.check()
        timeout = dl.remaining()
        acquired = self._lock.acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            raise OperationCancelled()
        try:
            yield dl
        finally:
            self._lock.release()

    def _insert(self, record: RefreshTokenRecord) -> None:
        if record.token in self._by_token:
            raise TokenCollisionError("Refresh token value already exists.")
        self._by_token[record.token] = record
        self._by_user.setdefault(record.user_id, set()).add(record.token)
        self._by_root.setdefault(record.session_root, set()).add(record.token)

    def _remove(self, token: str) -> None:
        record = self._by_token.pop(token)
        self._by_user.get(record.user_id, set()).discard(token)
        self._by_root.get(record.session_root, set()).discard(token)

    def _revoke_many(
        self,
        tokens: list[str],
        *,
        now: datetime,
        by_ip: str | None,
        reason: str,
    ) -> int:
        changed = 0
        for token in tokens:
            record = self._by_token.get(token)
            if record is None or record.is_revoked:
                continue
            self._by_token[token] = record.revoked(now=now, by_ip=by_ip, reason=reason)
            changed += 1
        return changed

    # -------------------------- API ----------------------------

    def create(self, record: RefreshTokenRecord, *, deadline: Deadline | None = None) -> None:
        with self._locked(deadline):
            self._insert(record)

    def get_by_token(
        self, token: str, *, deadline: Deadline | None = None
    ) -> RefreshTokenRecord | None:
        with self._locked(deadline):
            return self._by_token.get(token)

    def get_active_for_user(
        self, user_id: str, *, now: datetime, deadline: Deadline | None = None
    ) -> list[RefreshTokenRecord]:
        with self._locked(deadline):
            records = [self._by_token[t] for t in self._by_user.get(user_id, set())]
        active = [r for r in records if r.is_active(now)]
        return sorted(active, key=lambda r: r.created_at)

    def mark_revoked(
        self,
        token: str,
        *,
        now: datetime,
        by_ip: str | None = None,
        replacement: str | None = None,
        reason: str = RevocationReason.REVOKED.value,
        deadline: Deadline | None = None,
    ) -> bool:
        with self._locked(deadline):
            record = self._by_token.get(token)
            if record is None:
                return False
            if record.is_revoked:
                if replacement is not None:
                    raise RotationConflictError(
                        "Refresh token already revoked; cannot link replacement."
                    )
                return False
            if replacement is not None and replacement not in self._by_token:
                raise NotFoundError("RefreshToken", "replacement")
            self._by_token[token] = record.revoked(
                now=now, by_ip=by_ip, replacement=replacement, reason=reason
            )
            return True

    def rotate(
        self,
        *,
        presented: str,
        successor: RefreshTokenRecord,
        now: datetime,
        by_ip: str | None = None,
        deadline: Deadline | None = None,
    ) -> RotationOutcome:
        with self._locked(deadline) as dl:
            record = self._by_token.get(presented)
            if record is None:
                return RotationOutcome.NOT_FOUND
            if record.is_revoked:
                return RotationOutcome.REVOKED
            if record.is_expired(now):
                return RotationOutcome.EXPIRED
            if successor.token in self._by_token:
                raise TokenCollisionError("Refresh token value already exists.")

            # last point where cancelling leaves the store untouched
            dl.check()
            self._insert(successor)
            self._by_token[presented] = record.revoked(
                now=now,
                by_ip=by_ip,
                replacement=successor.token,
                reason=RevocationReason.ROTATED.value,
            )
            return RotationOutcome.ROTATED

    def revoke_session(
        self,
        session_root: str,
        *,
        now: datetime,
        by_ip: str | None = None,
        reason: str = RevocationReason.REUSE_DETECTED.value,
        deadline: Deadline | None = None,
    ) -> int:
        with self._locked(deadline):
            tokens = sorted(self._by_root.get(session_root, set()))
            return self._revoke_many(tokens, now=now, by_ip=by_ip, reason=reason)

    def revoke_all_for_user(
        self,
        user_id: str,
        *,
        now: datetime,
        by_ip: str | None = None,
        reason: str = RevocationReason.LOGOUT.value,
        batch_size: int = 200,
        deadline: Deadline | None = None,
    ) -> int:
        total = 0
        while True:
            with self._locked(deadline):
                pending = sorted(
                    t
                    for t in self._by_user.get(user_id, set())
                    if not self._by_token[t].is_revoked
                )[: max(1, batch_size)]
                if not pending:
                    return total
                total += self._revoke_many(pending, now=now, by_ip=by_ip, reason=reason)

    def delete_expired_before(
        self, cutoff: datetime, *, batch_size: int = 500, deadline: Deadline | None = None
    ) -> int:
        total = 0
        while True:
            with self._locked(deadline):
                doomed = [t for t, r in self._by_token.items() if r.expires_at < cutoff][
                    : max(1, batch_size)
                ]
                if not doomed:
                    return total
                for token in doomed:
                    self._remove(token)
                total += len(doomed)
