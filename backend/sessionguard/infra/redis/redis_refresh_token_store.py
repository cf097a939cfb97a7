# comments in English; reST docstrings
from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any

import redis  # type: ignore[import-untyped]

from sessionguard.services._shared.deadline import Deadline, ensure_deadline
from sessionguard.services._shared.errors import (
    NotFoundError,
    RotationConflictError,
    StorageUnavailable,
    TokenCollisionError,
)
from sessionguard.services._shared.ports import (
    RefreshTokenRecord,
    RefreshTokenStore,
    RevocationReason,
    RotationOutcome,
)

_DATETIME_FIELDS = frozenset({"created_at", "expires_at", "revoked_at"})
_FIELD_NAMES = tuple(f.name for f in fields(RefreshTokenRecord))


def _s(value: Any) -> str:
    """Decode a Redis reply item regardless of ``decode_responses``."""
    if value is None:
        return ""
    if isinstance(value, bytes | bytearray):
        return value.decode()
    return str(value)


def _dump(record: RefreshTokenRecord) -> dict[str, str]:
    out: dict[str, str] = {}
    for name in _FIELD_NAMES:
        value = getattr(record, name)
        if value is None:
            out[name] = ""
        elif name in _DATETIME_FIELDS:
            out[name] = value.isoformat()
        else:
            out[name] = str(value)
    return out


def _load(raw: Mapping[Any, Any]) -> RefreshTokenRecord:
    h = {_s(k): _s(v) for k, v in raw.items()}
    values: dict[str, Any] = {}
    for name in _FIELD_NAMES:
        text = h.get(name, "")
        if name in _DATETIME_FIELDS:
            values[name] = datetime.fromisoformat(text) if text else None
        else:
            values[name] = text or None
    return RefreshTokenRecord(**values)


@dataclass(slots=True)
class RedisRefreshTokenStore(RefreshTokenStore):
    """
    Redis-backed refresh token store with atomic rotation.

    Layout: one hash per token (``rt:<token>``), a set per user
    (``rt:u:<user_id>``), a set per rotation chain (``rt:s:<session_root>``)
    and a sorted set of tokens scored by expiry (``rt:exp``) for the reaper.

    :param r: A Redis client (already connected).
    """

    r: redis.Redis

    EXPIRY_INDEX = "rt:exp"

    # -------------------- helpers --------------------

    @staticmethod
    def _k(token: str) -> str:
        return f"rt:{token}"

    @staticmethod
    def _ku(user_id: str) -> str:
        return f"rt:u:{user_id}"

    @staticmethod
    def _ks(session_root: str) -> str:
        return f"rt:s:{session_root}"

    @contextmanager
    def _guard(self, deadline: Deadline | None) -> Iterator[Deadline]:
        dl = ensure_deadline(deadline)
        dl.check()
        try:
            yield dl
        except (redis.ConnectionError, redis.TimeoutError) as exc:
            raise StorageUnavailable(str(exc)) from exc

    def _stage_insert(self, p: Any, record: RefreshTokenRecord) -> None:
        p.hset(self._k(record.token), mapping=_dump(record))
        p.sadd(self._ku(record.user_id), record.token)
        p.sadd(self._ks(record.session_root), record.token)
        p.zadd(self.EXPIRY_INDEX, {record.token: record.expires_at.timestamp()})

    def _revoke_tokens(
        self,
        tokens: list[str],
        *,
        now: datetime,
        by_ip: str | None,
        reason: str,
        dl: Deadline,
    ) -> int:
        """Revoke the still-unrevoked members of ``tokens`` in one MULTI/EXEC."""
        if not tokens:
            return 0
        keys = [self._k(t) for t in tokens]
        while True:
            dl.check()
            try:
                with self.r.pipeline() as p:
                    p.watch(*keys)
                    pending = [
                        k for k in keys if p.exists(k) and not _s(p.hget(k, "revoked_at"))
                    ]
                    if not pending:
                        p.unwatch()
                        return 0
                    dl.check()
                    p.multi()
                    for k in pending:
                        p.hset(
                            k,
                            mapping={
                                "revoked_at": now.isoformat(),
                                "revoked_by_ip": by_ip or "",
                                "revocation_reason": reason,
                            },
                        )
                    p.execute()
                    return len(pending)
            except redis.WatchError:
                # Concurrent modification detected; retry loop
                continue

    # -------------------- API ------------------------

    def create(self, record: RefreshTokenRecord, *, deadline: Deadline | None = None) -> None:
        key = self._k(record.token)
        with self._guard(deadline) as dl:
            while True:
                try:
                    with self.r.pipeline() as p:
                        p.watch(key)
                        if p.exists(key):
                            p.unwatch()
                            raise TokenCollisionError("Refresh token value already exists.")
                        dl.check()
                        p.multi()
                        self._stage_insert(p, record)
                        p.execute()
                        return
                except redis.WatchError:
                    continue

    def get_by_token(
        self, token: str, *, deadline: Deadline | None = None
    ) -> RefreshTokenRecord | None:
        with self._guard(deadline):
            h = self.r.hgetall(self._k(token))
            return _load(h) if h else None

    def get_active_for_user(
        self, user_id: str, *, now: datetime, deadline: Deadline | None = None
    ) -> list[RefreshTokenRecord]:
        with self._guard(deadline):
            members = sorted(_s(m) for m in self.r.smembers(self._ku(user_id)))
            if not members:
                return []
            pipe = self.r.pipeline(transaction=False)
            for token in members:
                pipe.hgetall(self._k(token))
            raw = pipe.execute()
        records = [_load(h) for h in raw if h]
        return sorted((r for r in records if r.is_active(now)), key=lambda r: r.created_at)

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
        key = self._k(token)
        with self._guard(deadline) as dl:
            while True:
                try:
                    with self.r.pipeline() as p:
                        p.watch(key)
                        h = p.hgetall(key)
                        if not h:
                            p.unwatch()
                            return False
                        record = _load(h)
                        if record.is_revoked:
                            p.unwatch()
                            if replacement is not None:
                                raise RotationConflictError(
                                    "Refresh token already revoked; cannot link replacement."
                                )
                            return False
                        if replacement is not None and not p.exists(self._k(replacement)):
                            p.unwatch()
                            raise NotFoundError("RefreshToken", "replacement")
                        dl.check()
                        p.multi()
                        p.hset(
                            key,
                            mapping={
                                "revoked_at": now.isoformat(),
                                "revoked_by_ip": by_ip or "",
                                "replaced_by_token": replacement or "",
                                "revocation_reason": reason,
                            },
                        )
                        p.execute()
                        return True
                except redis.WatchError:
                    continue

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
        Atomically revoke ``presented`` and create ``successor``.

        Uses WATCH/MULTI/EXEC (optimistic locking). A concurrent write to either
        key aborts the transaction and the loop re-reads the presented record,
        so a lost race is reported as ``REVOKED``.
        """
        k_old = self._k(presented)
        k_new = self._k(successor.token)
        with self._guard(deadline) as dl:
            while True:
                dl.check()
                try:
                    with self.r.pipeline() as p:
                        # Watch the keys that participate in the invariant
                        p.watch(k_old, k_new)
                        h = p.hgetall(k_old)
                        if not h:
                            p.unwatch()
                            return RotationOutcome.NOT_FOUND
                        current = _load(h)
                        if current.is_revoked:
                            p.unwatch()
                            return RotationOutcome.REVOKED
                        if current.is_expired(now):
                            p.unwatch()
                            return RotationOutcome.EXPIRED
                        if p.exists(k_new):
                            p.unwatch()
                            raise TokenCollisionError("Refresh token value already exists.")

                        dl.check()
                        p.multi()
                        p.hset(
                            k_old,
                            mapping={
                                "revoked_at": now.isoformat(),
                                "revoked_by_ip": by_ip or "",
                                "replaced_by_token": successor.token,
                                "revocation_reason": RevocationReason.ROTATED.value,
                            },
                        )
                        self._stage_insert(p, successor)
                        p.execute()
                        return RotationOutcome.ROTATED
                except redis.WatchError:
                    continue

    def revoke_session(
        self,
        session_root: str,
        *,
        now: datetime,
        by_ip: str | None = None,
        reason: str = RevocationReason.REUSE_DETECTED.value,
        deadline: Deadline | None = None,
    ) -> int:
        with self._guard(deadline) as dl:
            tokens = sorted(_s(m) for m in self.r.smembers(self._ks(session_root)))
            return self._revoke_tokens(tokens, now=now, by_ip=by_ip, reason=reason, dl=dl)

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
        size = max(1, batch_size)
        total = 0
        with self._guard(deadline) as dl:
            # Re-read the user set per batch so successors rotated in meanwhile are caught.
            while True:
                dl.check()
                pending = self._unrevoked_tokens_for_user(user_id, limit=size)
                if not pending:
                    return total
                total += self._revoke_tokens(pending, now=now, by_ip=by_ip, reason=reason, dl=dl)

    def _unrevoked_tokens_for_user(self, user_id: str, *, limit: int) -> list[str]:
        members = sorted(_s(m) for m in self.r.smembers(self._ku(user_id)))
        if not members:
            return []
        pipe = self.r.pipeline(transaction=False)
        for token in members:
            pipe.hmget(self._k(token), "token", "revoked_at")
        rows = pipe.execute()
        # stale set members (hash already reaped) read back as an empty "token"
        pending = [
            t
            for t, (stored, revoked) in zip(members, rows, strict=True)
            if _s(stored) and not _s(revoked)
        ]
        return pending[:limit]

    def delete_expired_before(
        self, cutoff: datetime, *, batch_size: int = 500, deadline: Deadline | None = None
    ) -> int:
        size = max(1, batch_size)
        total = 0
        with self._guard(deadline) as dl:
            while True:
                dl.check()
                doomed = [
                    _s(m)
                    for m in self.r.zrangebyscore(
                        self.EXPIRY_INDEX, "-inf", f"({cutoff.timestamp()}", start=0, num=size
                    )
                ]
                if not doomed:
                    return total
                owners = self.r.pipeline(transaction=False)
                for token in doomed:
                    owners.hmget(self._k(token), "user_id", "session_root")
                pairs = owners.execute()

                dl.check()
                pipe = self.r.pipeline(transaction=True)
                for token, (uid, root) in zip(doomed, pairs, strict=True):
                    pipe.delete(self._k(token))
                    if uid:
                        pipe.srem(self._ku(_s(uid)), token)
                    if root:
                        pipe.srem(self._ks(_s(root)), token)
                    pipe.zrem(self.EXPIRY_INDEX, token)
                pipe.execute()
                total += len(doomed)
