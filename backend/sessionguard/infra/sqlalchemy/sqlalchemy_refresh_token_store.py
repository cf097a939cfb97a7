# comments in English; reST docstrings
from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

from sessionguard.models.refresh_token import RefreshToken
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
from sessionguard.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork


class _LostRace(Exception):
    """Internal signal: the conditional UPDATE matched no row."""


def to_record(row: RefreshToken) -> RefreshTokenRecord:
    """Snapshot an ORM row into an immutable :class:`RefreshTokenRecord`."""
    return RefreshTokenRecord(
        token=row.token,
        user_id=row.user_id,
        session_root=row.session_root,
        created_at=row.created_at,
        expires_at=row.expires_at,
        created_by_ip=row.created_by_ip,
        parent_token=row.parent_token,
        revoked_at=row.revoked_at,
        revoked_by_ip=row.revoked_by_ip,
        replaced_by_token=row.replaced_by_token,
        revocation_reason=row.revocation_reason,
    )


def to_row(record: RefreshTokenRecord) -> RefreshToken:
    return RefreshToken(
        token=record.token,
        user_id=record.user_id,
        session_root=record.session_root,
        parent_token=record.parent_token,
        created_at=record.created_at,
        expires_at=record.expires_at,
        created_by_ip=record.created_by_ip,
        revoked_at=record.revoked_at,
        revoked_by_ip=record.revoked_by_ip,
        replaced_by_token=record.replaced_by_token,
        revocation_reason=record.revocation_reason,
    )


@dataclass(slots=True)
class SQLAlchemyRefreshTokenStore(RefreshTokenStore):
    """
    Relational refresh token store.

    Every call runs in its own :class:`SQLAlchemyUnitOfWork`; bulk calls open
    one unit of work per batch. Atomicity of rotation relies on a conditional
    ``UPDATE ... WHERE revoked_at IS NULL AND expires_at > :now`` whose row
    count decides the winner.

    :param uow_factory: Builds a fresh unit of work per transaction.
    """

    uow_factory: Callable[[], SQLAlchemyUnitOfWork] = SQLAlchemyUnitOfWork

    # -------------------- helpers --------------------

    @contextmanager
    def _transaction(
        self, deadline: Deadline | None
    ) -> Iterator[tuple[SQLAlchemyUnitOfWork, Deadline]]:
        """
        Open a unit of work, checking ``deadline`` before work and before commit.

        Transient database errors surface as :class:`StorageUnavailable`.
        """
        dl = ensure_deadline(deadline)
        dl.check()
        try:
            with self.uow_factory() as uow:
                yield uow, dl
                # an elapsed deadline here rolls the transaction back
                dl.check()
        except (OperationalError, InterfaceError) as exc:
            raise StorageUnavailable(str(exc.orig or exc)) from exc

    # -------------------- API ------------------------

    def create(self, record: RefreshTokenRecord, *, deadline: Deadline | None = None) -> None:
        try:
            with self._transaction(deadline) as (uow, _):
                if uow.refresh_tokens.exists_token(record.token):
                    raise TokenCollisionError("Refresh token value already exists.")
                uow.refresh_tokens.add(to_row(record))
        except IntegrityError as exc:
            raise TokenCollisionError("Refresh token value already exists.") from exc

    def get_by_token(
        self, token: str, *, deadline: Deadline | None = None
    ) -> RefreshTokenRecord | None:
        with self._transaction(deadline) as (uow, _):
            row = uow.refresh_tokens.get_by_token(token)
            return to_record(row) if row is not None else None

    def get_active_for_user(
        self, user_id: str, *, now: datetime, deadline: Deadline | None = None
    ) -> list[RefreshTokenRecord]:
        with self._transaction(deadline) as (uow, _):
            rows = uow.refresh_tokens.list_active_for_user(user_id, now)
            return [to_record(r) for r in rows]

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
        with self._transaction(deadline) as (uow, _):
            repo = uow.refresh_tokens
            row = repo.get_by_token(token)
            if row is None:
                return False
            if row.revoked_at is None:
                if replacement is not None and not repo.exists_token(replacement):
                    raise NotFoundError("RefreshToken", "replacement")
                if repo.revoke_if_unrevoked(
                    token, now=now, by_ip=by_ip, reason=reason, replacement=replacement
                ):
                    return True
            # already revoked, possibly by a concurrent writer
            if replacement is not None:
                raise RotationConflictError(
                    "Refresh token already revoked; cannot link replacement."
                )
            return False

    def rotate(
        self,
        *,
        presented: str,
        successor: RefreshTokenRecord,
        now: datetime,
        by_ip: str | None = None,
        deadline: Deadline | None = None,
    ) -> RotationOutcome:
        try:
            with self._transaction(deadline) as (uow, _):
                repo = uow.refresh_tokens
                row = repo.get_by_token(presented)
                if row is None:
                    return RotationOutcome.NOT_FOUND
                if row.revoked_at is not None:
                    return RotationOutcome.REVOKED
                if now >= row.expires_at:
                    return RotationOutcome.EXPIRED
                if repo.exists_token(successor.token):
                    raise TokenCollisionError("Refresh token value already exists.")

                repo.add(to_row(successor))
                won = repo.revoke_if_unrevoked(
                    presented,
                    now=now,
                    by_ip=by_ip,
                    reason=RevocationReason.ROTATED.value,
                    replacement=successor.token,
                    require_unexpired=True,
                )
                if not won:
                    raise _LostRace()
                return RotationOutcome.ROTATED
        except _LostRace:
            # the successor insert was rolled back; classify the current state
            current = self.get_by_token(presented, deadline=deadline)
            if current is None:
                return RotationOutcome.NOT_FOUND
            if current.is_revoked:
                return RotationOutcome.REVOKED
            return RotationOutcome.EXPIRED
        except IntegrityError as exc:
            raise TokenCollisionError("Refresh token value already exists.") from exc

    def revoke_session(
        self,
        session_root: str,
        *,
        now: datetime,
        by_ip: str | None = None,
        reason: str = RevocationReason.REUSE_DETECTED.value,
        deadline: Deadline | None = None,
    ) -> int:
        with self._transaction(deadline) as (uow, _):
            return uow.refresh_tokens.revoke_session(
                session_root, now=now, by_ip=by_ip, reason=reason
            )

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
            with self._transaction(deadline) as (uow, _):
                repo = uow.refresh_tokens
                pending = repo.unrevoked_tokens_for_user(user_id, limit=batch_size)
                if not pending:
                    return total
                total += repo.revoke_tokens(pending, now=now, by_ip=by_ip, reason=reason)

    def delete_expired_before(
        self, cutoff: datetime, *, batch_size: int = 500, deadline: Deadline | None = None
    ) -> int:
        total = 0
        while True:
            with self._transaction(deadline) as (uow, _):
                repo = uow.refresh_tokens
                doomed = repo.expired_tokens_before(cutoff, limit=batch_size)
                if not doomed:
                    return total
                total += repo.delete_tokens(doomed)
