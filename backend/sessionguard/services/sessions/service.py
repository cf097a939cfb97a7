# sessionguard/services/sessions/service.py
from __future__ import annotations

import logging
from collections.abc import Callable

from sessionguard.services._shared.base import BaseService, Clock
from sessionguard.services._shared.deadline import Deadline
from sessionguard.services._shared.errors import ValidationError
from sessionguard.services._shared.ports import (
    AccessTokenMinter,
    LoggingSessionEventSink,
    RefreshTokenRecord,
    RefreshTokenStore,
    RevocationReason,
    SessionEventSink,
    token_fingerprint,
)
from sessionguard.services.sessions.dto import (
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
from sessionguard.services.sessions.issuer import TokenIssuer, generate_token
from sessionguard.services.sessions.revocation import RevocationService
from sessionguard.services.sessions.rotation import RotationValidator

log = logging.getLogger(__name__)

DEFAULT_ADMIN_REASON = "Admin revocation"


class SessionService(BaseService):
    """
    Session use cases (start / refresh / logout / admin revoke / listing).

    The service owns no state: persistence goes through the
    :class:`RefreshTokenStore` port and access tokens are minted by the
    injected :class:`AccessTokenMinter`.
    """

    def __init__(
        self,
        *,
        store: RefreshTokenStore,
        minter: AccessTokenMinter,
        events: SessionEventSink | None = None,
        config: SessionConfig | None = None,
        clock: Clock | None = None,
        generator: Callable[[], str] = generate_token,
    ) -> None:
        """
        Initialize the service with its dependencies.

        :param store: Refresh token store (atomic rotation).
        :param minter: Adapter issuing access tokens once a refresh succeeds.
        :param events: Audit sink; defaults to the logging sink.
        :param config: Lifetimes, retention and batch sizes.
        :param clock: Source of aware UTC timestamps.
        :param generator: Refresh token value factory.
        """
        self.cfg = config or SessionConfig()
        super().__init__(clock=clock, timeout_seconds=self.cfg.timeout_seconds)
        self.store = store
        self.minter = minter
        self.events = events or LoggingSessionEventSink()
        self.issuer = TokenIssuer(
            store=store, events=self.events, clock=self.now_utc, generator=generator
        )
        self.revocation = RevocationService(
            store=store, events=self.events, batch_size=self.cfg.revoke_batch_size
        )
        self.validator = RotationValidator(
            store=store, issuer=self.issuer, revocation=self.revocation, events=self.events
        )

    # ------------------------------------------------------------------ #
    # Start session
    # ------------------------------------------------------------------ #

    def start_session(
        self, dto: StartSessionIn, *, deadline: Deadline | None = None
    ) -> TokenPairOut:
        """
        Open a new rotation chain for an identity verified elsewhere.

        :raises ValidationError: If ``user_id`` is empty.
        """
        user_id = (dto.user_id or "").strip()
        if not user_id:
            raise ValidationError("User id is required.")
        record = self.issuer.issue(
            user_id, dto.client_ip, self.cfg.refresh_lifetime, deadline=self.deadline(deadline)
        )
        return self._token_pair(record, fresh=True)

    # ------------------------------------------------------------------ #
    # Refresh with atomic rotation
    # ------------------------------------------------------------------ #

    def refresh(self, dto: RefreshIn, *, deadline: Deadline | None = None) -> TokenPairOut:
        """
        Rotate a refresh token and emit a new token pair.

        Security
        --------
        - Every rejection raises :class:`AuthenticationFailure` with the same
          message; only the audit log tells unknown, expired and reused apart.
        - **Reuse detection** revokes the entire session chain.
        """
        rotation = self.validator.rotate(
            dto.refresh_token,
            client_ip=dto.client_ip,
            now=self.now_utc(),
            lifetime=self.cfg.refresh_lifetime,
            deadline=self.deadline(deadline),
        )
        # access issued via refresh → not fresh
        return self._token_pair(rotation.successor, fresh=False)

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    def logout(self, dto: LogoutIn, *, deadline: Deadline | None = None) -> LogoutOut:
        """
        Revoke every refresh token of the caller.

        Always succeeds from the caller's perspective; without an identity the
        revocation is skipped (the identity layer already tore the session down).
        """
        user_id = (dto.user_id or "").strip()
        if not user_id:
            log.info("Logout without identity; skipping token revocation")
            return LogoutOut()
        self.revocation.revoke_all_for_user(
            user_id,
            now=self.now_utc(),
            by_ip=dto.client_ip,
            reason=RevocationReason.LOGOUT.value,
            deadline=self.deadline(deadline),
        )
        return LogoutOut()

    # ------------------------------------------------------------------ #
    # Administration
    # ------------------------------------------------------------------ #

    def revoke_user_tokens(
        self, dto: RevokeUserTokensIn, *, deadline: Deadline | None = None
    ) -> RevokeUserTokensOut:
        """
        Revoke all tokens of ``dto.user_id`` on behalf of an administrator.

        :returns: Count of revoked tokens and a summary message.
        :raises ValidationError: If ``user_id`` is empty.
        """
        user_id = (dto.user_id or "").strip()
        if not user_id:
            raise ValidationError("User id is required.")
        reason = (dto.reason or "").strip() or DEFAULT_ADMIN_REASON
        count = self.revocation.revoke_all_for_user(
            user_id,
            now=self.now_utc(),
            by_ip=dto.client_ip,
            reason=RevocationReason.ADMIN.value,
            deadline=self.deadline(deadline),
        )
        log.warning(
            "Admin revoked %s token(s) for user %s: %s",
            count,
            user_id,
            reason,
            extra={"user_id": user_id, "count": count, "reason": reason},
        )
        return RevokeUserTokensOut(
            success=True,
            message=f"Successfully revoked {count} token(s) for user {user_id}",
            tokens_revoked=count,
        )

    def list_sessions(
        self, user_id: str, *, deadline: Deadline | None = None
    ) -> list[SessionView]:
        """Return the active sessions of ``user_id`` without exposing token values."""
        records = self.store.get_active_for_user(
            user_id, now=self.now_utc(), deadline=self.deadline(deadline)
        )
        return [
            SessionView(
                session_id=token_fingerprint(r.session_root) or "",
                created_at=r.created_at,
                expires_at=r.expires_at,
                created_by_ip=r.created_by_ip,
            )
            for r in records
        ]

    # ---- helpers ----

    def _token_pair(self, record: RefreshTokenRecord, *, fresh: bool) -> TokenPairOut:
        access = self.minter.create_access_token(
            identity=record.user_id,
            additional_claims={"sid": token_fingerprint(record.session_root)},
            expires_delta=self.cfg.access_lifetime,
            fresh=fresh,
        )
        return TokenPairOut(
            access_token=access,
            refresh_token=record.token,
            expires_in=int(self.cfg.access_lifetime.total_seconds()),
            refresh_expires_at=record.expires_at,
        )
