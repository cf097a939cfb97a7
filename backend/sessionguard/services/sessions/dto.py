# sessionguard/services/sessions/dto.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

# ---------------------------- Configuration ------------------------------- #


@dataclass(frozen=True, slots=True)
class SessionConfig:
    """
    Lifetimes and batch sizes for the session subsystem.

    :param refresh_lifetime: Absolute lifetime of every refresh token.
    :type refresh_lifetime: timedelta
    :param access_lifetime: Lifetime requested for minted access tokens.
    :type access_lifetime: timedelta
    :param retention: Grace period kept after expiry before the reaper deletes.
    :type retention: timedelta
    :param revoke_batch_size: Rows per transaction for revoke-all.
    :type revoke_batch_size: int
    :param reap_batch_size: Rows per transaction for the reaper.
    :type reap_batch_size: int
    :param timeout_seconds: Default deadline for store calls (``None`` = unbounded).
    :type timeout_seconds: float | None
    """

    refresh_lifetime: timedelta = timedelta(days=7)
    access_lifetime: timedelta = timedelta(minutes=60)
    retention: timedelta = timedelta(days=30)
    revoke_batch_size: int = 200
    reap_batch_size: int = 500
    timeout_seconds: float | None = 5.0


# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class StartSessionIn:
    """
    Input DTO for opening a new session after external authentication.

    :param user_id: Verified identity supplied by the identity provider.
    :type user_id: str
    :param client_ip: Remote address of the client.
    :type client_ip: str | None
    """

    user_id: str
    client_ip: str | None = None


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token refresh.

    :param refresh_token: Opaque refresh token presented by the client.
    :type refresh_token: str
    :param client_ip: Remote address of the client.
    :type client_ip: str | None
    """

    refresh_token: str
    client_ip: str | None = None


@dataclass(frozen=True, slots=True)
class LogoutIn:
    """
    Input DTO for logout.

    :param user_id: Identity extracted from the caller, if any.
    :type user_id: str | None
    :param client_ip: Remote address of the client.
    :type client_ip: str | None
    """

    user_id: str | None = None
    client_ip: str | None = None


@dataclass(frozen=True, slots=True)
class RevokeUserTokensIn:
    """
    Input DTO for administrative revocation.

    :param user_id: Identity whose tokens are revoked.
    :type user_id: str
    :param client_ip: Remote address of the administrator.
    :type client_ip: str | None
    :param reason: Free-text justification recorded in the audit log.
    :type reason: str | None
    """

    user_id: str
    client_ip: str | None = None
    reason: str | None = None


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class TokenPairOut:
    """
    Output DTO with access and refresh tokens.

    :param access_token: Short-lived bearer credential.
    :param refresh_token: New opaque refresh token.
    :param expires_in: Access-token lifetime in seconds.
    :param refresh_expires_at: Absolute expiry of ``refresh_token``.
    :param token_type: Always ``"Bearer"``.
    """

    access_token: str
    refresh_token: str
    expires_in: int
    refresh_expires_at: datetime
    token_type: str = "Bearer"


@dataclass(frozen=True, slots=True)
class LogoutOut:
    message: str = "Logout successful"


@dataclass(frozen=True, slots=True)
class RevokeUserTokensOut:
    """
    Result of an administrative revocation.

    :param success: Always ``True`` when no exception was raised.
    :param message: Human readable summary.
    :param tokens_revoked: Number of records that transitioned to revoked.
    """

    success: bool
    message: str
    tokens_revoked: int


@dataclass(frozen=True, slots=True)
class SessionView:
    """
    Public projection of an active refresh token (never exposes the value).

    :param session_id: Fingerprint of the rotation chain root.
    :param created_at: Issuance time of the current token in the chain.
    :param expires_at: Absolute expiry of the current token.
    :param created_by_ip: Address that obtained the current token.
    """

    session_id: str
    created_at: datetime
    expires_at: datetime
    created_by_ip: str | None
