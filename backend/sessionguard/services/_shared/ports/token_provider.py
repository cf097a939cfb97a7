from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any, Protocol


class AccessTokenMinter(Protocol):
    """Port for minting the short-lived bearer credential after a refresh."""

    def create_access_token(
        self,
        *,
        identity: str,
        additional_claims: dict[str, Any] | None = None,
        expires_delta: timedelta | None = None,
        fresh: bool = False,
    ) -> str: ...


class IdentityResolver(Protocol):
    """Port mapping the current authenticated request to a user identifier."""

    def current_user_id(self) -> str | None: ...


class StubAccessTokenMinter(AccessTokenMinter):
    """Deterministic access-token minter used in unit tests."""

    def __init__(self) -> None:
        self._now = datetime.now(tz=UTC)
        self._seq = 0
        self.issued: dict[str, dict[str, Any]] = {}

    def create_access_token(
        self,
        *,
        identity: str,
        additional_claims: dict[str, Any] | None = None,
        expires_delta: timedelta | None = None,
        fresh: bool = False,
    ) -> str:
        self._seq += 1
        token = f"access.{identity}.{self._seq}"
        payload: dict[str, Any] = {
            "sub": identity,
            "type": "access",
            "fresh": bool(fresh),
            "exp": int((self._now + (expires_delta or timedelta(minutes=60))).timestamp()),
        }
        if additional_claims:
            payload.update(additional_claims)
        self.issued[token] = payload
        return token

