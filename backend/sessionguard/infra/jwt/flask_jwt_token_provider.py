# sessionguard/infra/jwt/flask_jwt_token_provider.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, cast

from sessionguard.services._shared.ports import AccessTokenMinter, IdentityResolver


@dataclass(slots=True)
class JWTAccessTokenMinter(AccessTokenMinter):
    """
    Adapter for Flask-JWT-Extended access tokens.

    .. note::
       Requires an active Flask app context with proper JWT settings.
    """

    def create_access_token(
        self,
        *,
        identity: str,
        additional_claims: dict[str, Any] | None = None,
        expires_delta: timedelta | None = None,
        fresh: bool = False,
    ) -> str:
        from flask_jwt_extended import create_access_token as _create_access

        return cast(
            str,
            _create_access(
                identity=identity,
                additional_claims=dict(additional_claims or {}),
                expires_delta=expires_delta,
                fresh=fresh,
            ),
        )

    def decode(self, token: str) -> dict[str, Any]:
        from flask_jwt_extended import decode_token

        return cast(dict[str, Any], decode_token(token))


@dataclass(slots=True)
class JWTIdentityResolver(IdentityResolver):
    """
    Resolve the caller from an optional bearer access token.

    Returns ``None`` when the request carries no valid access token; callers
    treat that as "no identity" rather than as an error.
    """

    def current_user_id(self) -> str | None:
        from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
        from flask_jwt_extended.exceptions import JWTExtendedException
        from jwt.exceptions import PyJWTError

        try:
            verify_jwt_in_request(optional=True)
        except (JWTExtendedException, PyJWTError):
            return None
        identity = get_jwt_identity()
        return str(identity) if identity is not None else None
