"""Session endpoints: refresh rotation, logout and active-session listing."""

from __future__ import annotations

from flask import Blueprint, request
from flask_jwt_extended import get_jwt_identity, unset_jwt_cookies

from sessionguard.api.deps import client_ip, json_response, no_store, require_auth, timing
from sessionguard.core.sessions import get_session_service
from sessionguard.infra.jwt.flask_jwt_token_provider import JWTIdentityResolver
from sessionguard.schemas import (
    LogoutResponseSchema,
    RefreshSchema,
    SessionSchema,
    TokenPairSchema,
)
from sessionguard.services.sessions.dto import LogoutIn, RefreshIn

bp = Blueprint("auth", __name__)

refresh_schema = RefreshSchema()
token_schema = TokenPairSchema()
logout_schema = LogoutResponseSchema()
session_schema = SessionSchema()


@bp.post("/refresh")
@no_store
@timing
def refresh():
    """Exchange a refresh token for a rotated one plus a new access token."""

    data = refresh_schema.load(request.get_json(silent=True) or {})
    service = get_session_service()
    pair = service.refresh(RefreshIn(refresh_token=data["refresh_token"], client_ip=client_ip()))
    return json_response({"data": token_schema.dump(pair)})


@bp.post("/logout")
@timing
def logout():
    """Revoke every refresh token of the caller; always reports success."""

    user_id = JWTIdentityResolver().current_user_id()
    service = get_session_service()
    out = service.logout(LogoutIn(user_id=user_id, client_ip=client_ip()))
    response = json_response({"data": logout_schema.dump(out)})
    # external session teardown (cookie-based clients)
    unset_jwt_cookies(response)
    return response


@bp.get("/sessions")
@require_auth
@timing
def list_sessions():
    """List the caller's active sessions without exposing token values."""

    user_id = str(get_jwt_identity())
    views = get_session_service().list_sessions(user_id)
    return json_response({"data": session_schema.dump(views, many=True)})
