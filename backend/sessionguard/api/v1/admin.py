"""Administrative session endpoints."""

from __future__ import annotations

from flask import Blueprint, request

from sessionguard.api.deps import client_ip, json_response, require_role, timing
from sessionguard.core.sessions import get_session_service
from sessionguard.schemas import RevokeUserTokensResponseSchema, RevokeUserTokensSchema
from sessionguard.services.sessions.dto import RevokeUserTokensIn

bp = Blueprint("admin", __name__)

ADMIN_ROLE = "admin"

revoke_schema = RevokeUserTokensSchema()
revoke_response_schema = RevokeUserTokensResponseSchema()


@bp.post("/users/<string:user_id>/revoke-tokens")
@require_role(ADMIN_ROLE)
@timing
def revoke_user_tokens(user_id: str):
    """Revoke all refresh tokens of ``user_id`` (e.g. compromised account)."""

    data = revoke_schema.load(request.get_json(silent=True) or {})
    out = get_session_service().revoke_user_tokens(
        RevokeUserTokensIn(user_id=user_id, client_ip=client_ip(), reason=data.get("reason"))
    )
    return json_response({"data": revoke_response_schema.dump(out)})
