"""Integration tests for administrative revocation and health."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import ProgrammingError

from sessionguard.core.sessions import get_session_service
from sessionguard.services._shared.errors import StorageUnavailable
from sessionguard.services.sessions.dto import StartSessionIn


def _revoke_url(user_id: str) -> str:
    return f"/api/v1/admin/users/{user_id}/revoke-tokens"


def test_admin_revocation_requires_admin_role(client, auth_headers) -> None:
    resp = client.post(_revoke_url("u1"), headers=auth_headers("someone", roles=["user"]))

    assert resp.status_code == 403
    assert resp.get_json()["code"] == "forbidden"


def test_admin_revocation_requires_auth(client) -> None:
    assert client.post(_revoke_url("u1")).status_code == 401


def test_admin_revokes_every_token(client, app, auth_headers) -> None:
    with app.app_context():
        service = get_session_service()
        tokens = [
            service.start_session(StartSessionIn(user_id="u1")).refresh_token for _ in range(3)
        ]

    resp = client.post(
        _revoke_url("u1"),
        json={"reason": "account compromised"},
        headers=auth_headers("root", roles=["admin"]),
    )

    assert resp.status_code == 200
    assert resp.get_json()["data"] == {
        "success": True,
        "message": "Successfully revoked 3 token(s) for user u1",
        "tokens_revoked": 3,
    }
    for token in tokens:
        resp = client.post("/api/v1/auth/refresh", json={"refresh_token": token})
        assert resp.status_code == 401


def test_admin_revocation_of_unknown_user_reports_zero(client, auth_headers) -> None:
    resp = client.post(_revoke_url("nobody"), headers=auth_headers("root", roles=["admin"]))

    assert resp.status_code == 200
    assert resp.get_json()["data"]["tokens_revoked"] == 0


def test_health_reports_store_and_reaper(client) -> None:
    resp = client.get("/api/v1/health")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "ok"
    assert body["db"] == "ok"
    assert body["store"] == "sqlalchemy"
    assert body["reaper"]["running"] is False
    assert body["store_status"] == "ok"


@pytest.mark.parametrize(
    "failure",
    [
        StorageUnavailable("connection refused"),
        ProgrammingError("SELECT", {}, Exception("no such table: refresh_tokens")),
    ],
    ids=["unavailable", "database-error"],
)
def test_health_degrades_when_store_is_unreachable(app, client, monkeypatch, failure) -> None:
    with app.app_context():
        store = get_session_service().store

    def _down(*args, **kwargs):
        raise failure

    monkeypatch.setattr(type(store), "get_by_token", _down)

    resp = client.get("/api/v1/health")

    assert resp.status_code == 503
    body = resp.get_json()
    assert body["status"] == "degraded"
    assert body["store_status"] == "fail"
