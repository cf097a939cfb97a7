"""Integration tests for the session endpoints."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from sessionguard.core.sessions import get_session_service
from sessionguard.infra.jwt.flask_jwt_token_provider import JWTAccessTokenMinter
from sessionguard.services._shared.errors import AUTH_FAILURE_MESSAGE
from sessionguard.services._shared.ports import token_fingerprint
from sessionguard.services.sessions.dto import StartSessionIn

REFRESH_URL = "/api/v1/auth/refresh"
LOGOUT_URL = "/api/v1/auth/logout"
SESSIONS_URL = "/api/v1/auth/sessions"


@pytest.fixture()
def start_session(app):
    """Open a session through the wired service and return its refresh token."""

    def _start(user_id: str = "u1") -> str:
        with app.app_context():
            pair = get_session_service().start_session(
                StartSessionIn(user_id=user_id, client_ip="127.0.0.1")
            )
        return pair.refresh_token

    return _start


def test_refresh_rotates_token(app, client, start_session) -> None:
    """A valid refresh token is exchanged for a new pair."""

    token = start_session()

    resp = client.post(REFRESH_URL, json={"refresh_token": token})

    assert resp.status_code == 200
    assert resp.headers["Cache-Control"] == "no-store"
    data = resp.get_json()["data"]
    assert data["token_type"] == "Bearer"
    assert data["expires_in"] == 3600
    assert data["access_token"]
    assert data["refresh_token"] != token
    expires = datetime.fromisoformat(data["refresh_expires_at"])
    assert expires - datetime.now(UTC) > timedelta(days=6)
    with app.app_context():
        claims = JWTAccessTokenMinter().decode(data["access_token"])
    assert claims["sub"] == "u1"
    assert claims["fresh"] is False
    assert claims["sid"] == token_fingerprint(token)


def test_refresh_failures_are_indistinguishable(client, start_session) -> None:
    """Unknown and reused tokens get the same 401 body."""

    token = start_session()
    assert client.post(REFRESH_URL, json={"refresh_token": token}).status_code == 200

    reused = client.post(REFRESH_URL, json={"refresh_token": token})
    unknown = client.post(REFRESH_URL, json={"refresh_token": "not-a-token"})

    for resp in (reused, unknown):
        assert resp.status_code == 401
        assert resp.mimetype == "application/problem+json"
        assert resp.get_json()["detail"] == AUTH_FAILURE_MESSAGE
    assert reused.get_json()["code"] == unknown.get_json()["code"]


def test_reuse_kills_the_rotated_successor(client, start_session) -> None:
    token = start_session()
    successor = client.post(REFRESH_URL, json={"refresh_token": token}).get_json()["data"][
        "refresh_token"
    ]

    client.post(REFRESH_URL, json={"refresh_token": token})
    resp = client.post(REFRESH_URL, json={"refresh_token": successor})

    assert resp.status_code == 401


@pytest.mark.parametrize("payload", [{}, {"refresh_token": ""}, {"refresh_token": "   "}])
def test_refresh_rejects_missing_token(client, payload) -> None:
    resp = client.post(REFRESH_URL, json=payload)

    assert resp.status_code == 422


def test_logout_revokes_all_tokens_of_caller(client, start_session, auth_headers) -> None:
    """Logout revokes every refresh token of the authenticated user."""

    t3 = start_session("u1")
    t4 = start_session("u1")
    other = start_session("u2")

    resp = client.post(LOGOUT_URL, headers=auth_headers("u1"))

    assert resp.status_code == 200
    assert resp.get_json() == {"data": {"message": "Logout successful"}}
    for token in (t3, t4):
        assert client.post(REFRESH_URL, json={"refresh_token": token}).status_code == 401
    assert client.post(REFRESH_URL, json={"refresh_token": other}).status_code == 200


def test_logout_without_identity_succeeds(client, start_session) -> None:
    token = start_session("u1")

    resp = client.post(LOGOUT_URL)

    assert resp.status_code == 200
    assert resp.get_json()["data"]["message"] == "Logout successful"
    assert client.post(REFRESH_URL, json={"refresh_token": token}).status_code == 200


def test_logout_with_garbage_bearer_succeeds(client) -> None:
    resp = client.post(LOGOUT_URL, headers={"Authorization": "Bearer nonsense"})

    assert resp.status_code == 200


def test_sessions_requires_auth(client) -> None:
    assert client.get(SESSIONS_URL).status_code == 401


def test_sessions_lists_active_chains(client, start_session, auth_headers) -> None:
    token = start_session("u1")
    start_session("u1")
    client.post(REFRESH_URL, json={"refresh_token": token})

    resp = client.get(SESSIONS_URL, headers=auth_headers("u1"))

    assert resp.status_code == 200
    sessions = resp.get_json()["data"]
    assert len(sessions) == 2
    keys = {"session_id", "created_at", "expires_at", "created_by_ip"}
    assert all(set(s) == keys for s in sessions)
    assert token not in resp.get_data(as_text=True)


def test_refresh_after_expiry_is_rejected(client, start_session, freeze_time) -> None:
    """A token presented after its absolute lifetime gets the uniform 401."""

    with freeze_time("2024-01-01T00:00:00Z"):
        token = start_session()

    with freeze_time("2024-01-08T00:00:01Z"):
        resp = client.post(REFRESH_URL, json={"refresh_token": token})

    assert resp.status_code == 401
    assert resp.get_json()["detail"] == AUTH_FAILURE_MESSAGE
