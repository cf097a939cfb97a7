# tests/unit/services/test_session_service.py
from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from sessionguard.services._shared.deadline import Deadline
from sessionguard.services._shared.errors import (
    AuthenticationFailure,
    OperationCancelled,
    ValidationError,
)
from sessionguard.services._shared.ports import (
    InMemoryRefreshTokenStore,
    RevocationReason,
    StubAccessTokenMinter,
    token_fingerprint,
)
from sessionguard.services.sessions.dto import (
    LogoutIn,
    LogoutOut,
    RefreshIn,
    RevokeUserTokensIn,
    SessionConfig,
    StartSessionIn,
    TokenPairOut,
)
from sessionguard.services.sessions.service import SessionService
from tests.helpers.utils import SequenceTokens


# ------------------------------ Fixtures ---------------------------------- #
@pytest.fixture()
def minter() -> StubAccessTokenMinter:
    return StubAccessTokenMinter()


@pytest.fixture()
def service(memory_store, minter, events, clock) -> SessionService:
    """
    Build a SessionService wired to in-memory doubles.

    .. note::
       Token values are deterministic (``T-1``, ``T-2``, ...).
    """
    return SessionService(
        store=memory_store,
        minter=minter,
        events=events,
        config=SessionConfig(revoke_batch_size=2, timeout_seconds=None),
        clock=clock,
        generator=SequenceTokens("T"),
    )


# ------------------------------ Start ------------------------------------- #
def test_start_session_returns_token_pair(service, minter, clock):
    pair = service.start_session(StartSessionIn(user_id="u1", client_ip="10.0.0.1"))

    assert isinstance(pair, TokenPairOut)
    assert pair.refresh_token == "T-1"
    assert pair.token_type == "Bearer"
    assert pair.expires_in == 3600
    assert pair.refresh_expires_at == clock() + timedelta(days=7)
    claims = minter.issued[pair.access_token]
    assert claims["sub"] == "u1"
    assert claims["fresh"] is True
    assert claims["sid"] == token_fingerprint("T-1")


def test_start_session_requires_user_id(service):
    with pytest.raises(ValidationError):
        service.start_session(StartSessionIn(user_id="  "))


# ------------------------------ Refresh ----------------------------------- #
def test_refresh_rotates_and_keeps_session_id(service, minter, memory_store, clock):
    first = service.start_session(StartSessionIn(user_id="u1"))
    clock.advance(minutes=30)

    second = service.refresh(RefreshIn(refresh_token=first.refresh_token, client_ip="10.0.0.9"))

    assert second.refresh_token == "T-2"
    assert second.refresh_expires_at == clock() + timedelta(days=7)
    claims = minter.issued[second.access_token]
    assert claims["fresh"] is False
    assert claims["sid"] == token_fingerprint("T-1")
    assert memory_store.get_by_token("T-1").replaced_by_token == "T-2"


def test_refresh_reuse_revokes_successor(service, memory_store):
    t1 = service.start_session(StartSessionIn(user_id="u1")).refresh_token
    t2 = service.refresh(RefreshIn(refresh_token=t1)).refresh_token

    with pytest.raises(AuthenticationFailure):
        service.refresh(RefreshIn(refresh_token=t1))

    assert (
        memory_store.get_by_token(t2).revocation_reason
        == RevocationReason.REUSE_DETECTED.value
    )
    with pytest.raises(AuthenticationFailure):
        service.refresh(RefreshIn(refresh_token=t2))


def test_refresh_with_cancelled_deadline_changes_nothing(service, memory_store):
    t1 = service.start_session(StartSessionIn(user_id="u1")).refresh_token
    dl = Deadline.none()
    dl.cancel()

    with pytest.raises(OperationCancelled):
        service.refresh(RefreshIn(refresh_token=t1), deadline=dl)

    assert memory_store.get_by_token(t1).revoked_at is None


def test_concurrent_refresh_of_same_token_yields_one_winner(memory_store, minter, clock):
    """
    GIVEN two clients presenting the same token at once
    THEN exactly one rotation succeeds and the loser triggers chain revocation.
    """
    service = SessionService(
        store=memory_store, minter=minter, clock=clock, generator=SequenceTokens("C")
    )
    token = service.start_session(StartSessionIn(user_id="u1")).refresh_token
    barrier = threading.Barrier(2)
    results: list[object] = []
    lock = threading.Lock()

    def _worker() -> None:
        barrier.wait()
        try:
            outcome: object = service.refresh(RefreshIn(refresh_token=token))
        except AuthenticationFailure as exc:
            outcome = exc
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=_worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    pairs = [r for r in results if isinstance(r, TokenPairOut)]
    failures = [r for r in results if isinstance(r, AuthenticationFailure)]
    assert len(pairs) == 1
    assert len(failures) == 1
    assert memory_store.get_active_for_user("u1", now=clock()) == []


# ------------------------------ Logout ------------------------------------ #
def test_logout_revokes_every_token_of_user(service, memory_store, clock):
    t3 = service.start_session(StartSessionIn(user_id="u1")).refresh_token
    t4 = service.start_session(StartSessionIn(user_id="u1")).refresh_token
    other = service.start_session(StartSessionIn(user_id="u2")).refresh_token

    out = service.logout(LogoutIn(user_id="u1", client_ip="1.2.3.4"))

    assert out == LogoutOut(message="Logout successful")
    for token in (t3, t4):
        record = memory_store.get_by_token(token)
        assert record.revoked_at == clock()
        assert record.revoked_by_ip == "1.2.3.4"
        assert record.revocation_reason == RevocationReason.LOGOUT.value
    assert memory_store.get_by_token(other).is_active(clock())


def test_logout_without_identity_still_succeeds(service, memory_store, events):
    token = service.start_session(StartSessionIn(user_id="u1")).refresh_token

    out = service.logout(LogoutIn(user_id=None))

    assert out.message == "Logout successful"
    assert memory_store.get_by_token(token).revoked_at is None
    assert "revoked_all" not in events.names()


def test_logout_twice_is_a_no_op(service):
    service.start_session(StartSessionIn(user_id="u1"))
    service.logout(LogoutIn(user_id="u1"))

    assert service.logout(LogoutIn(user_id="u1")).message == "Logout successful"


# ------------------------------ Admin ------------------------------------- #
def test_revoke_user_tokens_reports_count(service, memory_store, caplog):
    for _ in range(3):
        service.start_session(StartSessionIn(user_id="u1"))

    out = service.revoke_user_tokens(
        RevokeUserTokensIn(user_id="u1", client_ip="9.9.9.9", reason="laptop stolen")
    )

    assert out.success is True
    assert out.tokens_revoked == 3
    assert out.message == "Successfully revoked 3 token(s) for user u1"
    assert memory_store.get_by_token("T-1").revocation_reason == RevocationReason.ADMIN.value
    assert "laptop stolen" in caplog.text

    again = service.revoke_user_tokens(RevokeUserTokensIn(user_id="u1"))
    assert again.tokens_revoked == 0
    assert again.message == "Successfully revoked 0 token(s) for user u1"


def test_revoke_user_tokens_requires_user_id(service):
    with pytest.raises(ValidationError):
        service.revoke_user_tokens(RevokeUserTokensIn(user_id=""))


# ------------------------------ Listing ----------------------------------- #
def test_list_sessions_hides_token_values(service, clock):
    t1 = service.start_session(StartSessionIn(user_id="u1", client_ip="1.1.1.1")).refresh_token
    clock.advance(minutes=1)
    t2 = service.start_session(StartSessionIn(user_id="u1")).refresh_token
    service.refresh(RefreshIn(refresh_token=t2))

    views = service.list_sessions("u1")

    assert [v.session_id for v in views] == [token_fingerprint(t1), token_fingerprint(t2)]
    assert views[0].created_by_ip == "1.1.1.1"
    assert all(t1 not in repr(v) for v in views)


def test_service_applies_default_timeout(minter):
    service = SessionService(store=InMemoryRefreshTokenStore(), minter=minter)
    dl = service.deadline()

    assert dl.remaining() is not None
    assert dl.remaining() <= 5.0
