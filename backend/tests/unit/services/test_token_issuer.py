# tests/unit/services/test_token_issuer.py
from __future__ import annotations

from datetime import timedelta

import pytest

from sessionguard.services._shared.errors import TokenCollisionError
from sessionguard.services.sessions.issuer import TOKEN_BYTES, TokenIssuer, generate_token
from tests.helpers.records import make_record
from tests.helpers.utils import SequenceTokens

LIFETIME = timedelta(days=7)


def test_generate_token_is_url_safe_and_long():
    values = {generate_token() for _ in range(50)}

    assert len(values) == 50
    for value in values:
        assert len(value) >= TOKEN_BYTES  # base64 of 64 bytes is ~86 chars
        assert set(value) <= set(
            "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
        )


def test_issue_creates_root_record(memory_store, events, clock):
    issuer = TokenIssuer(
        store=memory_store, events=events, clock=clock, generator=SequenceTokens()
    )

    record = issuer.issue("u1", "10.0.0.1", LIFETIME)

    assert record.token == "tok-1"
    assert record.session_root == "tok-1"
    assert record.parent_token is None
    assert record.created_at == clock()
    assert record.expires_at == clock() + LIFETIME
    assert record.created_by_ip == "10.0.0.1"
    assert memory_store.get_by_token("tok-1") == record
    assert events.names() == ["issued"]
    # audit events never carry the raw value
    assert events.events[0].token_fp != "tok-1"


def test_issue_retries_on_collision(memory_store, events, clock):
    memory_store.create(make_record("dup", user_id="someone-else"))
    issuer = TokenIssuer(
        store=memory_store,
        events=events,
        clock=clock,
        generator=SequenceTokens(values=["dup", "fresh"]),
    )

    record = issuer.issue("u1", None, LIFETIME)

    assert record.token == "fresh"
    assert memory_store.get_by_token("dup").user_id == "someone-else"


def test_issue_gives_up_after_max_attempts(memory_store, clock):
    memory_store.create(make_record("dup"))
    issuer = TokenIssuer(
        store=memory_store, clock=clock, generator=lambda: "dup", max_attempts=3
    )

    with pytest.raises(TokenCollisionError):
        issuer.issue("u1", None, LIFETIME)


def test_build_inherits_session_root_from_parent(memory_store, clock):
    issuer = TokenIssuer(store=memory_store, clock=clock, generator=SequenceTokens())
    parent = make_record("root")
    child = make_record("child", parent=parent)

    successor = issuer.build(
        user_id="u1", client_ip="1.1.1.1", lifetime=LIFETIME, now=clock(), parent=child
    )

    assert successor.session_root == "root"
    assert successor.parent_token == "child"
    assert memory_store.get_by_token(successor.token) is None  # build never persists
