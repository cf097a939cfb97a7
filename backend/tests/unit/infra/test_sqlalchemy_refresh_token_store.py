"""
SQLAlchemyRefreshTokenStore specifics: race handling on the conditional
update and translation of driver errors.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from sessionguard.infra.sqlalchemy.sqlalchemy_refresh_token_store import (
    SQLAlchemyRefreshTokenStore,
    to_record,
)
from sessionguard.models import RefreshToken
from sessionguard.repositories.refresh_token import RefreshTokenRepository
from sessionguard.services._shared.errors import StorageUnavailable
from sessionguard.services._shared.ports import RotationOutcome
from tests.helpers.records import T0, make_record

NOW = T0 + timedelta(hours=1)


@pytest.fixture()
def store():
    return SQLAlchemyRefreshTokenStore()


def test_to_record_snapshots_row(session):
    row = RefreshToken(
        token="t1",
        user_id="u1",
        session_root="t1",
        created_at=T0,
        expires_at=T0 + timedelta(days=7),
    )
    record = to_record(row)

    assert record.token == "t1"
    assert record.is_active(NOW)


def test_lost_conditional_update_writes_nothing(store, session, monkeypatch):
    """
    GIVEN a conditional update that matches no row (another worker won)
    WHEN rotate runs
    THEN the successor insert is rolled back and the outcome is not ROTATED.
    """
    root = make_record("t1")
    store.create(root)
    monkeypatch.setattr(
        RefreshTokenRepository, "revoke_if_unrevoked", lambda self, token, **kw: 0
    )

    outcome = store.rotate(presented="t1", successor=make_record("t2", parent=root), now=NOW)

    assert outcome is not RotationOutcome.ROTATED
    assert store.get_by_token("t2") is None
    assert store.get_by_token("t1").replaced_by_token is None


def test_operational_errors_map_to_storage_unavailable(store, monkeypatch):
    def _boom(self, token):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(RefreshTokenRepository, "get_by_token", _boom)

    with pytest.raises(StorageUnavailable):
        store.get_by_token("t1")
