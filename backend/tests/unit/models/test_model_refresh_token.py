"""Tests for the RefreshToken model."""

from datetime import UTC, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from sessionguard.models.refresh_token import RefreshToken
from tests.factories.refresh_token import BASE_TIME, RefreshTokenFactory


def test_refresh_token_round_trips_aware_utc(session):
    """Datetimes come back timezone-aware in UTC."""
    RefreshTokenFactory(token="tz")
    session.commit()
    session.expire_all()

    row = session.get(RefreshToken, "tz")
    assert row.created_at == BASE_TIME
    assert row.created_at.tzinfo is not None
    assert row.expires_at.utcoffset() == timedelta(0)
    assert row.expires_at.astimezone(UTC) == BASE_TIME + timedelta(days=7)


def test_refresh_token_requires_expiry_after_creation(session):
    """The check constraint rejects non-positive lifetimes."""
    with pytest.raises(IntegrityError):
        RefreshTokenFactory(token="bad", expires_at=BASE_TIME)
    session.rollback()


def test_replacement_requires_revocation(session):
    """A replacement link without ``revoked_at`` violates the constraint."""
    with pytest.raises(IntegrityError):
        RefreshTokenFactory(token="dangling", replaced_by_token="other")
    session.rollback()


def test_repr_lists_audit_fields():
    row = RefreshToken(token="t", user_id="u1", expires_at=BASE_TIME)
    text = repr(row)
    assert "RefreshToken" in text
    assert "u1" in text
