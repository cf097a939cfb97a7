"""Factory Boy definition for :class:`sessionguard.models.refresh_token.RefreshToken`."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import factory

from sessionguard.models.refresh_token import RefreshToken
from tests.factories import BaseFactory

BASE_TIME = datetime(2024, 1, 1, tzinfo=UTC)


class RefreshTokenFactory(BaseFactory):
    """
    Build persisted refresh-token rows.

    Notes
    -----
    - By default every row is the root of its own rotation chain.
    - ``expires_at`` is seven days after ``created_at``.
    """

    class Meta:
        model = RefreshToken

    token = factory.Sequence(lambda n: f"rt-{n:04d}")
    user_id = factory.Sequence(lambda n: f"user-{n}")
    session_root = factory.LazyAttribute(lambda o: o.token)
    parent_token = None
    created_at = BASE_TIME
    expires_at = factory.LazyAttribute(lambda o: o.created_at + timedelta(days=7))
    created_by_ip = factory.Faker("ipv4")
    revoked_at = None
    revoked_by_ip = None
    replaced_by_token = None
    revocation_reason = None
