"""Shared fixtures: the app, a rolled-back database per test, and fakes.

Every test that touches SQL shares one in-memory SQLite connection. The
connection holds an outer transaction that is rolled back after each test,
so commits issued by the relational token store only release SAVEPOINTs.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from flask import Flask
from flask_jwt_extended import create_access_token
from sqlalchemy import event
from sqlalchemy.engine import Connection
from sqlalchemy.orm import scoped_session, sessionmaker

from sessionguard.core.extensions import db as _db
from sessionguard.factory import create_app
from sessionguard.services._shared.ports import (
    InMemoryRefreshTokenStore,
    RecordingSessionEventSink,
)
from tests.helpers.utils import MutableClock


class TestConfig:
    """Relational store, small batches, no reaper thread, no Redis."""

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = "test-secret"
    JWT_SECRET_KEY = "test-jwt-secret-with-enough-length-0123456789"
    JWT_TOKEN_LOCATION = ["headers"]
    API_BASE_PREFIX = "/api"
    SESSION_STORE_BACKEND = "sqlalchemy"
    REDIS_URL = None
    REFRESH_TOKEN_LIFETIME_DAYS = 7
    REFRESH_TOKEN_RETENTION_DAYS = 30
    ACCESS_TOKEN_EXPIRES_MINUTES = 60
    STORE_TIMEOUT_SECONDS = 5
    REVOKE_BATCH_SIZE = 2
    REAPER_ENABLED = False
    REAPER_INTERVAL_SECONDS = 3600
    REAPER_BATCH_SIZE = 2
    USE_PROXYFIX = False
    LOG_LEVEL = "WARNING"


@pytest.fixture(scope="session")
def app() -> Flask:
    """Application built from :class:`TestConfig`; ``DATABASE_URL`` is ignored."""
    os.environ.pop("DATABASE_URL", None)
    application = create_app(TestConfig)
    application.logger.setLevel("WARNING")
    return application


@pytest.fixture(scope="session")
def db(app):
    """Create the ``refresh_tokens`` schema once; drop it at the end of the run."""
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="session")
def connection(db) -> Iterator[Connection]:
    """The single connection every per-test transaction is opened on."""
    conn = db.engine.connect()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def session(db, connection):
    """
    Swap ``db.session`` for a session pinned to a per-test transaction.

    Outer ``BEGIN`` on the shared connection, then a SAVEPOINT. Whenever the
    ORM ends a nested transaction (a unit of work committing) a new SAVEPOINT
    is opened, so later writes in the same test still roll back with the
    outer transaction.
    """
    outer = connection.begin()
    scoped = scoped_session(sessionmaker(bind=connection, future=True))
    savepoint = connection.begin_nested()

    @event.listens_for(scoped(), "after_transaction_end")
    def _reopen_savepoint(sess, trans):  # pragma: no cover
        nonlocal savepoint
        if trans.nested and not trans._parent.nested:
            savepoint = connection.begin_nested()

    flask_session = db.session
    db.session.remove()
    db.session = scoped
    try:
        yield scoped
    finally:
        scoped.remove()
        db.session = flask_session
        outer.rollback()


@pytest.fixture(scope="session")
def faker():
    """Seeded :class:`faker.Faker` for reproducible token-like values."""
    from faker import Faker

    Faker.seed(1337)
    return Faker()


@pytest.fixture(autouse=True)
def _factories_session(session):
    """Point Factory Boy at the per-test session."""
    from tests.factories import SQLAlchemySession

    SQLAlchemySession.set(session)
    yield


# -- Session-service collaborators --------------------------------------------
@pytest.fixture()
def clock() -> MutableClock:
    """Controllable UTC clock starting at 2024-01-01T00:00:00Z."""
    return MutableClock()


@pytest.fixture()
def events() -> RecordingSessionEventSink:
    """Audit sink recording every emitted session event."""
    return RecordingSessionEventSink()


@pytest.fixture()
def memory_store() -> InMemoryRefreshTokenStore:
    return InMemoryRefreshTokenStore()


@pytest.fixture()
def freeze_time() -> Callable[[str | None], Any]:
    """``freeze_time("2024-01-08T00:00:01Z")`` as a context manager factory."""
    from freezegun import freeze_time as _freeze_time

    def _frozen(target: str | None = None) -> Any:
        return _freeze_time(target or "2024-01-01")

    return _frozen


# -- HTTP helpers --------------------------------------------------------------
@pytest.fixture()
def client(app, session):
    """Flask test client sharing the transactional session."""
    return app.test_client()


@pytest.fixture()
def auth_headers(app) -> Callable[..., dict[str, str]]:
    """Build ``Authorization`` headers for a user id and optional roles."""

    def _factory(user_id: str, *, roles: list[str] | None = None) -> dict[str, str]:
        with app.app_context():
            token = create_access_token(
                identity=user_id, additional_claims={"roles": roles or []}
            )
        return {"Authorization": f"Bearer {token}"}

    return _factory
