"""
Unit tests for SQLAlchemyUnitOfWork (writer), using factories.
"""

from __future__ import annotations

import pytest

from sessionguard.models import RefreshToken
from sessionguard.uow import SQLAlchemyUnitOfWork
from tests.factories.refresh_token import RefreshTokenFactory


class TestSQLAlchemyUnitOfWorkWriter:
    def test_writer_uow_commits_on_success(self, app, db, session):
        """
        GIVEN a writer UoW
        WHEN we add a refresh token via the repository and leave without exception
        THEN the transaction is committed and the row is visible afterwards.
        """
        initial = db.session.query(RefreshToken).count()

        with SQLAlchemyUnitOfWork() as uow:
            row = RefreshTokenFactory.build()  # build = no persist
            uow.refresh_tokens.add(row)

        after = db.session.query(RefreshToken).count()
        assert after == initial + 1

    def test_writer_uow_rolls_back_on_exception(self, app, db, session):
        """
        GIVEN a writer UoW
        WHEN an exception is raised inside the context
        THEN the transaction is rolled back and no rows are persisted.
        """
        initial = db.session.query(RefreshToken).count()

        with pytest.raises(RuntimeError), SQLAlchemyUnitOfWork() as uow:
            uow.refresh_tokens.add(RefreshTokenFactory.build())
            raise RuntimeError("boom")

        after = db.session.query(RefreshToken).count()
        assert after == initial
