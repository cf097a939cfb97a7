"""
SQLAlchemy unit of work bound to the Flask-scoped session.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from sessionguard.core.extensions import db
from sessionguard.repositories import RefreshTokenRepository
from sessionguard.uow.base import UnitOfWork


class SQLAlchemyUnitOfWork(UnitOfWork):
    """
    Unit of work for the relational refresh token store.

    The transaction begins lazily on the first statement, so entering the
    block costs nothing when the caller bails out early.

    :param session: Explicit session; defaults to ``db.session``.
    :type session: :class:`sqlalchemy.orm.Session` | None
    """

    def __init__(self, session: Session | None = None) -> None:
        self.session = session if session is not None else db.session
        self.refresh_tokens = RefreshTokenRepository(session=self.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        return self

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
