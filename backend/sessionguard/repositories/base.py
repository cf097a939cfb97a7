"""Persistence-only repository base for SQLAlchemy 2.x.

Repositories resolve the session (injected or Flask-scoped), build statements
and report row counts. They never commit or roll back: the unit of work owns
the transaction.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar, cast

from sqlalchemy import Executable, select
from sqlalchemy.orm import Session

from sessionguard.core.extensions import db

E = TypeVar("E")  # mapped entity


class BaseRepository(Generic[E]):
    """
    Statement helpers for a single mapped class.

    Subclasses set ``model`` and ``key``, the attribute holding the natural
    primary key (``"id"`` by default).
    """

    model: type[E]
    key: str = "id"

    def __init__(self, session: Session | None = None) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        if self._session is not None:
            return self._session
        return cast(Session, db.session)

    # ---------------------------- Reads ----------------------------

    def get(self, value: Any) -> E | None:
        """Return the entity whose ``key`` equals ``value``, or ``None``."""
        column = getattr(self.model, self.key)
        stmt = select(self.model).where(column == value)
        return cast(E | None, self.session.scalars(stmt).first())

    def scalars(self, stmt: Executable) -> list[Any]:
        """Execute ``stmt`` and return the first column of every row."""
        return list(self.session.scalars(stmt).all())

    # ---------------------------- Writes ---------------------------

    def add(self, instance: E) -> E:
        """Stage ``instance`` and flush so constraint violations surface here."""
        self.session.add(instance)
        self.session.flush()
        return instance

    def execute_count(self, stmt: Executable) -> int:
        """Execute a bulk ``UPDATE``/``DELETE`` and return the matched row count."""
        result = self.session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0)
