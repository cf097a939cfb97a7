"""
Transactional boundary shared by every refresh token write.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sessionguard.repositories import RefreshTokenRepository


class UnitOfWork(ABC):
    """
    One transaction around a group of refresh token reads and writes.

    Leaving the ``with`` block commits; an exception (including a failed
    commit) rolls back and propagates. Subclasses only provide
    :meth:`commit` and :meth:`rollback`.
    """

    refresh_tokens: RefreshTokenRepository

    def __enter__(self) -> UnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.rollback()
            return
        try:
            self.commit()
        except Exception:
            self.rollback()
            raise

    @abstractmethod
    def commit(self) -> None: ...
    @abstractmethod
    def rollback(self) -> None: ...
