"""Tiny helpers shared across test modules."""

from __future__ import annotations

import itertools
from datetime import UTC, datetime, timedelta


class MutableClock:
    """Callable UTC clock that tests move forward explicitly."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        """Move the clock forward by ``timedelta(**delta)`` and return the new time."""
        self.now = self.now + timedelta(**delta)
        return self.now


class SequenceTokens:
    """Deterministic token generator yielding ``prefix-1``, ``prefix-2``, ..."""

    def __init__(self, prefix: str = "tok", values: list[str] | None = None) -> None:
        self._values = iter(values) if values is not None else None
        self._counter = itertools.count(1)
        self.prefix = prefix

    def __call__(self) -> str:
        if self._values is not None:
            return next(self._values)
        return f"{self.prefix}-{next(self._counter)}"
