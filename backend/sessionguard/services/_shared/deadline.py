# comments in English; reST docstrings
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

from sessionguard.services._shared.errors import OperationCancelled


@dataclass(slots=True)
class Deadline:
    """
    Cooperative cancellation/timeout passed through store and service calls.

    Stores call :meth:`check` before starting work and right before committing,
    so an elapsed deadline always ends in a rollback, never a partial write.

    :ivar expires_at: ``time.monotonic()`` value after which the call is cancelled,
        or ``None`` for no time limit.
    """

    expires_at: float | None = None
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False)

    @classmethod
    def after(cls, seconds: float | None) -> Deadline:
        """Build a deadline ``seconds`` from now (``None`` means unbounded)."""
        if seconds is None:
            return cls()
        return cls(expires_at=time.monotonic() + max(0.0, float(seconds)))

    @classmethod
    def none(cls) -> Deadline:
        """Return an unbounded deadline that can still be cancelled explicitly."""
        return cls()

    def cancel(self) -> None:
        """Cancel every operation observing this deadline."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> float | None:
        """Seconds left, ``0.0`` when elapsed, ``None`` when unbounded."""
        if self._cancelled.is_set():
            return 0.0
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def check(self) -> None:
        """
        Raise when the deadline has elapsed or was cancelled.

        :raises OperationCancelled: If no time is left.
        """
        if self.expired():
            raise OperationCancelled()


def ensure_deadline(deadline: Deadline | None) -> Deadline:
    """Return ``deadline`` or an unbounded one for callers that pass nothing."""
    return deadline if deadline is not None else Deadline.none()
