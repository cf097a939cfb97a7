"""Background sweep deleting refresh tokens past their retention window."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from contextlib import AbstractContextManager, nullcontext
from datetime import timedelta
from typing import Any

from sessionguard.services._shared.base import Clock, utc_now
from sessionguard.services._shared.deadline import Deadline
from sessionguard.services._shared.errors import ServiceError
from sessionguard.services._shared.ports import (
    LoggingSessionEventSink,
    RefreshTokenStore,
    SessionEvent,
    SessionEventSink,
)

logger = logging.getLogger(__name__)


class ExpiryReaper:
    """
    Periodically delete records whose ``expires_at`` is older than ``now - retention``.

    Records inside the retention window are kept even when expired so reuse
    attempts can still be investigated. A failed sweep is logged and retried on
    the next interval; it never stops the loop.

    :param store: Backing token store.
    :param retention: Grace period kept after expiry.
    :param interval_seconds: Pause between sweeps.
    :param batch_size: Rows deleted per transaction.
    :param context_factory: Wraps each sweep (e.g. ``app.app_context``).
    :param sweep_timeout: Deadline applied to a single sweep, in seconds.
    """

    def __init__(
        self,
        *,
        store: RefreshTokenStore,
        retention: timedelta,
        interval_seconds: float = 3600.0,
        batch_size: int = 500,
        events: SessionEventSink | None = None,
        clock: Clock | None = None,
        context_factory: Callable[[], AbstractContextManager[Any]] | None = None,
        sweep_timeout: float | None = None,
    ) -> None:
        self.store = store
        self.retention = retention
        self.interval_seconds = interval_seconds
        self.batch_size = max(1, batch_size)
        self.events = events or LoggingSessionEventSink()
        self.clock = clock or utc_now
        self.context_factory = context_factory or nullcontext
        self.sweep_timeout = sweep_timeout

        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._heartbeat: float = 0.0
        self._reaped_count: int = 0
        self._failures: int = 0
        self._lock = threading.Lock()

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="token-reaper", daemon=True)
        self._thread.start()
        logger.info("Expiry reaper started")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("Expiry reaper stopped")

    def status(self) -> dict[str, Any]:
        with self._lock:
            return {
                "running": self.is_running(),
                "last_heartbeat": self._heartbeat,
                "reaped_count": self._reaped_count,
                "failures": self._failures,
            }

    def sweep(self, *, deadline: Deadline | None = None) -> int:
        """
        Run one sweep and return the number of records deleted.

        :raises StorageUnavailable: Propagated to direct callers (CLI); the
            background loop catches it.
        """
        cutoff = self.clock() - self.retention
        dl = deadline if deadline is not None else Deadline.after(self.sweep_timeout)
        with self.context_factory():
            deleted = self.store.delete_expired_before(
                cutoff, batch_size=self.batch_size, deadline=dl
            )
        with self._lock:
            self._reaped_count += deleted
        self.events.emit(SessionEvent(name="reaped", count=deleted))
        return deleted

    def run_forever(self) -> None:
        """Block the calling thread running sweeps until :meth:`stop` is called."""
        self._run_loop()

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.sweep()
            except ServiceError as exc:
                with self._lock:
                    self._failures += 1
                logger.error("Expiry sweep failed, retrying next interval: %s", exc)
            except Exception:
                with self._lock:
                    self._failures += 1
                logger.exception("Unexpected error in expiry sweep")
            with self._lock:
                self._heartbeat = time.time()
            self._stop_event.wait(max(0.01, self.interval_seconds))
