from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Protocol

AUDIT_LOGGER_NAME = "sessionguard.audit"


def token_fingerprint(token: str | None) -> str | None:
    """
    Return a short, non-reversible label for a token value.

    Refresh tokens are bearer secrets; logs only ever carry this fingerprint.
    """
    if not token:
        return None
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:12]


@dataclass(frozen=True, slots=True)
class SessionEvent:
    """
    Structured audit event emitted at each session decision point.

    :ivar name: ``issued``, ``rotated``, ``revoked``, ``revoked_all``,
        ``reuse_detected``, ``rejected`` or ``reaped``.
    :ivar user_id: Owner identity, when known.
    :ivar session_id: Fingerprint of the session root.
    :ivar token_fp: Fingerprint of the token involved.
    :ivar client_ip: Client address of the request.
    :ivar count: Number of records affected (bulk operations).
    :ivar reason: Extra classification (e.g. rejection reason).
    """

    name: str
    user_id: str | None = None
    session_id: str | None = None
    token_fp: str | None = None
    client_ip: str | None = None
    count: int | None = None
    reason: str | None = None

    def as_extra(self) -> dict[str, Any]:
        payload = {
            "event": self.name,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "token_fp": self.token_fp,
            "client_ip": self.client_ip,
            "count": self.count,
            "reason": self.reason,
        }
        return {k: v for k, v in payload.items() if v is not None}


class SessionEventSink(Protocol):
    """Observability port receiving session audit events."""

    def emit(self, event: SessionEvent) -> None: ...


# Events that indicate a possible credential theft
_WARNING_EVENTS = frozenset({"reuse_detected"})


class LoggingSessionEventSink(SessionEventSink):
    """Default sink writing events as structured records on the audit logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(AUDIT_LOGGER_NAME)

    def emit(self, event: SessionEvent) -> None:
        level = logging.WARNING if event.name in _WARNING_EVENTS else logging.INFO
        self.logger.log(level, "session.%s", event.name, extra=event.as_extra())


@dataclass
class RecordingSessionEventSink(SessionEventSink):
    """In-memory sink used in unit tests to assert on emitted events."""

    events: list[SessionEvent] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def emit(self, event: SessionEvent) -> None:
        with self._lock:
            self.events.append(event)

    def names(self) -> list[str]:
        with self._lock:
            return [e.name for e in self.events]
