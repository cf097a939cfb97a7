"""
sessionguard.services._shared.ports
===================================

Collection of *ports* (hexagonal interfaces) that define the contracts
for refresh-token storage, access-token minting and session auditing.

These ports decouple the session services from concrete implementations
of persistence, JWT signing and logging backends.

Modules
-------
- :mod:`refresh_token_store`:
    Defines :class:`~.RefreshTokenStore`, :class:`~.RefreshTokenRecord`
    and :class:`~.RotationOutcome` - storage contract with atomic rotation.

- :mod:`token_provider`:
    Defines :class:`~.AccessTokenMinter` and :class:`~.IdentityResolver` -
    the external identity collaborators.

- :mod:`session_events`:
    Defines :class:`~.SessionEventSink` - structured audit events.

Design Notes
------------
Concrete adapters (SQLAlchemy, Redis, Flask-JWT-Extended) live under
``sessionguard.infra``; in-memory doubles live next to their ports.
"""

from __future__ import annotations

from .refresh_token_store import (
    InMemoryRefreshTokenStore,
    RefreshTokenRecord,
    RefreshTokenStore,
    RevocationReason,
    RotationOutcome,
)
from .session_events import (
    LoggingSessionEventSink,
    RecordingSessionEventSink,
    SessionEvent,
    SessionEventSink,
    token_fingerprint,
)
from .token_provider import (
    AccessTokenMinter,
    IdentityResolver,
    StubAccessTokenMinter,
)

__all__ = [
    "AccessTokenMinter",
    "IdentityResolver",
    "InMemoryRefreshTokenStore",
    "LoggingSessionEventSink",
    "RecordingSessionEventSink",
    "RefreshTokenRecord",
    "RefreshTokenStore",
    "RevocationReason",
    "RotationOutcome",
    "SessionEvent",
    "SessionEventSink",
    "StubAccessTokenMinter",
    "token_fingerprint",
]
