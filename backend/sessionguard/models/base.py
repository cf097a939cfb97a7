"""Reusable SQLAlchemy column types and mixins shared by models (typed 2.0)."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator[datetime]):
    """Timezone-aware ``DateTime`` that always round-trips as UTC.

    SQLite drops ``tzinfo`` on storage; values are normalised to UTC on bind
    and re-labelled as UTC on load so comparisons against ``datetime.now(UTC)``
    stay valid on every backend.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            # Keep original semantics: naive -> label as UTC (no conversion)
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class ReprMixin:
    """Provide a concise ``__repr__`` that never prints secret key material."""

    __repr_attrs__: tuple[str, ...] = ()

    def __repr__(self) -> str:
        """Return a short and useful string representation.

        :returns: Debug-friendly ``<ClassName attr=...>``.
        :rtype: str
        """
        cls = self.__class__.__name__
        parts = " ".join(f"{name}={getattr(self, name, None)!r}" for name in self.__repr_attrs__)
        return f"<{cls} {parts}>" if parts else f"<{cls}>"
