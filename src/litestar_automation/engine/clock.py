"""Clock implementations."""

from __future__ import annotations

from datetime import datetime, timezone

__all__ = ["SystemClock", "utc"]


class SystemClock:
    """Wall clock returning timezone-aware UTC datetimes."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def utc(value: datetime) -> datetime:
    """Normalize ``value`` to an aware UTC datetime.

    Naive values are assumed to already be UTC, which is how SQLite hands
    them back.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
