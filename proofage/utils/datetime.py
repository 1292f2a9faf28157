"""Datetime helpers.

Timestamps are stored as naive UTC datetimes; JWT claims use epoch seconds.
"""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return current UTC time as a naive datetime."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_epoch(value: datetime) -> int:
    """Convert a naive UTC datetime to integer epoch seconds."""
    return int(value.replace(tzinfo=UTC).timestamp())


def from_epoch(value: int | float) -> datetime:
    """Convert epoch seconds to a naive UTC datetime."""
    return datetime.fromtimestamp(value, UTC).replace(tzinfo=None)


def isoformat(value: datetime | None) -> str | None:
    """Render a naive UTC datetime as ISO-8601 with a Z suffix."""
    if value is None:
        return None
    return value.replace(tzinfo=UTC).isoformat().replace("+00:00", "Z")
