"""UTC timestamp helpers.

Timestamps are stored as ``YYYY-MM-DD HH:MM:SS`` strings in UTC, the format
produced by both SQLite ``datetime('now')`` and MySQL ``DATETIME`` columns,
so values written from Python and from SQL compare correctly.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

DB_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def to_db(dt: datetime | None) -> str | None:
    """Format a datetime for storage (naive values are assumed UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(UTC)
    return dt.strftime(DB_FORMAT)


def from_db(value: str | datetime | None) -> datetime | None:
    """Parse a stored timestamp into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    dt = datetime.fromisoformat(str(value))
    return dt if dt.tzinfo else dt.replace(tzinfo=UTC)


def db_now() -> str:
    """Current UTC time in storage format."""
    return utc_now().strftime(DB_FORMAT)


def db_ago(*, days: int = 0, hours: int = 0, minutes: int = 0) -> str:
    """Storage-format timestamp for a moment in the past."""
    return (utc_now() - timedelta(days=days, hours=hours, minutes=minutes)).strftime(DB_FORMAT)


def db_ahead(*, days: int = 0, hours: int = 0, minutes: int = 0) -> str:
    """Storage-format timestamp for a moment in the future."""
    return (utc_now() + timedelta(days=days, hours=hours, minutes=minutes)).strftime(DB_FORMAT)
