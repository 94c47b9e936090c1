"""
Time helpers.

All timestamps in AuthGuard are naive UTC datetimes so they compare cleanly
with values read back from SQLite and PostgreSQL ``DateTime`` columns.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def minutes_between(start: datetime, end: datetime) -> float:
    """Signed span between two instants in minutes."""
    return (end - start).total_seconds() / 60


def to_naive_utc(value: datetime) -> datetime:
    """Aware datetimes are converted to UTC and stripped; naive ones are taken as UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
