"""Datetime utility functions for task bookkeeping."""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def elapsed_seconds(since: datetime, now: datetime | None = None) -> float:
    """Seconds elapsed between ``since`` and ``now`` (default: the current time).

    Naive datetimes are treated as UTC.
    """
    if since.tzinfo is None:
        since = since.replace(tzinfo=UTC)
    current = now or utc_now()
    if current.tzinfo is None:
        current = current.replace(tzinfo=UTC)
    return max(0.0, (current - since).total_seconds())
