"""Timestamp helpers."""

from datetime import UTC, datetime


def as_utc(moment: datetime) -> datetime:
    """Return an aware timestamp, treating naive values as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment
