"""
Core Utilities.

Shared utility functions used across the backend.
All modules should import utilities from this module.
"""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-naive datetime.

    All datetime values in the application should be timezone-naive
    and assumed to be UTC. This ensures consistent behavior across
    the codebase and simplifies database storage.

    Returns:
        Current UTC time with tzinfo stripped
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def next_timestamp(previous: datetime) -> datetime:
    """
    Return a UTC timestamp strictly later than `previous`.

    Two writes inside the same clock tick still get ordered update
    timestamps: the later one is bumped by a microsecond.
    """
    now = utc_now()
    if now <= previous:
        return previous + timedelta(microseconds=1)
    return now


def format_timestamp(value: datetime) -> str:
    """Render a naive-UTC datetime as ISO 8601 with microseconds and a Z suffix."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
