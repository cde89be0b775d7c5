"""Datetime utilities for consistent timezone handling"""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Current UTC time, timezone-aware"""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def expires_after(start: datetime, hours: int) -> datetime:
    """Expiry timestamp for a freshness window starting at start"""
    return start + timedelta(hours=hours)
