"""
Date/time helpers — framework-agnostic.

Every component takes a ``Clock`` (a zero-argument callable returning an aware
UTC datetime) instead of calling ``datetime.now`` directly, so tests can drive
expiry deterministically.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_epoch_seconds(dt: datetime) -> int:
    """Whole UTC seconds since the epoch for *dt* (naive values assumed UTC)."""
    return int(ensure_utc(dt).timestamp())


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (as stored by MongoDB) and normalise aware ones."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def calculate_age(birth_date: date, today: date) -> int:
    """Completed years between *birth_date* and *today*."""
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age
