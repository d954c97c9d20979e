"""
Clock and timezone normalization.

Discovery timestamps are timezone-aware UTC datetimes. Cooldown math mixes values from
the tracker, the cooldown gate and injected test clocks, so naive datetimes are never
allowed to leak in.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_tz(dt: datetime, tz_name: str = "UTC") -> datetime:
    """Ensure `dt` has tzinfo; attach `tz_name` if naive."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=ZoneInfo(tz_name))
    return dt


def to_local(dt: datetime, tz_name: str) -> datetime:
    """Convert an aware datetime to the app timezone for display."""
    return ensure_tz(dt).astimezone(ZoneInfo(tz_name))
