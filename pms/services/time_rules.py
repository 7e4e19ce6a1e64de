"""
Time helpers for attendance.
Stored timestamps are naive UTC; day boundaries are evaluated in a local timezone.
"""
from datetime import datetime, time, timedelta
from typing import Optional

import pytz

from ..config import settings


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=pytz.UTC)
    return dt.astimezone(pytz.UTC)


def utc_to_local(utc_datetime: datetime, timezone_str: Optional[str] = None) -> datetime:
    """
    Convert a UTC datetime (naive or aware) to the given timezone.

    Returns:
        Local datetime (timezone-aware)
    """
    tz = pytz.timezone(timezone_str or settings.tz_default)
    return _as_utc(utc_datetime).astimezone(tz)


def local_to_utc(local_datetime: datetime, timezone_str: Optional[str] = None) -> datetime:
    """
    Convert a local wall-clock datetime to naive UTC.
    """
    tz = pytz.timezone(timezone_str or settings.tz_default)
    if local_datetime.tzinfo is None:
        local_dt = tz.localize(local_datetime)
    else:
        local_dt = local_datetime.astimezone(tz)
    return local_dt.astimezone(pytz.UTC).replace(tzinfo=None)


def next_local_midnight(start_utc: datetime, timezone_str: Optional[str] = None) -> datetime:
    """
    First local midnight strictly after ``start_utc``, returned as naive UTC.

    A shift starting exactly at 00:00 local runs until the following midnight.
    """
    local_start = utc_to_local(start_utc, timezone_str)
    next_day = local_start.date() + timedelta(days=1)
    return local_to_utc(datetime.combine(next_day, time(0, 0)), timezone_str)


def whole_minutes_between(start: datetime, end: datetime) -> int:
    """Floor of (end - start) in minutes, never negative."""
    seconds = (_as_utc(end) - _as_utc(start)).total_seconds()
    return max(int(seconds // 60), 0)
