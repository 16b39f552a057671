# app/utils/timezone.py
"""
Time conversion helpers. Every function takes the reference timezone name
explicitly; nothing here reads the host's local timezone.

Timestamps are stored as naive UTC datetimes. A naive input is always
interpreted as UTC.
"""

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Current instant as a naive UTC datetime (storage format)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_aware_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_zone(dt: datetime, tz_name: str) -> datetime:
    return _as_aware_utc(dt).astimezone(ZoneInfo(tz_name))


def zone_hour(dt: datetime, tz_name: str) -> int:
    """Hour of day (0-23) of `dt` in the reference timezone."""
    return to_zone(dt, tz_name).hour


def zone_date(dt: datetime, tz_name: str) -> date:
    """Calendar date of `dt` in the reference timezone."""
    return to_zone(dt, tz_name).date()


def start_of_day_utc(dt: datetime, tz_name: str) -> datetime:
    """Local midnight of the day containing `dt`, as naive UTC."""
    local_midnight = datetime.combine(zone_date(dt, tz_name), time.min, tzinfo=ZoneInfo(tz_name))
    return local_midnight.astimezone(timezone.utc).replace(tzinfo=None)


def isoformat_in_zone(dt: datetime, tz_name: str) -> str:
    """ISO 8601 with milliseconds and offset, e.g. 2026-10-19T14:03:07.120+07:00"""
    return to_zone(dt, tz_name).isoformat(timespec="milliseconds")
