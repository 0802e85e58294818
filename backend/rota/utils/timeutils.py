"""
Calendar helpers for epoch-millisecond shift times.

Shift instants are stored as epoch milliseconds. Calendar days, weeks and
time-of-day are interpreted in the zone named by ``ROTA_TIMEZONE`` (UTC when
unset).
"""

import os
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional, Tuple

DAY_MS = 24 * 60 * 60 * 1000


def get_zone(name: Optional[str] = None) -> tzinfo:
    name = name or os.getenv("ROTA_TIMEZONE", "UTC")
    if name.upper() == "UTC":
        return timezone.utc
    from zoneinfo import ZoneInfo
    return ZoneInfo(name)


def to_millis(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def from_millis(ms: int, tz: Optional[tzinfo] = None) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz or get_zone())


def local_date(ms: int, tz: Optional[tzinfo] = None) -> date:
    return from_millis(ms, tz).date()


def time_of_day(ms: int, tz: Optional[tzinfo] = None) -> Tuple[int, int]:
    dt = from_millis(ms, tz)
    return dt.hour, dt.minute


def at_time(day: date, hour: int, minute: int, tz: Optional[tzinfo] = None) -> int:
    """Epoch millis for ``day`` at hour:minute local time."""
    dt = datetime.combine(day, time(hour, minute), tzinfo=tz or get_zone())
    return to_millis(dt)


def start_of_day(day: date, tz: Optional[tzinfo] = None) -> int:
    return at_time(day, 0, 0, tz)


def end_of_day(day: date, tz: Optional[tzinfo] = None) -> int:
    """Last millisecond of ``day`` (23:59:59.999)."""
    return start_of_day(day + timedelta(days=1), tz) - 1


def week_start(ref: date) -> date:
    """Most recent Monday on or before ``ref``."""
    return ref - timedelta(days=ref.weekday())


def week_range(ref: date, tz: Optional[tzinfo] = None) -> Tuple[int, int]:
    """Monday 00:00:00.000 through Sunday 23:59:59.999 of the week holding ``ref``."""
    monday = week_start(ref)
    return start_of_day(monday, tz), end_of_day(monday + timedelta(days=6), tz)


def sunday_first_weekday(day: date) -> int:
    # Python weekday() is Monday=0; rota weekdays are Sunday=0..Saturday=6
    return (day.weekday() + 1) % 7


def parse_hhmm(value: str) -> Tuple[int, int]:
    hour, minute = value.split(":")
    return int(hour), int(minute)


def compute_span(day: date, start: str, end: Optional[str], tz: Optional[tzinfo] = None,
                 default_hours: int = 8) -> Tuple[int, int]:
    """Start/end millis for a shift on ``day`` given ``HH:mm`` strings.

    An end at or before the start rolls to the next calendar day. Without an
    end, the shift lasts ``default_hours``.
    """
    tz = tz or get_zone()
    start_ms = at_time(day, *parse_hhmm(start), tz)
    if not end:
        return start_ms, start_ms + default_hours * 60 * 60 * 1000
    end_ms = at_time(day, *parse_hhmm(end), tz)
    if end_ms <= start_ms:
        end_ms = at_time(day + timedelta(days=1), *parse_hhmm(end), tz)
    return start_ms, end_ms


def parse_iso_date(value: str) -> date:
    return date.fromisoformat(value)
