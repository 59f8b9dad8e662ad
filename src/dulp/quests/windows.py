"""Daily and weekly quest windows.

Daily windows run local midnight to local midnight. Weekly windows start at
local midnight on Sunday and expire at the following Sunday midnight, so a
Sunday always opens a new week.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo


@lru_cache
def quest_zone(name: str) -> tzinfo:
    """Resolve the configured quest time zone."""
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def _midnight(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def daily_window(now: datetime, tz: tzinfo = timezone.utc) -> tuple[datetime, datetime]:
    """(start, expires_at) of the day containing now."""
    today = now.astimezone(tz).date()
    return _midnight(today, tz), _midnight(today + timedelta(days=1), tz)


def get_sunday(day: date) -> date:
    """Sunday on or before day."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def weekly_window(now: datetime, tz: tzinfo = timezone.utc) -> tuple[datetime, datetime]:
    """(start, expires_at) of the Sunday-based week containing now."""
    sunday = get_sunday(now.astimezone(tz).date())
    return _midnight(sunday, tz), _midnight(sunday + timedelta(days=7), tz)


def progress_key(quest_id: str, window_start: datetime) -> str:
    """Quest progress key, e.g. 'daily_spin_wheel@2025-03-02'."""
    return f"{quest_id}@{window_start.date().isoformat()}"


def key_window_date(key: str) -> date | None:
    _, _, stamp = key.partition("@")
    try:
        return date.fromisoformat(stamp)
    except ValueError:
        return None
