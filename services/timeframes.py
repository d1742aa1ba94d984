# services/timeframes.py
"""Calendar-day and week boundaries in the configured APP_TIMEZONE."""

from __future__ import annotations

import os
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo


def app_timezone() -> ZoneInfo:
    return ZoneInfo(os.getenv("APP_TIMEZONE", "UTC"))


def local_date(moment: datetime) -> date:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(app_timezone()).date()


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """[start, end) of a local calendar day, as UTC datetimes."""
    tz = app_timezone()
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(UTC), end.astimezone(UTC)


def week_start(day: date) -> date:
    """Monday of the week containing `day`."""
    return day - timedelta(days=day.weekday())


def week_bounds(monday: date) -> tuple[datetime, datetime]:
    start, _ = day_bounds(monday)
    end, _ = day_bounds(monday + timedelta(days=7))
    return start, end
