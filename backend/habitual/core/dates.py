"""Calendar-date helpers.

Scheduling works on plain calendar dates; there is no time-of-day or instant
arithmetic anywhere in the engine. "Today" is the local date in the configured
application time zone.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterator
from zoneinfo import ZoneInfo

from habitual.core.config import settings


def local_today() -> date:
    """Return today's calendar date in the application time zone."""
    return datetime.now(ZoneInfo(settings.app_timezone)).date()


def parse_day(value: str | date) -> date:
    """Parse an ISO ``YYYY-MM-DD`` string into a date.

    Raises ValueError for anything else, including datetimes with a time part.
    """
    if isinstance(value, datetime):
        raise ValueError("Expected a calendar date, got a datetime")
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip())


def iter_days(start: date, count: int) -> Iterator[date]:
    """Yield ``count`` consecutive days beginning at ``start``."""
    for offset in range(count):
        yield start + timedelta(days=offset)
