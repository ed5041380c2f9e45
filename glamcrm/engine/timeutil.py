"""
Tolerant timestamp handling.
Every datetime leaving this module is naive and expressed in the configured local timezone,
except to_aware(), which pins naive local time to that zone for storage.
"""

from datetime import date, datetime, time, timedelta
from typing import Any, Optional, Tuple
from zoneinfo import ZoneInfo

from glamcrm.config import config

DAY = timedelta(days=1)
HOUR = timedelta(hours=1)


def _zone() -> ZoneInfo:
    return ZoneInfo(config.TIMEZONE)


def to_local(moment: datetime) -> datetime:
    """Convert an aware datetime into naive local time. Naive input is assumed local already."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(_zone()).replace(tzinfo=None)


def to_aware(moment: datetime) -> datetime:
    """Attach the studio zone to naive local time. Aware input is returned unchanged."""
    if moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=_zone())



def local_now() -> datetime:
    return datetime.now(_zone()).replace(tzinfo=None)


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a datetime, date or ISO-8601 string.
    Returns None for empty or unparseable input instead of raising.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_local(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    if text[-1] in 'Zz':
        text = text[:-1] + '+00:00'
    try:
        return to_local(datetime.fromisoformat(text))
    except ValueError:
        return None


def start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min)


def day_bounds(day: Any) -> Tuple[datetime, datetime]:
    """(00:00, 23:59) of the given day in local time."""
    moment = parse_datetime(day)
    if moment is None:
        raise ValueError(f"Invalid day: {day!r}")
    start = start_of_day(moment)
    return start, start.replace(hour=23, minute=59)
