"""
Timezone helpers for the single operating timezone.

Class sessions store a local wall-clock date and time with no zone attached;
they are always interpreted in ``OPERATING_TIMEZONE``.
"""

from datetime import date, datetime, time, timezone

import pytz

from .config import get_operating_timezone


def get_operating_tz():
    """Return the pytz timezone all class times are interpreted in."""
    return pytz.timezone(get_operating_timezone())


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_operating(dt: datetime) -> datetime:
    """Convert an aware datetime to the operating timezone.

    Naive datetimes are taken to already be operating-local wall-clock time.
    """
    tz = get_operating_tz()
    if dt.tzinfo is None:
        return tz.localize(dt)
    return dt.astimezone(tz)


def operating_date(dt: datetime) -> date:
    """Calendar date of ``dt`` in the operating timezone."""
    return to_operating(dt).date()


def localize(day: date, clock: time) -> datetime:
    """Combine a local date and time into an aware operating-timezone datetime."""
    return get_operating_tz().localize(datetime.combine(day, clock))


def format_time(clock: time) -> str:
    """Format a wall-clock time as HH:MM."""
    return clock.strftime("%H:%M")
