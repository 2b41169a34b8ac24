"""
DateTime utilities for service days, stay ranges and scheduled sends.

All persisted datetimes are UTC. Lot-local reasoning (service day rollover,
review nudge hour) goes through pytz timezones.
"""
import logging
from datetime import datetime, timedelta, date, time, tzinfo
from typing import Optional, Tuple

import pytz

from core.settings import settings


logger = logging.getLogger(__name__)

UTC = pytz.utc


def get_current_datetime() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(UTC)


def get_timezone(name: Optional[str]) -> tzinfo:
    """
    Resolve a timezone name, falling back to the configured default.

    Args:
        name: IANA timezone name (e.g. "America/Denver"), may be empty

    Returns:
        pytz timezone
    """
    if name:
        try:
            return pytz.timezone(name)
        except pytz.UnknownTimeZoneError:
            logger.warning(f"Unknown timezone {name!r}, using {settings.default_timezone}")
    return pytz.timezone(settings.default_timezone)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive values (SQLite drops tzinfo on read) are taken to already be UTC.
    """
    if dt.tzinfo is None:
        return UTC.localize(dt)
    return dt.astimezone(UTC)


def service_day(now: datetime, tz: tzinfo, rollover_hour: int = 8) -> date:
    """
    Calendar day a stay booked at `now` starts on.

    Before the rollover hour (lot-local) the booking still belongs to the
    previous night, so a 1am booking does not start "tomorrow".

    Args:
        now: Current moment (any timezone)
        tz: Lot timezone
        rollover_hour: Local hour at which the new service day begins

    Returns:
        Service day as a date
    """
    local = ensure_utc(now).astimezone(tz)
    if local.hour < rollover_hour:
        return local.date() - timedelta(days=1)
    return local.date()


def stay_date_range(start: date, nights: int) -> Tuple[date, date]:
    """Return (start_date, end_date) for a stay of `nights` nights."""
    return start, start + timedelta(days=max(int(nights or 1), 1))


def compute_review_send_at(
    confirmed_at: datetime,
    tz: tzinfo,
    hour_local: int = 20,
    rollover_hour: int = 8,
    test_delay_minutes: Optional[int] = None,
) -> datetime:
    """
    When to send the review nudge for a booking confirmed at `confirmed_at`.

    Next lot-local day (relative to the service day) at `hour_local`, or a
    fixed short delay when one is configured.

    Returns:
        Send time in UTC
    """
    confirmed_at = ensure_utc(confirmed_at)
    if test_delay_minutes is not None:
        return confirmed_at + timedelta(minutes=test_delay_minutes)

    next_day = service_day(confirmed_at, tz, rollover_hour) + timedelta(days=1)
    local_send = tz.localize(datetime.combine(next_day, time(hour_local, 0)))
    return local_send.astimezone(UTC)


def is_idle(last_activity: Optional[datetime], now: datetime, idle_minutes: int) -> bool:
    """Check whether more than `idle_minutes` passed since `last_activity`."""
    if last_activity is None:
        return False
    return ensure_utc(now) - ensure_utc(last_activity) > timedelta(minutes=idle_minutes)


def format_date_range(start: Optional[date], end: Optional[date]) -> str:
    """Format a stay range like "2026-10-17 to 2026-10-18"."""
    return f"{start.isoformat() if start else '?'} to {end.isoformat() if end else '?'}"
