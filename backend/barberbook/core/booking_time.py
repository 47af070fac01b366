"""
Booking calendar helpers.

Opening hours, slot labels and waitlist days are all expressed in the
booking timezone (``settings.booking_timezone``). Timestamps are stored
as UTC; these helpers convert between the two.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
import re
from typing import Optional

import pytz

from .config import settings

DATE_ONLY_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


@dataclass(frozen=True)
class BookingDayBounds:
    """One calendar day in the booking timezone, as a UTC half-open range."""

    day: date
    day_of_week: int  # 0=Sunday..6=Saturday
    start: datetime
    end_exclusive: datetime


def get_booking_timezone() -> pytz.BaseTzInfo:
    return pytz.timezone(settings.booking_timezone)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite round-trips) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_booking_local(value: datetime) -> datetime:
    return ensure_utc(value).astimezone(get_booking_timezone())


def minute_of_day(value: datetime) -> int:
    """Minutes since local midnight in the booking timezone (0-1439)."""
    local = to_booking_local(value)
    return local.hour * 60 + local.minute


def get_booking_day(value: datetime) -> date:
    return to_booking_local(value).date()


def day_of_week(day: date) -> int:
    """Weekday with Sunday as 0, matching opening hours records."""
    return (day.weekday() + 1) % 7


def local_midnight_utc(day: date) -> datetime:
    tz = get_booking_timezone()
    local = tz.localize(datetime(day.year, day.month, day.day))
    return local.astimezone(timezone.utc)


def get_day_bounds(day: date) -> BookingDayBounds:
    return BookingDayBounds(
        day=day,
        day_of_week=day_of_week(day),
        start=local_midnight_utc(day),
        end_exclusive=local_midnight_utc(day + timedelta(days=1)),
    )


def at_minute(day: date, minute: int) -> datetime:
    """UTC instant of ``minute`` past local midnight on ``day``."""
    tz = get_booking_timezone()
    naive = datetime(day.year, day.month, day.day) + timedelta(minutes=minute)
    return tz.localize(naive).astimezone(timezone.utc)


def parse_date_only(value: str) -> Optional[date]:
    """Parse a strict ``YYYY-MM-DD`` string; anything else returns None."""
    match = DATE_ONLY_PATTERN.match(value.strip())
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def get_booking_today(now: Optional[datetime] = None) -> date:
    return get_booking_day(now or utc_now())


def is_at_or_before_now_with_buffer(
    value: datetime,
    buffer_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
) -> bool:
    if buffer_minutes is None:
        buffer_minutes = settings.slot_buffer_minutes
    current = ensure_utc(now or utc_now())
    return ensure_utc(value) <= current + timedelta(minutes=buffer_minutes)
