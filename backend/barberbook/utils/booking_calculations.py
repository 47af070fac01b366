"""
Pure helpers that turn persisted bookings into the canonical interval.

Legacy rows may miss ``end_at`` and/or ``total_duration_minutes``; every
caller goes through ``resolve_booking_window`` so the collision logic only
ever sees one shape.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from ..core.booking_interval import MINUTES_PER_DAY, MinuteInterval
from ..core.booking_time import ensure_utc, get_day_bounds, minute_of_day


@dataclass(frozen=True)
class BookingTotals:
    duration_minutes: int
    price_in_cents: int


def calculate_booking_totals(services: Sequence[Any]) -> BookingTotals:
    """Sum duration and price over the selected services."""
    duration = 0
    price = 0
    for service in services:
        duration += int(service.duration_minutes)
        price += int(service.price_in_cents or 0)
    return BookingTotals(duration_minutes=duration, price_in_cents=price)


def resolve_booking_duration(booking: Any) -> Optional[int]:
    """Total duration, falling back to the primary service duration."""
    if booking.total_duration_minutes:
        return int(booking.total_duration_minutes)
    service = getattr(booking, "service", None)
    if service is not None and service.duration_minutes:
        return int(service.duration_minutes)
    return None


def resolve_booking_window(booking: Any) -> Tuple[datetime, datetime]:
    """
    Return ``(start, end)`` in UTC for a persisted booking.

    Raises ValueError when neither ``end_at`` nor any duration is known.
    """
    start = ensure_utc(booking.start_at)
    if booking.end_at is not None:
        return start, ensure_utc(booking.end_at)
    duration = resolve_booking_duration(booking)
    if duration is None:
        raise ValueError(f"Booking {booking.id} has no end time or duration")
    return start, start + timedelta(minutes=duration)


def to_day_intervals(bookings: Iterable[Any], day: date) -> List[MinuteInterval]:
    """
    Project bookings onto minute-of-day intervals for ``day``.

    Intervals are clipped to the local day so bookings spilling over
    midnight still block the part that falls inside it.
    """
    bounds = get_day_bounds(day)
    intervals: List[MinuteInterval] = []
    for booking in bookings:
        start, end = resolve_booking_window(booking)
        if end <= bounds.start or start >= bounds.end_exclusive:
            continue
        start_minute = 0 if start <= bounds.start else minute_of_day(start)
        end_minute = MINUTES_PER_DAY if end >= bounds.end_exclusive else minute_of_day(end)
        if end_minute > start_minute:
            intervals.append(MinuteInterval(start_minute, end_minute))
    return intervals
