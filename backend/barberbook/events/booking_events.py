"""Booking and waitlist domain events."""
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class BookingCreated:
    """Fired after a booking is confirmed."""

    booking_id: str
    user_id: str
    barbershop_id: str
    barber_id: Optional[str]
    start_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingCancelled:
    """Fired after a booking is cancelled."""

    booking_id: str
    cancelled_by: str
    cancelled_at: datetime
    refunded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class WaitlistFulfilled:
    """Fired when a released slot is handed to the first customer in line."""

    entry_id: str
    user_id: str
    booking_id: str
    source_booking_id: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
