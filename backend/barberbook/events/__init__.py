"""Domain events published through the notification job queue."""

from .booking_events import BookingCancelled, BookingCreated, WaitlistFulfilled
from .publisher import EventPublisher

__all__ = ["BookingCancelled", "BookingCreated", "EventPublisher", "WaitlistFulfilled"]
