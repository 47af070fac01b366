# backend/barberbook/services/__init__.py
"""Service layer: business rules and transaction boundaries."""

from .availability_service import AvailabilityService, AvailableSlots
from .base import BaseService
from .booking_service import BookingService, CancellationResult
from .catalog_service import CatalogService
from .notification_service import NotificationService
from .opening_hours_service import OpeningHoursService, OpeningWindow
from .waitlist_fulfillment import (
    ReleasedSlot,
    WaitlistFulfillmentResult,
    WaitlistFulfillmentService,
    resolve_released_duration_minutes,
)
from .waitlist_service import JoinWaitlistResult, WaitlistService, WaitlistStatusResult

__all__ = [
    "AvailabilityService",
    "AvailableSlots",
    "BaseService",
    "BookingService",
    "CancellationResult",
    "CatalogService",
    "JoinWaitlistResult",
    "NotificationService",
    "OpeningHoursService",
    "OpeningWindow",
    "ReleasedSlot",
    "WaitlistFulfillmentResult",
    "WaitlistFulfillmentService",
    "WaitlistService",
    "WaitlistStatusResult",
    "resolve_released_duration_minutes",
]
