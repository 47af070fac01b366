# backend/barberbook/models/__init__.py
"""
SQLAlchemy models for the booking service.

Importing this package registers every table on ``Base.metadata``.
"""

from .barbershop import Barber, Barbershop, BarbershopOpeningHours, BarbershopService
from .booking import Booking, BookingServiceLink, PaymentMethod, PaymentStatus, active_booking_filter
from .notification_job import NotificationJob, NotificationJobStatus, NotificationJobType
from .waitlist import WaitlistEntry, WaitlistStatus

__all__ = [
    "Barber",
    "Barbershop",
    "BarbershopOpeningHours",
    "BarbershopService",
    "Booking",
    "BookingServiceLink",
    "NotificationJob",
    "NotificationJobStatus",
    "NotificationJobType",
    "PaymentMethod",
    "PaymentStatus",
    "WaitlistEntry",
    "WaitlistStatus",
    "active_booking_filter",
]
