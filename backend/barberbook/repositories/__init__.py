# backend/barberbook/repositories/__init__.py
"""
Repository layer for the booking service.

Repositories own every query; services own transactions.
"""

from .barbershop_repository import BarbershopRepository
from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .factory import RepositoryFactory
from .notification_job_repository import NotificationJobRepository
from .waitlist_repository import WaitlistRepository

__all__ = [
    "BarbershopRepository",
    "BaseRepository",
    "BookingRepository",
    "NotificationJobRepository",
    "RepositoryFactory",
    "WaitlistRepository",
]
