# backend/barberbook/repositories/factory.py
"""
Repository Factory for the booking service.

Provides centralized creation of repository instances so services never
construct them directly.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .barbershop_repository import BarbershopRepository
    from .booking_repository import BookingRepository
    from .notification_job_repository import NotificationJobRepository
    from .waitlist_repository import WaitlistRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for booking ledger operations."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_barbershop_repository(db: Session) -> "BarbershopRepository":
        """Create repository for barbershop reference data."""
        from .barbershop_repository import BarbershopRepository

        return BarbershopRepository(db)

    @staticmethod
    def create_waitlist_repository(db: Session) -> "WaitlistRepository":
        """Create repository for waitlist queue operations."""
        from .waitlist_repository import WaitlistRepository

        return WaitlistRepository(db)

    @staticmethod
    def create_notification_job_repository(db: Session) -> "NotificationJobRepository":
        """Create repository for notification job records."""
        from .notification_job_repository import NotificationJobRepository

        return NotificationJobRepository(db)
