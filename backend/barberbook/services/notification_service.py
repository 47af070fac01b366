# backend/barberbook/services/notification_service.py
"""
Notification hand-off.

Writes confirmation and reminder job records for the external WhatsApp
dispatcher and cancels them when a booking goes away. Never sends
anything itself.
"""

from datetime import datetime, timedelta
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.booking_time import ensure_utc, utc_now
from ..core.config import settings
from ..models.booking import Booking
from ..models.notification_job import NotificationJobType
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

CANCEL_REASON_BOOKING_CANCELED = "booking_canceled"


class NotificationService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.job_repository = RepositoryFactory.create_notification_job_repository(db)

    def schedule_booking_jobs(self, booking: Booking, now: Optional[datetime] = None) -> List[str]:
        """
        Queue the confirmation and the reminders that are still in the future.

        Pending Stripe checkouts and cancelled bookings get nothing. Runs
        inside the caller's transaction.
        """
        if not booking.is_confirmed:
            return []

        current = ensure_utc(now or utc_now())
        start_at = ensure_utc(booking.start_at)
        payload = {
            "booking_id": booking.id,
            "barbershop_id": booking.barbershop_id,
            "start_at": start_at.isoformat(),
        }

        job_ids = [
            self.job_repository.enqueue(
                type=NotificationJobType.BOOKING_CONFIRMATION,
                payload=payload,
                booking_id=booking.id,
                available_at=current,
            )
        ]
        for offset_hours in sorted(settings.reminder_offsets_hours, reverse=True):
            scheduled_for = start_at - timedelta(hours=offset_hours)
            if scheduled_for <= current:
                continue
            job_ids.append(
                self.job_repository.enqueue(
                    type=NotificationJobType.reminder(offset_hours),
                    payload=payload,
                    booking_id=booking.id,
                    available_at=scheduled_for,
                )
            )

        logger.debug(
            "Scheduled booking notifications",
            extra={"booking_id": booking.id, "job_count": len(job_ids)},
        )
        return job_ids

    def cancel_pending_jobs(
        self, booking_id: str, reason: str = CANCEL_REASON_BOOKING_CANCELED
    ) -> int:
        """Mark every still-pending job of the booking CANCELED. Returns the count."""
        count = self.job_repository.cancel_pending_for_booking(booking_id, reason)
        if count:
            logger.debug(
                "Cancelled pending notifications",
                extra={"booking_id": booking_id, "job_count": count, "reason": reason},
            )
        return count
