# backend/barberbook/services/waitlist_fulfillment.py
"""
Waitlist Fulfillment Engine.

When a booking is cancelled its interval is offered to the first ACTIVE
entry of the matching (barbershop, barber, service, day) queue. The
re-check, the claim and the new booking happen in one transaction inside
the same exclusive section booking creation uses.

Entries whose service was deleted, or no longer lasts exactly the
released interval, are expired and the walk moves on. If the head of
the queue cannot take the slot because it is no longer free, the engine
stops without trying the next entry.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.booking_interval import overlaps
from ..core.booking_lock import booking_section, timeline_lock_key
from ..core.booking_time import ensure_utc, get_booking_day, minute_of_day
from ..core.config import settings
from ..events.booking_events import WaitlistFulfilled
from ..events.publisher import EventPublisher
from ..models.booking import PaymentMethod, PaymentStatus
from ..models.waitlist import WaitlistEntry, WaitlistStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..utils.booking_calculations import to_day_intervals
from .base import BaseService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReleasedSlot:
    source_booking_id: str
    barbershop_id: str
    barber_id: Optional[str]
    service_id: str
    released_start_at: datetime
    released_end_at: Optional[datetime] = None
    released_duration_minutes: Optional[int] = None


@dataclass(frozen=True)
class WaitlistFulfillmentResult:
    fulfilled: bool
    fulfilled_entry_id: Optional[str] = None
    fulfilled_booking_id: Optional[str] = None
    expired_entries_count: int = 0
    skipped_reason: Optional[str] = None

    @classmethod
    def skipped(cls, reason: str, expired_entries_count: int = 0) -> "WaitlistFulfillmentResult":
        return cls(
            fulfilled=False,
            expired_entries_count=expired_entries_count,
            skipped_reason=reason,
        )


def resolve_released_duration_minutes(
    released_start_at: datetime,
    released_end_at: Optional[datetime] = None,
    released_duration_minutes: Optional[int] = None,
) -> Optional[int]:
    """Explicit duration when positive, else ``end - start`` in whole minutes."""
    if isinstance(released_duration_minutes, int) and released_duration_minutes > 0:
        return released_duration_minutes
    if released_end_at is None:
        return None
    diff = ensure_utc(released_end_at) - ensure_utc(released_start_at)
    minutes = round(diff.total_seconds() / 60)
    return minutes if minutes > 0 else None


class WaitlistFulfillmentService(BaseService):
    def __init__(self, db: Session, notification_service: Optional[NotificationService] = None):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.waitlist_repository = RepositoryFactory.create_waitlist_repository(db)
        self.notification_service = notification_service or NotificationService(db)
        self.event_publisher = EventPublisher(
            RepositoryFactory.create_notification_job_repository(db)
        )

    @BaseService.measure_operation("fulfill_released_slot")
    def fulfill(self, released: ReleasedSlot) -> WaitlistFulfillmentResult:
        """Hand a released interval to the first customer in line, if any."""
        result = self._fulfill(released)
        prometheus_metrics.record_waitlist_fulfillment(
            "fulfilled" if result.fulfilled else (result.skipped_reason or "skipped")
        )
        logger.info(
            "waitlist_fulfillment_result",
            extra={
                "source_booking_id": released.source_booking_id,
                "fulfilled": result.fulfilled,
                "fulfilled_entry_id": result.fulfilled_entry_id,
                "fulfilled_booking_id": result.fulfilled_booking_id,
                "expired_entries_count": result.expired_entries_count,
                "skipped_reason": result.skipped_reason,
            },
        )
        return result

    def _fulfill(self, released: ReleasedSlot) -> WaitlistFulfillmentResult:
        if not released.source_booking_id.strip():
            return WaitlistFulfillmentResult.skipped("missing-source-booking-id")
        if not released.barber_id:
            return WaitlistFulfillmentResult.skipped("missing-barber")

        released_duration = resolve_released_duration_minutes(
            released.released_start_at,
            released.released_end_at,
            released.released_duration_minutes,
        )
        if released_duration is None:
            return WaitlistFulfillmentResult.skipped("invalid-duration")

        day = get_booking_day(released.released_start_at)
        key = timeline_lock_key(released.barbershop_id, released.barber_id, day)
        with booking_section([key]):
            with self.transaction():
                self.booking_repository.lock_timelines([key])
                return self._walk_queue(released, released.barber_id, day, released_duration)

    def _walk_queue(
        self, released: ReleasedSlot, barber_id: str, day: date, released_duration: int
    ) -> WaitlistFulfillmentResult:
        start_at = ensure_utc(released.released_start_at)
        expired = 0

        for _ in range(settings.waitlist_max_fulfillment_attempts):
            entry = self.waitlist_repository.get_first_active(
                released.barbershop_id, barber_id, released.service_id, day
            )
            if entry is None:
                return WaitlistFulfillmentResult.skipped("no-active-entry", expired)

            service = entry.service
            if (
                service is None
                or service.deleted_at is not None
                or int(service.duration_minutes) != released_duration
            ):
                if self.waitlist_repository.transition_status(
                    entry.id, WaitlistStatus.ACTIVE, WaitlistStatus.EXPIRED
                ):
                    expired += 1
                continue

            duration = released_duration
            bookings = self.booking_repository.get_active_bookings_for_day(
                released.barbershop_id, day, barber_id=barber_id
            )
            if overlaps(minute_of_day(start_at), duration, to_day_intervals(bookings, day)):
                return WaitlistFulfillmentResult.skipped("slot-taken", expired)

            if not self.waitlist_repository.transition_status(
                entry.id, WaitlistStatus.ACTIVE, WaitlistStatus.FULFILLED
            ):
                continue

            booking_id = self._create_fulfilled_booking(entry, released, start_at, duration)
            return WaitlistFulfillmentResult(
                fulfilled=True,
                fulfilled_entry_id=entry.id,
                fulfilled_booking_id=booking_id,
                expired_entries_count=expired,
            )

        return WaitlistFulfillmentResult.skipped("max-attempts-reached", expired)

    def _create_fulfilled_booking(
        self,
        entry: WaitlistEntry,
        released: ReleasedSlot,
        start_at: datetime,
        duration: int,
    ) -> str:
        booking = self.booking_repository.create(
            barbershop_id=released.barbershop_id,
            barber_id=released.barber_id,
            service_id=entry.service_id,
            user_id=entry.user_id,
            start_at=start_at,
            end_at=start_at + timedelta(minutes=duration),
            total_duration_minutes=duration,
            total_price_in_cents=int(entry.service.price_in_cents),
            payment_method=PaymentMethod.IN_PERSON.value,
            payment_status=PaymentStatus.PAID.value,
        )
        self.booking_repository.attach_services(booking, [entry.service_id])
        self.waitlist_repository.set_fulfilled_booking(entry.id, booking.id)
        self.notification_service.schedule_booking_jobs(booking)
        self.event_publisher.publish(
            WaitlistFulfilled(
                entry_id=entry.id,
                user_id=entry.user_id,
                booking_id=booking.id,
                source_booking_id=released.source_booking_id,
            )
        )
        return str(booking.id)
