# backend/barberbook/services/waitlist_service.py
"""
Waitlist Queue: join, leave, status and fulfillment acknowledgement.

A customer may join only when the requested day has no free slot left.
Queue position is 1 + the number of ACTIVE entries ordered strictly
before theirs by ``(created_at, id)``.
"""

from dataclasses import dataclass
from datetime import date, datetime
import logging
from typing import Optional, Union

from sqlalchemy.orm import Session

from ..core.booking_time import get_booking_today, parse_date_only, utc_now
from ..core.exceptions import (
    BusinessRuleException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from ..models.waitlist import WaitlistEntry, WaitlistStatus
from ..repositories.factory import RepositoryFactory
from .availability_service import AvailabilityService, load_services, resolve_barber
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JoinWaitlistResult:
    entry_id: str
    position: int
    date_day: str


@dataclass(frozen=True)
class WaitlistStatusResult:
    in_queue: bool
    entry_id: Optional[str]
    position: Optional[int]
    queue_length: int


class WaitlistService(BaseService):
    def __init__(self, db: Session, availability_service: Optional[AvailabilityService] = None):
        super().__init__(db)
        self.waitlist_repository = RepositoryFactory.create_waitlist_repository(db)
        self.barbershop_repository = RepositoryFactory.create_barbershop_repository(db)
        self.availability_service = availability_service or AvailabilityService(db)

    @BaseService.measure_operation("join_waitlist")
    def join_waitlist(
        self,
        user_id: str,
        barbershop_id: str,
        barber_id: str,
        service_id: str,
        date_day: Union[str, date],
        now: Optional[datetime] = None,
    ) -> JoinWaitlistResult:
        """
        Queue the customer for a full day.

        Raises:
            ValidationException: Malformed or past day, inactive barbershop, bad service
            NotFoundException: Unknown barbershop or barber
            BusinessRuleException: Already queued, or slots are still available
        """
        day = self._parse_day(date_day)
        if day < get_booking_today(now):
            raise ValidationException("Cannot join the waitlist for a past day")

        with self.transaction():
            barbershop = self.barbershop_repository.get_by_id(
                barbershop_id, load_relationships=False
            )
            if barbershop is None:
                raise NotFoundException(
                    "Barbershop not found", details={"barbershop_id": barbershop_id}
                )
            if not barbershop.is_active:
                raise ValidationException("This barbershop is not accepting waitlist entries")
            resolve_barber(self.barbershop_repository, barbershop, barber_id)
            load_services(self.barbershop_repository, [service_id], barbershop_id)

            if self.waitlist_repository.get_active_for_user(
                user_id, barbershop_id, barber_id, service_id, day
            ):
                raise BusinessRuleException(
                    "You are already on the waitlist for this day",
                    code="WAITLIST_ALREADY_JOINED",
                )

            slots = self.availability_service.get_available_slots(
                barbershop_id, [service_id], day, barber_id=barber_id, now=now
            )
            if not slots.is_empty():
                raise BusinessRuleException(
                    "There are still free slots on this day - pick a time instead",
                    code="SLOTS_STILL_AVAILABLE",
                )

            entry = self.waitlist_repository.create(
                user_id=user_id,
                barbershop_id=barbershop_id,
                barber_id=barber_id,
                service_id=service_id,
                date_day=day,
                status=WaitlistStatus.ACTIVE.value,
                created_at=utc_now(),
            )
            position = self.waitlist_repository.get_position(entry)

        self.log_operation("join_waitlist", entry_id=entry.id, position=position)
        return JoinWaitlistResult(entry_id=entry.id, position=position, date_day=day.isoformat())

    @BaseService.measure_operation("leave_waitlist")
    def leave_waitlist(self, entry_id: str, user_id: str) -> WaitlistEntry:
        """
        Cancel the caller's ACTIVE entry.

        The update is guarded on the current status, so a leave racing a
        fulfillment (or a second leave) reports that it could not leave.
        """
        with self.transaction():
            entry = self._get_owned_entry(entry_id, user_id)
            left = self.waitlist_repository.transition_status(
                entry_id, WaitlistStatus.ACTIVE, WaitlistStatus.CANCELED, user_id=user_id
            )
            if not left:
                raise BusinessRuleException(
                    "Could not leave the waitlist now", code="WAITLIST_LEAVE_REJECTED"
                )

        self.log_operation("leave_waitlist", entry_id=entry_id)
        return entry

    def get_waitlist_status(
        self,
        user_id: str,
        barbershop_id: str,
        barber_id: str,
        service_id: str,
        date_day: Union[str, date],
    ) -> WaitlistStatusResult:
        day = self._parse_day(date_day)
        queue_length = self.waitlist_repository.count_active(
            barbershop_id, barber_id, service_id, day
        )
        entry = self.waitlist_repository.get_active_for_user(
            user_id, barbershop_id, barber_id, service_id, day
        )
        if entry is None:
            return WaitlistStatusResult(
                in_queue=False, entry_id=None, position=None, queue_length=queue_length
            )
        return WaitlistStatusResult(
            in_queue=True,
            entry_id=entry.id,
            position=self.waitlist_repository.get_position(entry),
            queue_length=queue_length,
        )

    @BaseService.measure_operation("mark_fulfillment_seen")
    def mark_fulfillment_seen(self, entry_id: str, user_id: str) -> WaitlistEntry:
        """Acknowledge the "you got a slot" notice. Repeated calls are no-ops."""
        with self.transaction():
            entry = self._get_owned_entry(entry_id, user_id)
            if entry.status != WaitlistStatus.FULFILLED.value:
                raise BusinessRuleException(
                    "Only fulfilled entries can be acknowledged", code="WAITLIST_NOT_FULFILLED"
                )
            self.waitlist_repository.mark_seen(entry_id, user_id, utc_now())
        return entry

    def _get_owned_entry(self, entry_id: str, user_id: str) -> WaitlistEntry:
        entry = self.waitlist_repository.get_by_id(entry_id, load_relationships=False)
        if entry is None:
            raise NotFoundException("Waitlist entry not found", details={"entry_id": entry_id})
        if entry.user_id != user_id:
            raise ForbiddenException("This waitlist entry belongs to another customer")
        return entry

    @staticmethod
    def _parse_day(date_day: Union[str, date]) -> date:
        if isinstance(date_day, date):
            return date_day
        parsed = parse_date_only(date_day or "")
        if parsed is None:
            raise ValidationException("Invalid waitlist day", details={"date_day": date_day})
        return parsed
