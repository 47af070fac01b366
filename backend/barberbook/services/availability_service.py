# backend/barberbook/services/availability_service.py
"""
Availability Calculator.

Turns opening hours, the selected services and the day's active bookings
into the bookable start times of one day. Reads happen up front; the
returned ``AvailableSlots`` is evaluated lazily in memory and can be
iterated any number of times.
"""

from dataclasses import dataclass
from datetime import date, datetime
import logging
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.booking_interval import MinuteInterval, overlaps, to_slot_label
from ..core.booking_time import day_of_week, get_booking_today, minute_of_day, utc_now
from ..core.config import settings
from ..core.exceptions import NotFoundException, ValidationException
from ..models.barbershop import Barber, Barbershop, BarbershopService
from ..repositories.factory import RepositoryFactory
from ..utils.booking_calculations import calculate_booking_totals, to_day_intervals
from .base import BaseService
from .opening_hours_service import OpeningHoursService, OpeningWindow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailableSlots:
    """
    Bookable starts for one day, as ``HH:MM`` labels.

    Candidates lie on a ``step_minutes`` grid from ``open_minute``; a
    candidate is offered when it starts after ``earliest_exclusive`` (if
    set), ends by ``close_minute`` and overlaps none of ``occupied``.
    """

    day: date
    open_minute: int
    close_minute: int
    duration_minutes: int
    step_minutes: int
    occupied: Tuple[MinuteInterval, ...] = ()
    earliest_exclusive: Optional[int] = None
    closed: bool = False

    @classmethod
    def empty(cls, day: date) -> "AvailableSlots":
        return cls(
            day=day,
            open_minute=0,
            close_minute=0,
            duration_minutes=0,
            step_minutes=settings.slot_step_minutes,
            closed=True,
        )

    def minutes(self) -> Iterator[int]:
        if self.closed or self.duration_minutes <= 0 or self.close_minute <= self.open_minute:
            return
        last_start = self.close_minute - self.duration_minutes
        start = self.open_minute
        while start <= last_start:
            if self.earliest_exclusive is None or start > self.earliest_exclusive:
                if not overlaps(start, self.duration_minutes, self.occupied):
                    yield start
            start += self.step_minutes

    def __iter__(self) -> Iterator[str]:
        return (to_slot_label(minute) for minute in self.minutes())

    def is_empty(self) -> bool:
        return next(self.minutes(), None) is None

    def as_list(self) -> List[str]:
        return list(self)


def load_services(
    barbershop_repository: Any,
    service_ids: Iterable[str],
    barbershop_id: Optional[str] = None,
) -> List[BarbershopService]:
    """
    Resolve bookable services, preserving request order and dropping duplicates.

    Raises ValidationException when the list is empty, a service is unknown
    or soft-deleted, services span several barbershops, or (with
    ``barbershop_id``) a service belongs to another barbershop.
    """
    unique_ids = list(dict.fromkeys(service_id for service_id in service_ids if service_id))
    if not unique_ids:
        raise ValidationException("Select at least one service")

    by_id = {service.id: service for service in barbershop_repository.get_services(unique_ids)}
    services: List[BarbershopService] = []
    for service_id in unique_ids:
        service = by_id.get(service_id)
        if service is None or service.deleted_at is not None:
            raise ValidationException(
                "Service not found. Please select another service.",
                details={"service_id": service_id},
            )
        if barbershop_id is not None and service.barbershop_id != barbershop_id:
            raise ValidationException(
                "Service does not belong to this barbershop",
                details={"service_id": service_id},
            )
        if not is_valid_service_data(service):
            logger.error("Invalid service data", extra={"service_id": service_id})
            raise ValidationException(
                "This service is temporarily unavailable for booking",
                details={"service_id": service_id},
            )
        services.append(service)

    if len({service.barbershop_id for service in services}) > 1:
        raise ValidationException("All services must belong to the same barbershop")
    return services


def is_valid_service_data(service: BarbershopService) -> bool:
    if not (service.name or "").strip():
        return False
    if service.price_in_cents is None or int(service.price_in_cents) < 0:
        return False
    return service.duration_minutes is not None and 5 <= int(service.duration_minutes) <= 240


def resolve_barber(
    barbershop_repository: Any, barbershop: Barbershop, barber_id: Optional[str]
) -> Optional[Barber]:
    """
    Barber the request is pinned to.

    An explicit barber must belong to the barbershop. Exclusive
    (single-barber) barbershops pin their barber when none is given.
    """
    if barber_id:
        barber = barbershop_repository.get_barber(barber_id)
        if barber is None or barber.barbershop_id != barbershop.id:
            raise NotFoundException(
                "Barber not found for this barbershop", details={"barber_id": barber_id}
            )
        return barber
    if barbershop.is_exclusive:
        barber_ids = barbershop_repository.list_barber_ids(barbershop.id)
        if barber_ids:
            return barbershop_repository.get_barber(barber_ids[0])
    return None


class AvailabilityService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.barbershop_repository = RepositoryFactory.create_barbershop_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.opening_hours_service = OpeningHoursService(db, self.barbershop_repository)

    @BaseService.measure_operation("get_available_slots")
    def get_available_slots(
        self,
        barbershop_id: str,
        service_ids: Sequence[str],
        day: date,
        barber_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AvailableSlots:
        """
        Free start times for the selected services on ``day``.

        Args:
            barbershop_id: Barbershop being booked
            service_ids: One or more services; durations are summed
            day: Calendar day in the booking timezone
            barber_id: Optional barber; barber-less bookings still block
            now: Clock override

        Raises:
            ValidationException: No services, or unknown/deleted/foreign services
            NotFoundException: Unknown barbershop or barber
        """
        barbershop = self.barbershop_repository.get_by_id(barbershop_id, load_relationships=False)
        if barbershop is None:
            raise NotFoundException("Barbershop not found", details={"barbershop_id": barbershop_id})

        services = load_services(self.barbershop_repository, service_ids, barbershop_id)
        barber = resolve_barber(self.barbershop_repository, barbershop, barber_id)

        if not barbershop.is_active:
            return AvailableSlots.empty(day)

        today = get_booking_today(now)
        if day < today:
            return AvailableSlots.empty(day)

        window = self.opening_hours_service.resolve(barbershop_id, day_of_week(day))
        if window.closed:
            return AvailableSlots.empty(day)

        bookings = self.booking_repository.get_active_bookings_for_day(
            barbershop_id, day, barber_id=barber.id if barber else None
        )
        return self._build_slots(
            day=day,
            window=window,
            duration_minutes=calculate_booking_totals(services).duration_minutes,
            occupied=to_day_intervals(bookings, day),
            earliest_exclusive=(
                minute_of_day(now or utc_now()) + settings.slot_buffer_minutes
                if day == today
                else None
            ),
        )

    @staticmethod
    def _build_slots(
        *,
        day: date,
        window: OpeningWindow,
        duration_minutes: int,
        occupied: List[MinuteInterval],
        earliest_exclusive: Optional[int],
    ) -> AvailableSlots:
        return AvailableSlots(
            day=day,
            open_minute=window.open_minute,
            close_minute=window.close_minute,
            duration_minutes=duration_minutes,
            step_minutes=settings.slot_step_minutes,
            occupied=tuple(occupied),
            earliest_exclusive=earliest_exclusive,
        )
