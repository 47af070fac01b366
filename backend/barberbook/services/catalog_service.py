# backend/barberbook/services/catalog_service.py
"""Owner-only removal of barbers and services that bookings may reference."""

from datetime import datetime
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.booking_time import utc_now
from ..core.exceptions import BusinessRuleException, ForbiddenException, NotFoundException
from ..models.barbershop import BarbershopService
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class CatalogService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.barbershop_repository = RepositoryFactory.create_barbershop_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.waitlist_repository = RepositoryFactory.create_waitlist_repository(db)

    def _ensure_owner(self, barbershop_id: str, owner_id: str) -> None:
        barbershop = self.barbershop_repository.get_by_id(barbershop_id, load_relationships=False)
        if barbershop is None or barbershop.owner_id != owner_id:
            raise ForbiddenException("Only the barbershop owner can change its catalog")

    @BaseService.measure_operation("delete_barber")
    def delete_barber(self, barber_id: str, owner_id: str, now: Optional[datetime] = None) -> None:
        """
        Remove a barber.

        Refused while the barber still has future active bookings or
        customers waiting in an ACTIVE waitlist entry.
        """
        current = now or utc_now()
        with self.transaction():
            barber = self.barbershop_repository.get_barber(barber_id)
            if barber is None:
                raise NotFoundException("Barber not found", details={"barber_id": barber_id})
            self._ensure_owner(barber.barbershop_id, owner_id)

            if self.booking_repository.count_future_active_for_barber(barber_id, current) > 0:
                raise BusinessRuleException(
                    "Cannot remove a barber with future active bookings",
                    code="BARBER_HAS_FUTURE_BOOKINGS",
                )
            if self.waitlist_repository.count_active_for_barber(barber_id) > 0:
                raise BusinessRuleException(
                    "Cannot remove a barber with customers on the waitlist",
                    code="BARBER_HAS_WAITLIST",
                )
            self.barbershop_repository.delete_barber(barber)

        self.log_operation("delete_barber", barber_id=barber_id)

    @BaseService.measure_operation("delete_service")
    def delete_service(self, service_id: str, owner_id: str) -> BarbershopService:
        """Soft-delete a service; bookings and waitlist entries keep pointing at it."""
        with self.transaction():
            service = self.barbershop_repository.get_service(service_id)
            if service is None or service.deleted_at is not None:
                raise NotFoundException("Service not found", details={"service_id": service_id})
            self._ensure_owner(service.barbershop_id, owner_id)
            self.barbershop_repository.soft_delete_service(service, utc_now())

        self.log_operation("delete_service", service_id=service_id)
        return service
