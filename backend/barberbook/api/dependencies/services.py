# backend/barberbook/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each factory builds a request-scoped service on the request's session.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...integrations.payment_gateway import PaymentGateway, get_payment_gateway
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from ...services.catalog_service import CatalogService
from ...services.opening_hours_service import OpeningHoursService
from ...services.waitlist_service import WaitlistService
from .database import get_db


def get_payment_gateway_dep() -> PaymentGateway:
    return get_payment_gateway()


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def get_opening_hours_service(db: Session = Depends(get_db)) -> OpeningHoursService:
    return OpeningHoursService(db)


def get_booking_service(
    db: Session = Depends(get_db),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway_dep),
) -> BookingService:
    return BookingService(db, payment_gateway=payment_gateway)


def get_waitlist_service(db: Session = Depends(get_db)) -> WaitlistService:
    return WaitlistService(db)


def get_catalog_service(db: Session = Depends(get_db)) -> CatalogService:
    return CatalogService(db)
