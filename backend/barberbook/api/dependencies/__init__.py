# backend/barberbook/api/dependencies/__init__.py
"""FastAPI dependencies shared by the v1 routers."""

from .auth import get_current_user_id
from .database import get_db
from .services import (
    get_availability_service,
    get_booking_service,
    get_catalog_service,
    get_opening_hours_service,
    get_waitlist_service,
)

__all__ = [
    "get_availability_service",
    "get_booking_service",
    "get_catalog_service",
    "get_current_user_id",
    "get_db",
    "get_opening_hours_service",
    "get_waitlist_service",
]
