# backend/barberbook/repositories/barbershop_repository.py
"""Barbershop, opening hours, barber and service lookups."""

from datetime import datetime
import logging
from typing import Dict, Iterable, List, Optional, Sequence, cast

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.barbershop import Barber, Barbershop, BarbershopOpeningHours, BarbershopService
from ..models.booking import Booking
from ..models.waitlist import WaitlistEntry, WaitlistStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BarbershopRepository(BaseRepository[Barbershop]):
    def __init__(self, db: Session):
        super().__init__(db, Barbershop)
        self.logger = logging.getLogger(__name__)

    # Opening hours

    def get_opening_hours(
        self, barbershop_id: str, day_of_week: int
    ) -> Optional[BarbershopOpeningHours]:
        try:
            return cast(
                Optional[BarbershopOpeningHours],
                self.db.query(BarbershopOpeningHours)
                .filter(
                    BarbershopOpeningHours.barbershop_id == barbershop_id,
                    BarbershopOpeningHours.day_of_week == day_of_week,
                )
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading opening hours: {str(e)}")
            raise RepositoryException(f"Failed to load opening hours: {str(e)}")

    def list_opening_hours(self, barbershop_id: str) -> List[BarbershopOpeningHours]:
        return cast(
            List[BarbershopOpeningHours],
            self.db.query(BarbershopOpeningHours)
            .filter(BarbershopOpeningHours.barbershop_id == barbershop_id)
            .order_by(BarbershopOpeningHours.day_of_week)
            .all(),
        )

    def upsert_opening_hours(
        self, barbershop_id: str, entries: Sequence[Dict[str, int | bool]]
    ) -> List[BarbershopOpeningHours]:
        """Write one row per weekday, updating rows that already exist."""
        try:
            existing = {row.day_of_week: row for row in self.list_opening_hours(barbershop_id)}
            rows: List[BarbershopOpeningHours] = []
            for entry in entries:
                row = existing.get(int(entry["day_of_week"]))
                if row is None:
                    row = BarbershopOpeningHours(
                        barbershop_id=barbershop_id, day_of_week=entry["day_of_week"]
                    )
                    self.db.add(row)
                row.open_minute = entry["open_minute"]
                row.close_minute = entry["close_minute"]
                row.closed = bool(entry["closed"])
                rows.append(row)
            self.db.flush()
            return sorted(rows, key=lambda r: r.day_of_week)
        except SQLAlchemyError as e:
            self.logger.error(f"Error saving opening hours: {str(e)}")
            raise RepositoryException(f"Failed to save opening hours: {str(e)}")

    # Barbers

    def get_barber(self, barber_id: str) -> Optional[Barber]:
        return cast(Optional[Barber], self.db.query(Barber).filter(Barber.id == barber_id).first())

    def list_barber_ids(self, barbershop_id: str) -> List[str]:
        rows = (
            self.db.query(Barber.id)
            .filter(Barber.barbershop_id == barbershop_id)
            .order_by(Barber.name, Barber.id)
            .all()
        )
        return [row[0] for row in rows]

    def delete_barber(self, barber: Barber) -> None:
        """Delete a barber, detaching past bookings and dropping closed waitlist history."""
        try:
            self.db.execute(
                update(Booking)
                .where(Booking.barber_id == barber.id)
                .values(barber_id=None)
                .execution_options(synchronize_session="fetch")
            )
            self.db.execute(
                delete(WaitlistEntry)
                .where(
                    WaitlistEntry.barber_id == barber.id,
                    WaitlistEntry.status != WaitlistStatus.ACTIVE.value,
                )
                .execution_options(synchronize_session="fetch")
            )
            self.db.delete(barber)
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting barber {barber.id}: {str(e)}")
            raise RepositoryException(f"Cannot delete barber: {str(e)}")

    # Services

    def get_service(self, service_id: str) -> Optional[BarbershopService]:
        return cast(
            Optional[BarbershopService],
            self.db.query(BarbershopService).filter(BarbershopService.id == service_id).first(),
        )

    def get_services(self, service_ids: Iterable[str]) -> List[BarbershopService]:
        """Services by id, soft-deleted rows included; callers decide."""
        ids = list(service_ids)
        if not ids:
            return []
        try:
            return cast(
                List[BarbershopService],
                self.db.query(BarbershopService).filter(BarbershopService.id.in_(ids)).all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading services: {str(e)}")
            raise RepositoryException(f"Failed to load services: {str(e)}")

    def soft_delete_service(self, service: BarbershopService, deleted_at: datetime) -> None:
        service.deleted_at = deleted_at
        self.db.flush()
