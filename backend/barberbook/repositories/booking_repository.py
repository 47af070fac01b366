# backend/barberbook/repositories/booking_repository.py
"""
Booking ledger data access.

Collision queries, conditional state transitions and the PostgreSQL
advisory locks that back the exclusive booking section.
"""

from datetime import date, datetime, timedelta
import logging
from typing import Dict, Iterable, List, Optional, cast

from sqlalchemy import func, or_, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.booking_time import get_day_bounds
from ..core.exceptions import RepositoryException
from ..models.booking import Booking, BookingServiceLink, PaymentStatus, active_booking_filter
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def get_active_bookings_for_day(
        self,
        barbershop_id: str,
        day: date,
        barber_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Active bookings that may intersect the local ``day``.

        With a barber, bookings of that barber plus barber-less bookings of
        the shop; without one, every booking of the shop. Rows starting on
        the previous day are included so overnight spill-over still blocks.
        """
        bounds = get_day_bounds(day)
        try:
            query = (
                self.db.query(Booking)
                .options(joinedload(Booking.service))
                .filter(
                    Booking.barbershop_id == barbershop_id,
                    Booking.start_at >= bounds.start - timedelta(days=1),
                    Booking.start_at < bounds.end_exclusive,
                    active_booking_filter(),
                )
            )
            if barber_id:
                query = query.filter(
                    or_(Booking.barber_id == barber_id, Booking.barber_id.is_(None))
                )
            return cast(List[Booking], query.order_by(Booking.start_at).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting bookings for conflict check: {str(e)}")
            raise RepositoryException(f"Failed to get conflict bookings: {str(e)}")

    def lock_timelines(self, keys: Iterable[str]) -> None:
        """Take transaction-scoped advisory locks on PostgreSQL; no-op elsewhere."""
        if self.dialect_name != "postgresql":
            return
        for key in sorted(set(keys)):
            self.db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": key})

    def attach_services(self, booking: Booking, service_ids: Iterable[str]) -> None:
        for service_id in service_ids:
            self.db.add(BookingServiceLink(booking_id=booking.id, service_id=service_id))
        self.db.flush()

    def mark_cancelled(
        self, booking_id: str, cancelled_at: datetime, refunded_at: Optional[datetime] = None
    ) -> bool:
        """Set ``cancelled_at`` only if still unset. Returns whether a row changed."""
        values: Dict[str, object] = {"cancelled_at": cancelled_at}
        if refunded_at is not None:
            values["refunded_at"] = refunded_at
        try:
            result = self.db.execute(
                update(Booking)
                .where(Booking.id == booking_id, Booking.cancelled_at.is_(None))
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error cancelling booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to cancel booking: {str(e)}")

    def transition_payment_status(
        self,
        booking_id: str,
        new_status: PaymentStatus,
        *,
        stripe_charge_id: Optional[str] = None,
        refunded_at: Optional[datetime] = None,
    ) -> bool:
        """Move a PENDING booking to ``new_status``. Other states are left untouched."""
        values: Dict[str, object] = {"payment_status": new_status.value}
        if stripe_charge_id:
            values["stripe_charge_id"] = stripe_charge_id
        if refunded_at is not None:
            values["refunded_at"] = refunded_at
        try:
            result = self.db.execute(
                update(Booking)
                .where(
                    Booking.id == booking_id,
                    Booking.payment_status == PaymentStatus.PENDING.value,
                )
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating payment of booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to update payment status: {str(e)}")

    def count_future_active_for_barber(self, barber_id: str, now: datetime) -> int:
        try:
            return int(
                self.db.query(func.count(Booking.id))
                .filter(
                    Booking.barber_id == barber_id,
                    Booking.start_at > now,
                    active_booking_filter(),
                )
                .scalar()
                or 0
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting future bookings: {str(e)}")
            raise RepositoryException(f"Failed to count bookings: {str(e)}")

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(Booking.service))
