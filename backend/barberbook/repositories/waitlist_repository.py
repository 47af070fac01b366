# backend/barberbook/repositories/waitlist_repository.py
"""
Waitlist queue data access.

A queue is the set of ACTIVE entries sharing (barbershop, barber,
service, day), ordered by ``(created_at, id)``. Status changes go through
conditional updates so concurrent claims and leaves never both win.
"""

from datetime import date, datetime
import logging
from typing import Any, Dict, Optional, cast

from sqlalchemy import and_, func, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.exceptions import RepositoryException
from ..models.waitlist import WaitlistEntry, WaitlistStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class WaitlistRepository(BaseRepository[WaitlistEntry]):
    def __init__(self, db: Session):
        super().__init__(db, WaitlistEntry)
        self.logger = logging.getLogger(__name__)

    def _queue(
        self, barbershop_id: str, barber_id: str, service_id: str, date_day: date
    ) -> Query:
        return self.db.query(WaitlistEntry).filter(
            WaitlistEntry.barbershop_id == barbershop_id,
            WaitlistEntry.barber_id == barber_id,
            WaitlistEntry.service_id == service_id,
            WaitlistEntry.date_day == date_day,
            WaitlistEntry.status == WaitlistStatus.ACTIVE.value,
        )

    def get_first_active(
        self, barbershop_id: str, barber_id: str, service_id: str, date_day: date
    ) -> Optional[WaitlistEntry]:
        """Head of the queue, or None when nobody is waiting."""
        try:
            return cast(
                Optional[WaitlistEntry],
                self._queue(barbershop_id, barber_id, service_id, date_day)
                .options(joinedload(WaitlistEntry.service))
                .order_by(WaitlistEntry.created_at.asc(), WaitlistEntry.id.asc())
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error reading waitlist head: {str(e)}")
            raise RepositoryException(f"Failed to read waitlist: {str(e)}")

    def get_active_for_user(
        self, user_id: str, barbershop_id: str, barber_id: str, service_id: str, date_day: date
    ) -> Optional[WaitlistEntry]:
        return cast(
            Optional[WaitlistEntry],
            self._queue(barbershop_id, barber_id, service_id, date_day)
            .filter(WaitlistEntry.user_id == user_id)
            .order_by(WaitlistEntry.created_at.asc(), WaitlistEntry.id.asc())
            .first(),
        )

    def get_position(self, entry: WaitlistEntry) -> int:
        """1-based position: ACTIVE entries of the tuple ordered at or before ``entry``."""
        try:
            return int(
                self._queue(entry.barbershop_id, entry.barber_id, entry.service_id, entry.date_day)
                .filter(
                    or_(
                        WaitlistEntry.created_at < entry.created_at,
                        and_(
                            WaitlistEntry.created_at == entry.created_at,
                            WaitlistEntry.id <= entry.id,
                        ),
                    )
                )
                .with_entities(func.count(WaitlistEntry.id))
                .scalar()
                or 0
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error computing waitlist position: {str(e)}")
            raise RepositoryException(f"Failed to compute position: {str(e)}")

    def count_active(
        self, barbershop_id: str, barber_id: str, service_id: str, date_day: date
    ) -> int:
        return int(
            self._queue(barbershop_id, barber_id, service_id, date_day)
            .with_entities(func.count(WaitlistEntry.id))
            .scalar()
            or 0
        )

    def count_active_for_barber(self, barber_id: str) -> int:
        return self.count(barber_id=barber_id, status=WaitlistStatus.ACTIVE.value)

    def transition_status(
        self,
        entry_id: str,
        from_status: WaitlistStatus,
        to_status: WaitlistStatus,
        *,
        user_id: Optional[str] = None,
        **values: Any,
    ) -> bool:
        """Conditional status update. Returns whether exactly one row changed."""
        conditions = [WaitlistEntry.id == entry_id, WaitlistEntry.status == from_status.value]
        if user_id is not None:
            conditions.append(WaitlistEntry.user_id == user_id)
        payload: Dict[str, Any] = {"status": to_status.value, **values}
        try:
            result = self.db.execute(
                update(WaitlistEntry)
                .where(*conditions)
                .values(**payload)
                .execution_options(synchronize_session="fetch")
            )
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating waitlist entry {entry_id}: {str(e)}")
            raise RepositoryException(f"Failed to update waitlist entry: {str(e)}")

    def set_fulfilled_booking(self, entry_id: str, booking_id: str) -> None:
        self.db.execute(
            update(WaitlistEntry)
            .where(WaitlistEntry.id == entry_id)
            .values(fulfilled_booking_id=booking_id)
            .execution_options(synchronize_session="fetch")
        )

    def mark_seen(self, entry_id: str, user_id: str, seen_at: datetime) -> bool:
        """Stamp ``fulfilled_seen_at`` once; later calls change nothing."""
        result = self.db.execute(
            update(WaitlistEntry)
            .where(
                WaitlistEntry.id == entry_id,
                WaitlistEntry.user_id == user_id,
                WaitlistEntry.status == WaitlistStatus.FULFILLED.value,
                WaitlistEntry.fulfilled_seen_at.is_(None),
            )
            .values(fulfilled_seen_at=seen_at)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1
