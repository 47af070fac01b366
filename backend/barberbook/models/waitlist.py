"""Waitlist entries for a (barbershop, barber, service, day) tuple."""

from enum import Enum

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import relationship

from ..core.booking_time import utc_now
from ..core.ulid_helper import generate_ulid
from ..database import Base


class WaitlistStatus(str, Enum):
    ACTIVE = "ACTIVE"
    FULFILLED = "FULFILLED"
    CANCELED = "CANCELED"
    EXPIRED = "EXPIRED"


class WaitlistEntry(Base):
    """
    One customer waiting for a day.

    Queue order is ``(created_at, id)`` ascending. ``created_at`` is set in
    Python with microsecond precision; ties fall back to the ULID.
    """

    __tablename__ = "waitlist_entries"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    user_id = Column(String(26), nullable=False, index=True)
    barbershop_id = Column(String(26), ForeignKey("barbershops.id"), nullable=False)
    barber_id = Column(String(26), ForeignKey("barbers.id"), nullable=False)
    service_id = Column(String(26), ForeignKey("barbershop_services.id"), nullable=False)
    date_day = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=WaitlistStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    fulfilled_booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=True)
    fulfilled_seen_at = Column(DateTime(timezone=True), nullable=True)

    service = relationship("BarbershopService")
    fulfilled_booking = relationship("Booking", foreign_keys=[fulfilled_booking_id])

    __table_args__ = (
        Index(
            "ix_waitlist_queue",
            "barbershop_id",
            "barber_id",
            "service_id",
            "date_day",
            "status",
            "created_at",
            "id",
        ),
    )

    def __repr__(self) -> str:
        return f"<WaitlistEntry {self.id} {self.date_day} {self.status}>"
