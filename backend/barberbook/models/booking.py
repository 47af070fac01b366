"""
Booking ledger records.

A booking occupies ``[start_at, end_at)`` on its barbershop (and barber)
timeline while it is active; see ``active_booking_filter``. Bookings are
never physically deleted: cancellation sets ``cancelled_at`` and payment
reconciliation moves ``payment_status``.
"""

from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    and_,
    or_,
)
from sqlalchemy.orm import relationship

from ..core.booking_time import utc_now
from ..core.ulid_helper import generate_ulid
from ..database import Base


class PaymentMethod(str, Enum):
    IN_PERSON = "IN_PERSON"
    STRIPE = "STRIPE"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    barbershop_id = Column(String(26), ForeignKey("barbershops.id"), nullable=False)
    barber_id = Column(String(26), ForeignKey("barbers.id"), nullable=True)
    service_id = Column(String(26), ForeignKey("barbershop_services.id"), nullable=False)
    user_id = Column(String(26), nullable=False, index=True)

    start_at = Column(DateTime(timezone=True), nullable=False)
    # Legacy rows may lack end_at; resolve_booking_window derives it.
    end_at = Column(DateTime(timezone=True), nullable=True)
    total_duration_minutes = Column(Integer, nullable=True)
    total_price_in_cents = Column(Integer, nullable=False, default=0)

    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.IN_PERSON.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PAID.value)
    stripe_charge_id = Column(String(255), nullable=True, comment="External charge reference")
    checkout_reference = Column(
        String(255), nullable=True, comment="Reference returned by the gateway charge call"
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    service = relationship("BarbershopService", foreign_keys=[service_id])
    barber = relationship("Barber", foreign_keys=[barber_id])
    services = relationship(
        "BookingServiceLink", back_populates="booking", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_bookings_timeline", "barbershop_id", "barber_id", "start_at"),
        CheckConstraint(
            "payment_method IN ('IN_PERSON', 'STRIPE')", name="ck_bookings_payment_method"
        ),
        CheckConstraint(
            "payment_status IN ('PENDING', 'PAID', 'FAILED')", name="ck_bookings_payment_status"
        ),
    )

    @property
    def is_active(self) -> bool:
        if self.cancelled_at is not None or self.payment_status == PaymentStatus.FAILED.value:
            return False
        return (
            self.payment_method == PaymentMethod.IN_PERSON.value
            or self.payment_status in (PaymentStatus.PENDING.value, PaymentStatus.PAID.value)
            or self.stripe_charge_id is not None
        )

    @property
    def is_confirmed(self) -> bool:
        """Confirmed bookings get notifications; pending Stripe checkouts do not."""
        if not self.is_active:
            return False
        return (
            self.payment_method == PaymentMethod.IN_PERSON.value
            or self.payment_status == PaymentStatus.PAID.value
            or self.stripe_charge_id is not None
        )

    def __repr__(self) -> str:
        return f"<Booking {self.id} {self.start_at} barber={self.barber_id}>"


class BookingServiceLink(Base):
    """Services of a multi-service booking."""

    __tablename__ = "booking_services"

    booking_id = Column(String(26), ForeignKey("bookings.id"), primary_key=True)
    service_id = Column(String(26), ForeignKey("barbershop_services.id"), primary_key=True)

    booking = relationship("Booking", back_populates="services")
    service = relationship("BarbershopService")


def active_booking_filter():
    """SQL counterpart of ``Booking.is_active``: rows that count for collisions."""
    return and_(
        Booking.cancelled_at.is_(None),
        Booking.payment_status != PaymentStatus.FAILED.value,
        or_(
            Booking.payment_method == PaymentMethod.IN_PERSON.value,
            Booking.payment_status.in_([PaymentStatus.PENDING.value, PaymentStatus.PAID.value]),
            Booking.stripe_charge_id.isnot(None),
        ),
    )
