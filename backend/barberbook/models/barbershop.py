"""
Barbershop reference data: shops, weekly opening hours, barbers and services.

These rows are read by the booking ledger and the waitlist; only the
catalog guards in ``CatalogService`` mutate barbers and services.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..core.booking_time import utc_now
from ..core.ulid_helper import generate_ulid
from ..database import Base


class Barbershop(Base):
    """A tenant. ``is_exclusive`` marks single-barber mode."""

    __tablename__ = "barbershops"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    name = Column(String(120), nullable=False)
    owner_id = Column(String(26), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_exclusive = Column(Boolean, nullable=False, default=False)
    stripe_enabled = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    opening_hours = relationship(
        "BarbershopOpeningHours",
        back_populates="barbershop",
        cascade="all, delete-orphan",
        order_by="BarbershopOpeningHours.day_of_week",
    )
    barbers = relationship("Barber", back_populates="barbershop", order_by="Barber.name")
    services = relationship("BarbershopService", back_populates="barbershop")

    def __repr__(self) -> str:
        return f"<Barbershop {self.id} {self.name!r}>"


class BarbershopOpeningHours(Base):
    """Open window for one weekday (0=Sunday). ``close_minute`` may be 1440."""

    __tablename__ = "barbershop_opening_hours"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    barbershop_id = Column(String(26), ForeignKey("barbershops.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    open_minute = Column(Integer, nullable=False)
    close_minute = Column(Integer, nullable=False)
    closed = Column(Boolean, nullable=False, default=False)

    barbershop = relationship("Barbershop", back_populates="opening_hours")

    __table_args__ = (
        UniqueConstraint("barbershop_id", "day_of_week", name="uq_opening_hours_shop_weekday"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_opening_hours_weekday"),
        CheckConstraint("open_minute BETWEEN 0 AND 1439", name="ck_opening_hours_open"),
        CheckConstraint("close_minute BETWEEN 1 AND 1440", name="ck_opening_hours_close"),
        CheckConstraint(
            "closed OR close_minute > open_minute", name="ck_opening_hours_window"
        ),
    )


class Barber(Base):
    __tablename__ = "barbers"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    barbershop_id = Column(String(26), ForeignKey("barbershops.id"), nullable=False, index=True)
    name = Column(String(120), nullable=False)

    barbershop = relationship("Barbershop", back_populates="barbers")


class BarbershopService(Base):
    """
    A bookable service. Soft-deleted via ``deleted_at`` once it may be
    referenced by bookings or waitlist entries.
    """

    __tablename__ = "barbershop_services"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    barbershop_id = Column(String(26), ForeignKey("barbershops.id"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price_in_cents = Column(Integer, nullable=False, default=0)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    barbershop = relationship("Barbershop", back_populates="services")

    __table_args__ = (
        CheckConstraint(
            "duration_minutes BETWEEN 5 AND 240", name="ck_services_duration_range"
        ),
        CheckConstraint("price_in_cents >= 0", name="ck_services_price_non_negative"),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
