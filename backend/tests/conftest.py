# backend/tests/conftest.py
"""
Pytest configuration.

Every test gets a fresh in-memory SQLite database. Settings are pinned
before any barberbook import so the calendar and the lock are
deterministic: America/Sao_Paulo (UTC-3, no DST), 30 minute grid,
5 minute buffer, no Redis.
"""

import os

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BOOKING_TIMEZONE"] = "America/Sao_Paulo"
os.environ["SLOT_STEP_MINUTES"] = "30"
os.environ["SLOT_BUFFER_MINUTES"] = "5"
os.environ.pop("BOOKING_LOCK_REDIS_URL", None)
os.environ.pop("STRIPE_SECRET_KEY", None)
os.environ.pop("STRIPE_WEBHOOK_SECRET", None)

from datetime import date, timedelta
from typing import Iterable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from barberbook.api.dependencies.database import get_db
from barberbook.api.dependencies.services import get_payment_gateway_dep
from barberbook.core.booking_time import at_minute, get_booking_today, utc_now
from barberbook.core.config import settings
from barberbook.database import Base
from barberbook.integrations.payment_gateway import FakePaymentGateway
from barberbook.main import app
from barberbook.models import (
    Barber,
    Barbershop,
    BarbershopOpeningHours,
    BarbershopService,
    Booking,
    PaymentMethod,
    PaymentStatus,
    WaitlistEntry,
    WaitlistStatus,
)

settings.is_testing = True

OWNER_ID = "01HOWNER000000000000000000"
CUSTOMER_ID = "01HCUSTOMER000000000000000"
OTHER_CUSTOMER_ID = "01HOTHERCUSTOMER0000000000"

OPEN_0900 = 9 * 60
CLOSE_1800 = 18 * 60


def make_engine(url: str = "sqlite://"):
    if url == "sqlite://":
        return create_engine(
            url, connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
    return create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})


@pytest.fixture
def engine():
    engine = make_engine()
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def tomorrow() -> date:
    return get_booking_today() + timedelta(days=1)


@pytest.fixture
def gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


# ============================================================================
# Builders
# ============================================================================


@pytest.fixture
def make_shop(db):
    def _make(
        name: str = "Corte Fino",
        *,
        owner_id: str = OWNER_ID,
        is_active: bool = True,
        is_exclusive: bool = False,
        stripe_enabled: bool = False,
        open_minute: Optional[int] = OPEN_0900,
        close_minute: int = CLOSE_1800,
        closed_weekdays: Iterable[int] = (),
    ) -> Barbershop:
        shop = Barbershop(
            name=name,
            owner_id=owner_id,
            is_active=is_active,
            is_exclusive=is_exclusive,
            stripe_enabled=stripe_enabled,
        )
        db.add(shop)
        db.flush()
        if open_minute is not None:
            closed = set(closed_weekdays)
            for weekday in range(7):
                db.add(
                    BarbershopOpeningHours(
                        barbershop_id=shop.id,
                        day_of_week=weekday,
                        open_minute=open_minute,
                        close_minute=close_minute,
                        closed=weekday in closed,
                    )
                )
        db.commit()
        return shop

    return _make


@pytest.fixture
def make_barber(db):
    def _make(shop: Barbershop, name: str = "Rafael") -> Barber:
        barber = Barber(barbershop_id=shop.id, name=name)
        db.add(barber)
        db.commit()
        return barber

    return _make


@pytest.fixture
def make_service(db):
    def _make(
        shop: Barbershop,
        name: str = "Corte",
        duration_minutes: int = 30,
        price_in_cents: int = 5000,
    ) -> BarbershopService:
        service = BarbershopService(
            barbershop_id=shop.id,
            name=name,
            duration_minutes=duration_minutes,
            price_in_cents=price_in_cents,
        )
        db.add(service)
        db.commit()
        return service

    return _make


@pytest.fixture
def make_booking(db):
    def _make(
        service: BarbershopService,
        day: date,
        start_minute: int,
        *,
        barber: Optional[Barber] = None,
        user_id: str = CUSTOMER_ID,
        duration_minutes: Optional[int] = None,
        payment_method: PaymentMethod = PaymentMethod.IN_PERSON,
        payment_status: PaymentStatus = PaymentStatus.PAID,
        stripe_charge_id: Optional[str] = None,
        legacy: bool = False,
    ) -> Booking:
        duration = duration_minutes or service.duration_minutes
        start_at = at_minute(day, start_minute)
        booking = Booking(
            barbershop_id=service.barbershop_id,
            barber_id=barber.id if barber else None,
            service_id=service.id,
            user_id=user_id,
            start_at=start_at,
            end_at=None if legacy else start_at + timedelta(minutes=duration),
            total_duration_minutes=None if legacy else duration,
            total_price_in_cents=service.price_in_cents,
            payment_method=payment_method.value,
            payment_status=payment_status.value,
            stripe_charge_id=stripe_charge_id,
        )
        db.add(booking)
        db.commit()
        return booking

    return _make


@pytest.fixture
def make_waitlist_entry(db):
    def _make(
        service: BarbershopService,
        barber: Barber,
        day: date,
        *,
        user_id: str = CUSTOMER_ID,
        status: WaitlistStatus = WaitlistStatus.ACTIVE,
        created_offset_seconds: int = 0,
    ) -> WaitlistEntry:
        entry = WaitlistEntry(
            user_id=user_id,
            barbershop_id=service.barbershop_id,
            barber_id=barber.id,
            service_id=service.id,
            date_day=day,
            status=status.value,
            created_at=utc_now() + timedelta(seconds=created_offset_seconds),
        )
        db.add(entry)
        db.commit()
        return entry

    return _make


# ============================================================================
# HTTP
# ============================================================================


@pytest.fixture
def client(db, gateway):
    def _get_db():
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_payment_gateway_dep] = lambda: gateway
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user_id: str = CUSTOMER_ID) -> dict:
        return {"X-User-Id": user_id}

    return _headers


@pytest.fixture
def owner_id() -> str:
    return OWNER_ID


@pytest.fixture
def customer_id() -> str:
    return CUSTOMER_ID


@pytest.fixture
def other_customer_id() -> str:
    return OTHER_CUSTOMER_ID
