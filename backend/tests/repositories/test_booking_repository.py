"""Booking ledger queries and guarded updates."""

from datetime import timedelta

import pytest

from barberbook.core.booking_time import at_minute
from barberbook.models import PaymentMethod, PaymentStatus
from barberbook.repositories.factory import RepositoryFactory


@pytest.fixture
def repo(db):
    return RepositoryFactory.create_booking_repository(db)


@pytest.fixture
def setup(make_shop, make_barber, make_service):
    shop = make_shop()
    return shop, make_barber(shop, "Ana"), make_barber(shop, "Bruno"), make_service(shop)


def test_active_bookings_for_day_filters_by_barber(repo, setup, make_booking, tomorrow):
    shop, ana, bruno, cut = setup
    mine = make_booking(cut, tomorrow, 600, barber=ana)
    shared = make_booking(cut, tomorrow, 660)
    make_booking(cut, tomorrow, 720, barber=bruno)
    make_booking(cut, tomorrow + timedelta(days=2), 600, barber=ana)

    ids = {booking.id for booking in repo.get_active_bookings_for_day(shop.id, tomorrow, barber_id=ana.id)}
    assert ids == {mine.id, shared.id}

    everyone = repo.get_active_bookings_for_day(shop.id, tomorrow)
    assert len(everyone) == 3


def test_inactive_rows_are_excluded(db, repo, setup, make_booking, tomorrow):
    shop, ana, _, cut = setup
    cancelled = make_booking(cut, tomorrow, 600, barber=ana)
    cancelled.cancelled_at = at_minute(tomorrow, 0)
    make_booking(
        cut,
        tomorrow,
        660,
        barber=ana,
        payment_method=PaymentMethod.STRIPE,
        payment_status=PaymentStatus.FAILED,
    )
    db.commit()

    assert repo.get_active_bookings_for_day(shop.id, tomorrow, barber_id=ana.id) == []


def test_mark_cancelled_only_once(repo, setup, make_booking, tomorrow):
    _, ana, _, cut = setup
    booking = make_booking(cut, tomorrow, 600, barber=ana)
    when = at_minute(tomorrow, 0)

    assert repo.mark_cancelled(booking.id, when) is True
    assert repo.mark_cancelled(booking.id, when + timedelta(minutes=1)) is False


def test_payment_transition_requires_pending(repo, setup, make_booking, tomorrow):
    _, ana, _, cut = setup
    booking = make_booking(
        cut,
        tomorrow,
        600,
        barber=ana,
        payment_method=PaymentMethod.STRIPE,
        payment_status=PaymentStatus.PENDING,
    )

    assert repo.transition_payment_status(booking.id, PaymentStatus.PAID, stripe_charge_id="ch_1")
    assert not repo.transition_payment_status(booking.id, PaymentStatus.FAILED)
    assert booking.payment_status == PaymentStatus.PAID.value
    assert booking.stripe_charge_id == "ch_1"


def test_lock_timelines_is_a_noop_on_sqlite(repo):
    assert repo.dialect_name == "sqlite"
    repo.lock_timelines(["timeline:shop:*:2030-01-15"])


def test_count_future_active_for_barber(repo, setup, make_booking, tomorrow):
    _, ana, bruno, cut = setup
    make_booking(cut, tomorrow, 600, barber=ana)
    make_booking(cut, tomorrow - timedelta(days=3), 600, barber=ana)

    now = at_minute(tomorrow, 0)
    assert repo.count_future_active_for_barber(ana.id, now) == 1
    assert repo.count_future_active_for_barber(bruno.id, now) == 0
