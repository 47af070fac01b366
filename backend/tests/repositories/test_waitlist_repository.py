"""Waitlist queue ordering and conditional transitions."""

from datetime import timedelta

import pytest

from barberbook.core.booking_time import utc_now
from barberbook.models import WaitlistEntry, WaitlistStatus
from barberbook.repositories.factory import RepositoryFactory


@pytest.fixture
def repo(db):
    return RepositoryFactory.create_waitlist_repository(db)


@pytest.fixture
def queue(make_shop, make_barber, make_service):
    shop = make_shop()
    return make_barber(shop), make_service(shop)


def test_ties_on_created_at_fall_back_to_id(db, repo, queue, tomorrow):
    barber, service = queue
    created_at = utc_now()
    entries = []
    for suffix in ("C", "A", "B"):
        entry = WaitlistEntry(
            id=f"01HTIE00000000000000000000"[:-1] + suffix,
            user_id=f"01HUSER{suffix}",
            barbershop_id=service.barbershop_id,
            barber_id=barber.id,
            service_id=service.id,
            date_day=tomorrow,
            created_at=created_at,
        )
        db.add(entry)
        entries.append(entry)
    db.commit()

    head = repo.get_first_active(service.barbershop_id, barber.id, service.id, tomorrow)

    assert head.id.endswith("A")
    positions = {entry.id[-1]: repo.get_position(entry) for entry in entries}
    assert positions == {"A": 1, "B": 2, "C": 3}


def test_position_counts_only_active_entries(repo, queue, make_waitlist_entry, tomorrow):
    barber, service = queue
    make_waitlist_entry(service, barber, tomorrow, status=WaitlistStatus.CANCELED, created_offset_seconds=-30)
    make_waitlist_entry(service, barber, tomorrow, status=WaitlistStatus.FULFILLED, created_offset_seconds=-20)
    mine = make_waitlist_entry(service, barber, tomorrow)

    assert repo.get_position(mine) == 1
    assert repo.count_active(service.barbershop_id, barber.id, service.id, tomorrow) == 1
    assert repo.count_active_for_barber(barber.id) == 1


def test_transition_is_conditional(repo, queue, make_waitlist_entry, tomorrow, customer_id):
    barber, service = queue
    entry = make_waitlist_entry(service, barber, tomorrow)

    assert repo.transition_status(entry.id, WaitlistStatus.ACTIVE, WaitlistStatus.FULFILLED)
    assert not repo.transition_status(entry.id, WaitlistStatus.ACTIVE, WaitlistStatus.CANCELED)
    assert entry.status == WaitlistStatus.FULFILLED.value


def test_transition_checks_owner(repo, queue, make_waitlist_entry, tomorrow, other_customer_id):
    barber, service = queue
    entry = make_waitlist_entry(service, barber, tomorrow)

    assert not repo.transition_status(
        entry.id, WaitlistStatus.ACTIVE, WaitlistStatus.CANCELED, user_id=other_customer_id
    )
    assert entry.status == WaitlistStatus.ACTIVE.value


def test_days_are_separate_queues(repo, queue, make_waitlist_entry, tomorrow):
    barber, service = queue
    make_waitlist_entry(service, barber, tomorrow + timedelta(days=1), created_offset_seconds=-60)
    today_entry = make_waitlist_entry(service, barber, tomorrow)

    head = repo.get_first_active(service.barbershop_id, barber.id, service.id, tomorrow)
    assert head.id == today_entry.id
