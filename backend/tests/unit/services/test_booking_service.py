"""Booking ledger: creation with the collision guard, cancellation, reconciliation."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from barberbook.core.booking_lock import booking_section, timeline_lock_key
from barberbook.core.booking_time import at_minute, ensure_utc
from barberbook.core.exceptions import (
    BookingConflictException,
    BusinessRuleException,
    ForbiddenException,
    NotFoundException,
    PaymentException,
    ValidationException,
)
from barberbook.integrations.payment_gateway import FakePaymentGateway
from barberbook.models import (
    Booking,
    BookingServiceLink,
    NotificationJob,
    NotificationJobStatus,
    PaymentMethod,
    PaymentStatus,
    WaitlistStatus,
)
from barberbook.services.booking_service import BookingService


@pytest.fixture
def shop(make_shop):
    return make_shop()


@pytest.fixture
def barber(make_barber, shop):
    return make_barber(shop)


@pytest.fixture
def haircut(make_service, shop):
    return make_service(shop)


@pytest.fixture
def booking_service(db, gateway):
    return BookingService(db, payment_gateway=gateway)


def _jobs(db, booking_id):
    return (
        db.query(NotificationJob)
        .filter(NotificationJob.booking_id == booking_id)
        .order_by(NotificationJob.created_at, NotificationJob.id)
        .all()
    )


class TestCreateBooking:
    def test_creates_confirmed_in_person_booking(
        self, db, booking_service, haircut, barber, customer_id, tomorrow
    ):
        start_at = at_minute(tomorrow, 600)

        booking = booking_service.create_booking(
            customer_id, [haircut.id], start_at, barber_id=barber.id
        )

        assert booking.payment_method == PaymentMethod.IN_PERSON.value
        assert booking.payment_status == PaymentStatus.PAID.value
        assert ensure_utc(booking.end_at) - ensure_utc(booking.start_at) == timedelta(minutes=30)
        assert booking.total_price_in_cents == haircut.price_in_cents
        assert booking.barber_id == barber.id

        job_types = {job.job_type for job in _jobs(db, booking.id)}
        assert "booking_confirmation" in job_types
        assert "event:BookingCreated" in job_types

    def test_multi_service_booking_aggregates(
        self, db, booking_service, shop, haircut, make_service, customer_id, tomorrow
    ):
        beard = make_service(shop, name="Barba", duration_minutes=20, price_in_cents=2500)

        booking = booking_service.create_booking(
            customer_id, [haircut.id, beard.id], at_minute(tomorrow, 600)
        )

        assert booking.total_duration_minutes == 50
        assert booking.total_price_in_cents == haircut.price_in_cents + 2500
        assert booking.service_id == haircut.id
        linked = {
            link.service_id
            for link in db.query(BookingServiceLink).filter_by(booking_id=booking.id)
        }
        assert linked == {haircut.id, beard.id}

    def test_overlapping_start_is_rejected(
        self, booking_service, haircut, barber, make_booking, customer_id, tomorrow
    ):
        make_booking(haircut, tomorrow, 600, barber=barber)

        with pytest.raises(BookingConflictException):
            booking_service.create_booking(
                customer_id, [haircut.id], at_minute(tomorrow, 615), barber_id=barber.id
            )

    def test_touching_intervals_are_allowed(
        self, booking_service, haircut, barber, make_booking, customer_id, tomorrow
    ):
        make_booking(haircut, tomorrow, 600, barber=barber)

        booking = booking_service.create_booking(
            customer_id, [haircut.id], at_minute(tomorrow, 630), barber_id=barber.id
        )
        assert booking.id

    def test_other_barbers_do_not_collide(
        self, booking_service, shop, haircut, make_barber, make_booking, customer_id, tomorrow
    ):
        ana = make_barber(shop, "Ana")
        bruno = make_barber(shop, "Bruno")
        make_booking(haircut, tomorrow, 600, barber=ana)

        booking = booking_service.create_booking(
            customer_id, [haircut.id], at_minute(tomorrow, 600), barber_id=bruno.id
        )
        assert booking.barber_id == bruno.id

    def test_barber_less_booking_collides_with_any_barber(
        self, booking_service, haircut, barber, make_booking, customer_id, tomorrow
    ):
        make_booking(haircut, tomorrow, 600, barber=barber)

        with pytest.raises(BookingConflictException):
            booking_service.create_booking(customer_id, [haircut.id], at_minute(tomorrow, 600))

    def test_barber_less_booking_holds_barbers_added_while_waiting(
        self, booking_service, shop, haircut, make_barber, customer_id, tomorrow
    ):
        ana = make_barber(shop, "Ana")
        bruno = make_barber(shop, "Bruno")
        entered = []

        def recording_section(keys, **kwargs):
            entered.append(set(keys))
            return booking_section(keys, **kwargs)

        with patch(
            "barberbook.services.booking_service.booking_section", side_effect=recording_section
        ), patch.object(
            booking_service.barbershop_repository,
            "list_barber_ids",
            side_effect=[[ana.id], [ana.id, bruno.id], [ana.id, bruno.id]],
        ):
            booking_service.create_booking(customer_id, [haircut.id], at_minute(tomorrow, 600))

        assert len(entered) == 2
        assert timeline_lock_key(shop.id, bruno.id, tomorrow) not in entered[0]
        assert timeline_lock_key(shop.id, bruno.id, tomorrow) in entered[1]

    def test_interval_crossing_midnight_is_rejected(
        self, booking_service, make_shop, make_barber, make_service, customer_id, tomorrow
    ):
        shop = make_shop(open_minute=0, close_minute=24 * 60)
        barber = make_barber(shop)
        long_cut = make_service(shop, duration_minutes=60)
        booking_service.create_booking(
            customer_id, [long_cut.id], at_minute(tomorrow + timedelta(days=1), 0), barber_id=barber.id
        )

        with pytest.raises(ValidationException):
            booking_service.create_booking(
                customer_id, [long_cut.id], at_minute(tomorrow, 23 * 60 + 30), barber_id=barber.id
            )

    @pytest.mark.parametrize("start_minute", [8 * 60, 17 * 60 + 45, 18 * 60])
    def test_interval_outside_opening_hours_is_rejected(
        self, booking_service, haircut, customer_id, tomorrow, start_minute
    ):
        with pytest.raises(ValidationException):
            booking_service.create_booking(
                customer_id, [haircut.id], at_minute(tomorrow, start_minute)
            )

    def test_closed_day_is_rejected(
        self, booking_service, make_shop, make_service, customer_id, tomorrow
    ):
        cut = make_service(make_shop(closed_weekdays=range(7)))

        with pytest.raises(ValidationException):
            booking_service.create_booking(customer_id, [cut.id], at_minute(tomorrow, 600))

    def test_start_within_buffer_is_rejected(
        self, booking_service, haircut, customer_id, tomorrow
    ):
        start_at = at_minute(tomorrow, 600)
        with pytest.raises(ValidationException):
            booking_service.create_booking(
                customer_id, [haircut.id], start_at, now=start_at - timedelta(minutes=5)
            )

    def test_past_start_is_rejected(self, booking_service, haircut, customer_id, tomorrow):
        start_at = at_minute(tomorrow, 600)
        with pytest.raises(ValidationException):
            booking_service.create_booking(
                customer_id, [haircut.id], start_at, now=start_at + timedelta(hours=1)
            )

    def test_soft_deleted_service_is_rejected(
        self, db, booking_service, haircut, customer_id, tomorrow
    ):
        haircut.deleted_at = at_minute(tomorrow, 0) - timedelta(days=3)
        db.commit()
        with pytest.raises(ValidationException):
            booking_service.create_booking(customer_id, [haircut.id], at_minute(tomorrow, 600))

    def test_services_from_two_shops_are_rejected(
        self, booking_service, haircut, make_shop, make_service, customer_id, tomorrow
    ):
        foreign = make_service(make_shop("Outra"))
        with pytest.raises(ValidationException):
            booking_service.create_booking(
                customer_id, [haircut.id, foreign.id], at_minute(tomorrow, 600)
            )

    def test_inactive_shop_is_rejected(
        self, booking_service, make_shop, make_service, customer_id, tomorrow
    ):
        cut = make_service(make_shop(is_active=False))
        with pytest.raises(ValidationException):
            booking_service.create_booking(customer_id, [cut.id], at_minute(tomorrow, 600))

    def test_foreign_barber_is_rejected(
        self, booking_service, haircut, make_shop, make_barber, customer_id, tomorrow
    ):
        stranger = make_barber(make_shop("Outra"))
        with pytest.raises(NotFoundException):
            booking_service.create_booking(
                customer_id, [haircut.id], at_minute(tomorrow, 600), barber_id=stranger.id
            )


class TestStripeCheckout:
    def test_stripe_shop_creates_pending_booking_and_charges(
        self, db, booking_service, gateway, make_shop, make_service, customer_id, tomorrow
    ):
        cut = make_service(make_shop(stripe_enabled=True), price_in_cents=7000)

        booking = booking_service.create_booking(customer_id, [cut.id], at_minute(tomorrow, 600))

        assert booking.payment_method == PaymentMethod.STRIPE.value
        assert booking.payment_status == PaymentStatus.PENDING.value
        assert booking.checkout_reference.startswith("pi_fake_")
        amount, currency, metadata = gateway.charges[0]
        assert amount == 7000
        assert currency == "brl"
        assert metadata["booking_id"] == booking.id
        # nothing is announced until the payment settles
        assert _jobs(db, booking.id) == []

    def test_charge_failure_marks_booking_failed_and_frees_slot(
        self, db, make_shop, make_service, customer_id, tomorrow
    ):
        cut = make_service(make_shop(stripe_enabled=True))
        service = BookingService(db, payment_gateway=FakePaymentGateway(fail_charge=True))

        with pytest.raises(PaymentException):
            service.create_booking(customer_id, [cut.id], at_minute(tomorrow, 600))

        failed = db.query(Booking).one()
        assert failed.payment_status == PaymentStatus.FAILED.value

        retry = BookingService(db, payment_gateway=FakePaymentGateway())
        booking = retry.create_booking(customer_id, [cut.id], at_minute(tomorrow, 600))
        assert booking.payment_status == PaymentStatus.PENDING.value


class TestCancelBooking:
    def test_cancels_and_cancels_pending_notifications(
        self, db, booking_service, haircut, barber, customer_id, tomorrow
    ):
        booking = booking_service.create_booking(
            customer_id, [haircut.id], at_minute(tomorrow, 600), barber_id=barber.id
        )

        result = booking_service.cancel_booking(booking.id, customer_id)

        assert result.booking.cancelled_at is not None
        assert result.refunded is False
        jobs = _jobs(db, booking.id)
        confirmation = [job for job in jobs if job.job_type == "booking_confirmation"]
        assert confirmation[0].status == NotificationJobStatus.CANCELED.value
        cancelled_event = [job for job in jobs if job.job_type == "event:BookingCancelled"]
        assert cancelled_event[0].status == NotificationJobStatus.PENDING.value

    def test_charged_booking_is_refunded(
        self, booking_service, gateway, haircut, make_booking, customer_id, tomorrow
    ):
        booking = make_booking(
            haircut,
            tomorrow,
            600,
            payment_method=PaymentMethod.STRIPE,
            payment_status=PaymentStatus.PAID,
            stripe_charge_id="ch_123",
        )

        result = booking_service.cancel_booking(booking.id, customer_id)

        assert result.refunded is True
        assert gateway.refunds == [("ch_123", "requested_by_customer")]

    def test_pending_checkout_is_voided(
        self, db, booking_service, gateway, make_shop, make_service, customer_id, tomorrow
    ):
        cut = make_service(make_shop(stripe_enabled=True))
        booking = booking_service.create_booking(customer_id, [cut.id], at_minute(tomorrow, 600))

        result = booking_service.cancel_booking(booking.id, customer_id)

        assert result.refunded is True
        assert gateway.refunds == [(booking.checkout_reference, "requested_by_customer")]
        db.refresh(booking)
        assert booking.refunded_at is not None

    def test_refund_failure_leaves_booking_active(
        self, db, haircut, make_booking, customer_id, tomorrow
    ):
        booking = make_booking(
            haircut,
            tomorrow,
            600,
            payment_method=PaymentMethod.STRIPE,
            payment_status=PaymentStatus.PAID,
            stripe_charge_id="ch_123",
        )
        service = BookingService(db, payment_gateway=FakePaymentGateway(fail_refund=True))

        with pytest.raises(PaymentException):
            service.cancel_booking(booking.id, customer_id)

        db.refresh(booking)
        assert booking.cancelled_at is None

    def test_second_cancel_is_rejected_without_second_refund(
        self, booking_service, gateway, haircut, make_booking, customer_id, tomorrow
    ):
        booking = make_booking(
            haircut,
            tomorrow,
            600,
            payment_method=PaymentMethod.STRIPE,
            payment_status=PaymentStatus.PAID,
            stripe_charge_id="ch_123",
        )
        booking_service.cancel_booking(booking.id, customer_id)

        with pytest.raises(BusinessRuleException) as exc_info:
            booking_service.cancel_booking(booking.id, customer_id)

        assert exc_info.value.code == "BOOKING_ALREADY_CANCELLED"
        assert len(gateway.refunds) == 1

    def test_past_booking_cannot_be_cancelled(
        self, booking_service, haircut, make_booking, customer_id, tomorrow
    ):
        booking = make_booking(haircut, tomorrow, 600)
        with pytest.raises(BusinessRuleException) as exc_info:
            booking_service.cancel_booking(
                booking.id, customer_id, now=at_minute(tomorrow, 601)
            )
        assert exc_info.value.code == "BOOKING_IN_PAST"

    def test_only_the_owner_can_cancel(
        self, booking_service, haircut, make_booking, other_customer_id, tomorrow
    ):
        booking = make_booking(haircut, tomorrow, 600)
        with pytest.raises(ForbiddenException):
            booking_service.cancel_booking(booking.id, other_customer_id)

    def test_unknown_booking(self, booking_service, customer_id):
        with pytest.raises(NotFoundException):
            booking_service.cancel_booking("01HNOBOOKING00000000000000", customer_id)

    def test_fulfillment_errors_are_swallowed(
        self, db, gateway, haircut, barber, make_booking, customer_id, tomorrow
    ):
        fulfillment = MagicMock()
        fulfillment.fulfill.side_effect = RuntimeError("queue exploded")
        service = BookingService(db, payment_gateway=gateway, fulfillment_service=fulfillment)
        booking = make_booking(haircut, tomorrow, 600, barber=barber)

        result = service.cancel_booking(booking.id, customer_id)

        assert result.waitlist is None
        assert result.booking.cancelled_at is not None
        fulfillment.fulfill.assert_called_once()

    def test_cancellation_hands_slot_to_waitlist(
        self,
        db,
        booking_service,
        haircut,
        barber,
        make_booking,
        make_waitlist_entry,
        customer_id,
        other_customer_id,
        tomorrow,
    ):
        booking = make_booking(haircut, tomorrow, 14 * 60, barber=barber)
        entry = make_waitlist_entry(haircut, barber, tomorrow, user_id=other_customer_id)

        result = booking_service.cancel_booking(booking.id, customer_id)

        assert result.waitlist is not None
        assert result.waitlist.fulfilled is True
        db.refresh(entry)
        assert entry.status == WaitlistStatus.FULFILLED.value
        new_booking = db.get(Booking, entry.fulfilled_booking_id)
        assert new_booking.user_id == other_customer_id
        assert ensure_utc(new_booking.start_at) == at_minute(tomorrow, 14 * 60)
        assert ensure_utc(new_booking.end_at) == at_minute(tomorrow, 14 * 60 + 30)


class TestReconcilePayment:
    @pytest.fixture
    def pending(self, make_shop, make_service, make_booking, tomorrow):
        cut = make_service(make_shop(stripe_enabled=True))
        return make_booking(
            cut,
            tomorrow,
            600,
            payment_method=PaymentMethod.STRIPE,
            payment_status=PaymentStatus.PENDING,
        )

    def test_success_confirms_and_announces(self, db, booking_service, pending):
        booking = booking_service.reconcile_payment(pending.id, True, "ch_999")

        assert booking.payment_status == PaymentStatus.PAID.value
        assert booking.stripe_charge_id == "ch_999"
        job_types = {job.job_type for job in _jobs(db, pending.id)}
        assert {"booking_confirmation", "event:BookingCreated"} <= job_types

    def test_failure_releases_the_slot(self, booking_service, pending):
        booking = booking_service.reconcile_payment(pending.id, False)
        assert booking.payment_status == PaymentStatus.FAILED.value
        assert booking.is_active is False

    def test_replayed_events_are_ignored(self, db, booking_service, pending):
        booking_service.reconcile_payment(pending.id, True, "ch_999")
        booking_service.reconcile_payment(pending.id, False)
        booking_service.reconcile_payment(pending.id, True, "ch_other")

        db.refresh(pending)
        assert pending.payment_status == PaymentStatus.PAID.value
        assert pending.stripe_charge_id == "ch_999"
        confirmations = [
            job for job in _jobs(db, pending.id) if job.job_type == "booking_confirmation"
        ]
        assert len(confirmations) == 1

    def test_success_after_cancellation_is_refunded(
        self, db, booking_service, gateway, pending, customer_id
    ):
        booking_service.cancel_booking(pending.id, customer_id)
        assert gateway.refunds == []

        booking = booking_service.reconcile_payment(pending.id, True, "ch_late")

        assert gateway.refunds == [("ch_late", "requested_by_customer")]
        assert booking.payment_status == PaymentStatus.PAID.value
        assert booking.refunded_at is not None
        job_types = {job.job_type for job in _jobs(db, pending.id)}
        assert "booking_confirmation" not in job_types

        booking_service.reconcile_payment(pending.id, True, "ch_late")
        assert len(gateway.refunds) == 1

    def test_failed_late_refund_keeps_booking_pending(self, db, pending, customer_id):
        BookingService(db, payment_gateway=FakePaymentGateway()).cancel_booking(
            pending.id, customer_id
        )
        failing = BookingService(db, payment_gateway=FakePaymentGateway(fail_refund=True))

        with pytest.raises(PaymentException):
            failing.reconcile_payment(pending.id, True, "ch_late")

        db.refresh(pending)
        assert pending.payment_status == PaymentStatus.PENDING.value
        assert pending.refunded_at is None

        retry = FakePaymentGateway()
        BookingService(db, payment_gateway=retry).reconcile_payment(pending.id, True, "ch_late")
        assert retry.refunds == [("ch_late", "requested_by_customer")]

    def test_checkout_cancelled_before_settling_is_not_refunded_twice(
        self, db, booking_service, gateway, make_shop, make_service, customer_id, tomorrow
    ):
        cut = make_service(make_shop(stripe_enabled=True))
        booking = booking_service.create_booking(customer_id, [cut.id], at_minute(tomorrow, 600))
        booking_service.cancel_booking(booking.id, customer_id)

        settled = booking_service.reconcile_payment(booking.id, True, "ch_late")

        assert gateway.refunds == [(booking.checkout_reference, "requested_by_customer")]
        assert settled.payment_status == PaymentStatus.PAID.value
        assert settled.refunded_at is not None


def test_get_booking_enforces_ownership(
    booking_service, haircut, make_booking, customer_id, other_customer_id, tomorrow
):
    booking = make_booking(haircut, tomorrow, 600)
    assert booking_service.get_booking(booking.id, customer_id).id == booking.id
    with pytest.raises(ForbiddenException):
        booking_service.get_booking(booking.id, other_customer_id)
