# backend/barberbook/services/booking_service.py
"""
Booking Ledger service.

Handles booking creation with the collision guard, cancellation with
refund and waitlist hand-off, and Stripe payment reconciliation.

Creation runs in two phases: reference data is resolved and committed
first, then the collision check and the insert run in one transaction
inside the exclusive booking section.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.booking_interval import overlaps
from ..core.booking_lock import booking_lock_sync, booking_section, timeline_lock_keys
from ..core.booking_time import (
    day_of_week,
    ensure_utc,
    get_booking_day,
    is_at_or_before_now_with_buffer,
    minute_of_day,
    utc_now,
)
from ..core.config import settings
from ..core.exceptions import (
    BookingConflictException,
    BookingLockTimeout,
    BusinessRuleException,
    ForbiddenException,
    NotFoundException,
    PaymentException,
    ValidationException,
)
from ..events.booking_events import BookingCancelled, BookingCreated
from ..events.publisher import EventPublisher
from ..integrations.payment_gateway import (
    REFUND_REASON_REQUESTED_BY_CUSTOMER,
    PaymentGateway,
    PaymentGatewayError,
    get_payment_gateway,
)
from ..models.booking import Booking, PaymentMethod, PaymentStatus
from ..repositories.factory import RepositoryFactory
from ..utils.booking_calculations import (
    calculate_booking_totals,
    resolve_booking_window,
    to_day_intervals,
)
from .availability_service import load_services, resolve_barber
from .base import BaseService
from .notification_service import NotificationService
from .opening_hours_service import OpeningHoursService
from .waitlist_fulfillment import (
    ReleasedSlot,
    WaitlistFulfillmentResult,
    WaitlistFulfillmentService,
)

logger = logging.getLogger(__name__)

_MAX_SECTION_ATTEMPTS = 3

_REFUNDABLE_STATUSES = frozenset({PaymentStatus.PENDING.value, PaymentStatus.PAID.value})


@dataclass(frozen=True)
class CancellationResult:
    booking: Booking
    refunded: bool
    waitlist: Optional[WaitlistFulfillmentResult]


@dataclass(frozen=True)
class _BookingDraft:
    barbershop_id: str
    barber_id: Optional[str]
    service_ids: List[str]
    duration_minutes: int
    price_in_cents: int
    stripe_enabled: bool


class BookingService(BaseService):
    """Creates, cancels and reconciles bookings."""

    def __init__(
        self,
        db: Session,
        payment_gateway: Optional[PaymentGateway] = None,
        notification_service: Optional[NotificationService] = None,
        fulfillment_service: Optional[WaitlistFulfillmentService] = None,
    ):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.barbershop_repository = RepositoryFactory.create_barbershop_repository(db)
        self.opening_hours_service = OpeningHoursService(db, self.barbershop_repository)
        self.payment_gateway = payment_gateway or get_payment_gateway()
        self.notification_service = notification_service or NotificationService(db)
        self.event_publisher = EventPublisher(
            RepositoryFactory.create_notification_job_repository(db)
        )
        self.fulfillment_service = fulfillment_service or WaitlistFulfillmentService(
            db, self.notification_service
        )

    def get_booking(self, booking_id: str, user_id: Optional[str] = None) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        if user_id is not None and booking.user_id != user_id:
            raise ForbiddenException("You do not have permission to access this booking")
        return booking

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self,
        user_id: str,
        service_ids: Sequence[str],
        start_at: datetime,
        barber_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Create a booking for one or more services.

        Args:
            user_id: Customer making the booking
            service_ids: Services of a single barbershop; durations and prices are summed
            start_at: Requested start instant
            barber_id: Optional barber of that barbershop
            now: Clock override

        Returns:
            The booking; PENDING with a checkout reference for Stripe-enabled
            barbershops, confirmed otherwise

        Raises:
            ValidationException: Start too close or in the past, bad services, inactive barbershop
            NotFoundException: Unknown barbershop or barber
            BookingConflictException: The interval is taken (or being taken)
            PaymentException: The gateway refused to start the charge
        """
        start_at = ensure_utc(start_at)
        if is_at_or_before_now_with_buffer(start_at, now=now):
            raise ValidationException(
                "The selected date and time have passed or are too close to now",
                details={"start_at": start_at.isoformat()},
            )

        # Phase 1: resolve reference data
        with self.transaction():
            draft = self._build_draft(service_ids, barber_id)
            self._ensure_within_opening_hours(draft, start_at)

        # Phase 2: collision check and insert inside the exclusive section
        booking = self._insert_in_section(draft, user_id, start_at, now)

        if draft.stripe_enabled:
            booking = self._start_checkout(booking)

        self.log_operation(
            "create_booking",
            booking_id=booking.id,
            barbershop_id=booking.barbershop_id,
            barber_id=booking.barber_id,
            payment_method=booking.payment_method,
        )
        return booking

    def _build_draft(self, service_ids: Sequence[str], barber_id: Optional[str]) -> _BookingDraft:
        services = load_services(self.barbershop_repository, service_ids)
        barbershop_id = services[0].barbershop_id
        barbershop = self.barbershop_repository.get_by_id(barbershop_id, load_relationships=False)
        if barbershop is None:
            raise NotFoundException("Barbershop not found", details={"barbershop_id": barbershop_id})
        if not barbershop.is_active:
            raise ValidationException("This barbershop is not accepting bookings")
        barber = resolve_barber(self.barbershop_repository, barbershop, barber_id)
        totals = calculate_booking_totals(services)
        return _BookingDraft(
            barbershop_id=barbershop_id,
            barber_id=barber.id if barber else None,
            service_ids=[service.id for service in services],
            duration_minutes=totals.duration_minutes,
            price_in_cents=totals.price_in_cents,
            stripe_enabled=bool(barbershop.stripe_enabled),
        )

    def _ensure_within_opening_hours(self, draft: _BookingDraft, start_at: datetime) -> None:
        """The whole interval must fit in the open window of its start day."""
        window = self.opening_hours_service.resolve(
            draft.barbershop_id, day_of_week(get_booking_day(start_at))
        )
        start_minute = minute_of_day(start_at)
        if (
            window.closed
            or start_minute < window.open_minute
            or start_minute + draft.duration_minutes > window.close_minute
        ):
            raise ValidationException(
                "The selected time is outside the barbershop's opening hours",
                details={
                    "start_at": start_at.isoformat(),
                    "duration_minutes": draft.duration_minutes,
                },
            )

    def _insert_in_section(
        self, draft: _BookingDraft, user_id: str, start_at: datetime, now: Optional[datetime]
    ) -> Booking:
        """
        Re-check collisions and insert while holding the timeline keys.

        A barber-less booking must hold every barber key of the shop. The
        barber list is re-read once the keys are held; if it grew in the
        meantime the section is re-entered with the wider key set.
        """
        day = get_booking_day(start_at)
        barber_ids: List[str] = []
        if draft.barber_id is None:
            barber_ids = self.barbershop_repository.list_barber_ids(draft.barbershop_id)
        for _ in range(_MAX_SECTION_ATTEMPTS):
            keys = timeline_lock_keys(draft.barbershop_id, draft.barber_id, day, barber_ids)
            with booking_section(keys):
                with self.transaction():
                    if draft.barber_id is None:
                        barber_ids = self.barbershop_repository.list_barber_ids(
                            draft.barbershop_id
                        )
                        wanted = timeline_lock_keys(draft.barbershop_id, None, day, barber_ids)
                        if not set(wanted) <= set(keys):
                            continue
                    self.booking_repository.lock_timelines(keys)
                    existing = self.booking_repository.get_active_bookings_for_day(
                        draft.barbershop_id, day, barber_id=draft.barber_id
                    )
                    if overlaps(
                        minute_of_day(start_at),
                        draft.duration_minutes,
                        to_day_intervals(existing, day),
                    ):
                        raise BookingConflictException(
                            "The selected date and time are already booked",
                            details={"start_at": start_at.isoformat()},
                        )
                    booking = self._insert_booking(draft, user_id, start_at)
                    if not draft.stripe_enabled:
                        self._announce_confirmed(booking, now)
                    return booking
        raise BookingLockTimeout(list(keys))

    def _insert_booking(self, draft: _BookingDraft, user_id: str, start_at: datetime) -> Booking:
        if draft.stripe_enabled:
            method, status = PaymentMethod.STRIPE, PaymentStatus.PENDING
        else:
            method, status = PaymentMethod.IN_PERSON, PaymentStatus.PAID
        booking = self.booking_repository.create(
            barbershop_id=draft.barbershop_id,
            barber_id=draft.barber_id,
            service_id=draft.service_ids[0],
            user_id=user_id,
            start_at=start_at,
            end_at=start_at + timedelta(minutes=draft.duration_minutes),
            total_duration_minutes=draft.duration_minutes,
            total_price_in_cents=draft.price_in_cents,
            payment_method=method.value,
            payment_status=status.value,
        )
        self.booking_repository.attach_services(booking, draft.service_ids)
        return booking

    def _announce_confirmed(self, booking: Booking, now: Optional[datetime] = None) -> None:
        self.notification_service.schedule_booking_jobs(booking, now)
        self.event_publisher.publish(
            BookingCreated(
                booking_id=booking.id,
                user_id=booking.user_id,
                barbershop_id=booking.barbershop_id,
                barber_id=booking.barber_id,
                start_at=ensure_utc(booking.start_at),
            )
        )

    def _start_checkout(self, booking: Booking) -> Booking:
        """Charge a pending Stripe booking; a refusal releases the slot."""
        metadata = {
            "booking_id": booking.id,
            "barbershop_id": booking.barbershop_id,
            "barber_id": booking.barber_id or "",
            "user_id": booking.user_id,
        }
        try:
            reference = self.payment_gateway.charge(
                booking.total_price_in_cents, settings.payment_currency, metadata
            )
        except PaymentGatewayError as exc:
            with self.transaction():
                self.booking_repository.transition_payment_status(booking.id, PaymentStatus.FAILED)
            self.logger.warning(
                "Payment could not be started",
                extra={"booking_id": booking.id, "error_type": exc.error_type},
            )
            raise PaymentException(
                "Payment could not be started. Please try again.",
                details={"booking_id": booking.id},
            ) from exc

        with self.transaction():
            booking.checkout_reference = reference
        return booking

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self, booking_id: str, user_id: str, now: Optional[datetime] = None
    ) -> CancellationResult:
        """
        Cancel a future booking owned by ``user_id``.

        A charged booking is refunded, and a pending checkout voided, before
        anything is written; if that fails the booking stays active. After the cancellation
        commits, the released interval is offered to the waitlist.
        Fulfillment errors are logged, never raised.
        """
        current = ensure_utc(now or utc_now())

        with booking_lock_sync(booking_id):
            # Phase 1: validate
            with self.transaction():
                booking = self.get_booking(booking_id, user_id)
                if booking.cancelled_at is not None:
                    raise BusinessRuleException(
                        "This booking has already been cancelled", code="BOOKING_ALREADY_CANCELLED"
                    )
                start_at, end_at = resolve_booking_window(booking)
                if start_at <= current:
                    raise BusinessRuleException(
                        "Past bookings cannot be cancelled", code="BOOKING_IN_PAST"
                    )
                charge_reference = None
                if booking.payment_status in _REFUNDABLE_STATUSES:
                    charge_reference = booking.stripe_charge_id or booking.checkout_reference
                released = ReleasedSlot(
                    source_booking_id=booking.id,
                    barbershop_id=booking.barbershop_id,
                    barber_id=booking.barber_id,
                    service_id=booking.service_id,
                    released_start_at=start_at,
                    released_end_at=end_at,
                    released_duration_minutes=booking.total_duration_minutes,
                )

            # Phase 2: refund (external call, outside any transaction)
            refunded = False
            if charge_reference:
                try:
                    self.payment_gateway.refund(
                        charge_reference, REFUND_REASON_REQUESTED_BY_CUSTOMER
                    )
                except PaymentGatewayError as exc:
                    self.logger.error(
                        "Refund failed, booking left active",
                        extra={"booking_id": booking_id, "error_type": exc.error_type},
                    )
                    raise PaymentException(
                        "Could not process the refund for this booking. Please try again.",
                        details={"booking_id": booking_id},
                    ) from exc
                refunded = True

            # Phase 3: write
            with self.transaction():
                if not self.booking_repository.mark_cancelled(
                    booking_id, current, refunded_at=current if refunded else None
                ):
                    raise BusinessRuleException(
                        "This booking has already been cancelled", code="BOOKING_ALREADY_CANCELLED"
                    )
                self.notification_service.cancel_pending_jobs(booking_id)
                self.event_publisher.publish(
                    BookingCancelled(
                        booking_id=booking_id,
                        cancelled_by=user_id,
                        cancelled_at=current,
                        refunded=refunded,
                    )
                )

        waitlist = self._offer_to_waitlist(released)
        self.log_operation("cancel_booking", booking_id=booking_id, refunded=refunded)
        return CancellationResult(booking=booking, refunded=refunded, waitlist=waitlist)

    def _offer_to_waitlist(self, released: ReleasedSlot) -> Optional[WaitlistFulfillmentResult]:
        try:
            return self.fulfillment_service.fulfill(released)
        except Exception as exc:
            # The cancellation is already committed.
            self.logger.error(
                "Waitlist fulfillment failed after cancellation",
                extra={"booking_id": released.source_booking_id, "error": str(exc)},
                exc_info=True,
            )
            return None

    @BaseService.measure_operation("reconcile_payment")
    def reconcile_payment(
        self, booking_id: str, succeeded: bool, charge_id: Optional[str] = None
    ) -> Booking:
        """
        Settle a pending Stripe booking from a webhook or a poll.

        PENDING moves to PAID (storing the charge id and queueing
        notifications) or to FAILED. Bookings in any other state are
        returned untouched.

        A success that arrives after the customer cancelled is refunded
        before the booking leaves PENDING. If the refund fails the booking
        stays PENDING so a redelivered event can try again.
        """
        with booking_lock_sync(booking_id):
            with self.transaction():
                booking = self.get_booking(booking_id)
                if booking.payment_status != PaymentStatus.PENDING.value:
                    return booking
                late_success = (
                    succeeded and booking.cancelled_at is not None and booking.refunded_at is None
                )
                reference = charge_id or booking.checkout_reference

            refunded_at = None
            if late_success:
                refunded_at = self._refund_late_payment(booking_id, reference)

            with self.transaction():
                if not succeeded:
                    self.booking_repository.transition_payment_status(
                        booking_id, PaymentStatus.FAILED
                    )
                elif self.booking_repository.transition_payment_status(
                    booking_id,
                    PaymentStatus.PAID,
                    stripe_charge_id=charge_id,
                    refunded_at=refunded_at,
                ):
                    if booking.cancelled_at is None:
                        self._announce_confirmed(booking)

        self.log_operation(
            "reconcile_payment",
            booking_id=booking_id,
            succeeded=succeeded,
            refunded=refunded_at is not None,
        )
        return booking

    def _refund_late_payment(self, booking_id: str, reference: Optional[str]) -> Optional[datetime]:
        if not reference:
            self.logger.error(
                "Payment succeeded for a cancelled booking with no charge reference",
                extra={"booking_id": booking_id},
            )
            return None
        try:
            self.payment_gateway.refund(reference, REFUND_REASON_REQUESTED_BY_CUSTOMER)
        except PaymentGatewayError as exc:
            self.logger.error(
                "Refund of a cancelled booking's payment failed",
                extra={"booking_id": booking_id, "error_type": exc.error_type},
            )
            raise PaymentException(
                "Could not refund the payment of a cancelled booking",
                details={"booking_id": booking_id},
            ) from exc
        self.logger.info(
            "Refunded payment that settled after cancellation",
            extra={"booking_id": booking_id, "reference": reference},
        )
        return utc_now()
