"""
Payment gateway used for Stripe-enabled barbershops.

Only two calls are needed: ``charge`` when a booking is created and
``refund`` when a charged or pending booking is cancelled.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Tuple
from uuid import uuid4

from pydantic import SecretStr
import stripe

logger = logging.getLogger(__name__)

REFUND_REASON_REQUESTED_BY_CUSTOMER = "requested_by_customer"

# PaymentIntent states in which no money has moved yet
_CANCELLABLE_INTENT_STATUSES = frozenset(
    {"requires_payment_method", "requires_confirmation", "requires_action", "requires_capture"}
)


class PaymentGatewayError(RuntimeError):
    """Raised when the gateway refuses or fails a charge or refund."""

    def __init__(self, message: str, *, error_type: str | None = None) -> None:
        super().__init__(message)
        self.error_type = error_type


class PaymentGateway(Protocol):
    def charge(self, amount: int, currency: str, metadata: Dict[str, str]) -> str:
        ...

    def refund(self, charge_reference: str, reason: str) -> None:
        ...


class StripePaymentGateway:
    """PaymentIntent/Refund calls through the official ``stripe`` library."""

    def __init__(self, *, api_key: str | SecretStr) -> None:
        secret_value = api_key.get_secret_value() if isinstance(api_key, SecretStr) else api_key
        if not secret_value:
            raise ValueError("Stripe API key must be provided")
        stripe.api_key = secret_value
        stripe.max_network_retries = 1

    def charge(self, amount: int, currency: str, metadata: Dict[str, str]) -> str:
        booking_id = metadata.get("booking_id")
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
                idempotency_key=f"booking:{booking_id}" if booking_id else None,
            )
        except stripe.StripeError as exc:
            logger.error("Stripe error creating payment intent: %s", exc)
            raise PaymentGatewayError(str(exc), error_type=type(exc).__name__) from exc
        return str(intent.id)

    def refund(self, charge_reference: str, reason: str) -> None:
        """
        Return the money for ``charge_reference``.

        A PaymentIntent that has not been paid yet is cancelled instead,
        so the customer is never charged for it.
        """
        try:
            if charge_reference.startswith("pi_"):
                intent = stripe.PaymentIntent.retrieve(charge_reference)
                if intent.status == "canceled":
                    return
                if intent.status in _CANCELLABLE_INTENT_STATUSES:
                    stripe.PaymentIntent.cancel(
                        charge_reference,
                        cancellation_reason=reason,
                        idempotency_key=f"void:{charge_reference}",
                    )
                    return
                target = {"payment_intent": charge_reference}
            else:
                target = {"charge": charge_reference}
            stripe.Refund.create(
                **target,
                reason=reason,
                idempotency_key=f"refund:{charge_reference}",
            )
        except stripe.StripeError as exc:
            logger.error("Stripe error refunding %s: %s", charge_reference, exc)
            raise PaymentGatewayError(str(exc), error_type=type(exc).__name__) from exc


class FakePaymentGateway:
    """In-memory gateway for tests and local development."""

    def __init__(self, *, fail_charge: bool = False, fail_refund: bool = False) -> None:
        self.fail_charge = fail_charge
        self.fail_refund = fail_refund
        self.charges: List[Tuple[int, str, Dict[str, str]]] = []
        self.refunds: List[Tuple[str, str]] = []
        self._logger = logging.getLogger(self.__class__.__name__)

    def charge(self, amount: int, currency: str, metadata: Dict[str, str]) -> str:
        if self.fail_charge:
            raise PaymentGatewayError("card_declined", error_type="CardError")
        reference = f"pi_fake_{uuid4().hex}"
        self.charges.append((amount, currency, dict(metadata)))
        self._logger.debug("Fake charge created", extra={"reference": reference, "amount": amount})
        return reference

    def refund(self, charge_reference: str, reason: str) -> None:
        if self.fail_refund:
            raise PaymentGatewayError("refund_failed", error_type="APIError")
        self.refunds.append((charge_reference, reason))


_gateway: Optional[Any] = None


def get_payment_gateway() -> PaymentGateway:
    """Stripe when a secret key is configured outside tests, the fake gateway otherwise."""
    global _gateway
    if _gateway is None:
        from ..core.config import settings

        key = settings.stripe_secret_key
        if key and key.get_secret_value() and not settings.is_testing:
            _gateway = StripePaymentGateway(api_key=key)
        else:
            logger.warning("Stripe secret key not configured - using fake payment gateway")
            _gateway = FakePaymentGateway()
    return _gateway


class WebhookSignatureError(ValueError):
    """Raised when a webhook payload does not carry a valid signature."""


def construct_webhook_event(payload: bytes, signature: str, secret: str | SecretStr) -> Any:
    """Verify and parse a Stripe webhook delivery."""
    secret_value = secret.get_secret_value() if isinstance(secret, SecretStr) else secret
    try:
        return stripe.Webhook.construct_event(payload, signature, secret_value)
    except stripe.SignatureVerificationError as exc:
        logger.warning("Invalid webhook signature: %s", exc)
        raise WebhookSignatureError("Invalid webhook signature") from exc
    except ValueError as exc:
        raise WebhookSignatureError(f"Invalid webhook payload: {exc}") from exc


_SUCCEEDED_EVENTS = {"payment_intent.succeeded", "checkout.session.completed"}
_FAILED_EVENTS = {
    "payment_intent.payment_failed",
    "payment_intent.canceled",
    "checkout.session.expired",
}


def extract_payment_outcome(event: Any) -> Optional[Tuple[str, bool, Optional[str]]]:
    """
    ``(booking_id, succeeded, charge_id)`` for events that settle a booking.

    Returns None for unrelated event types or objects without a booking id.
    """
    event_type = event["type"]
    if event_type not in _SUCCEEDED_EVENTS and event_type not in _FAILED_EVENTS:
        return None
    obj = event["data"]["object"]
    metadata = obj.get("metadata") or {}
    booking_id = metadata.get("booking_id")
    if not booking_id:
        return None

    if event_type == "checkout.session.completed":
        if obj.get("payment_status") != "paid":
            return None
        return booking_id, True, obj.get("payment_intent")
    if event_type == "payment_intent.succeeded":
        return booking_id, True, obj.get("latest_charge") or obj.get("id")
    return booking_id, False, None
