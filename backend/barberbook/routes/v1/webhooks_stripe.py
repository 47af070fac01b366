# backend/barberbook/routes/v1/webhooks_stripe.py
"""
Stripe webhook endpoint (v1).

Settles pending Stripe bookings: PENDING → PAID or PENDING → FAILED.
Mounted under /api/v1/webhooks/stripe.
"""

import asyncio
import logging
from typing import Dict

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from ...api.dependencies.services import get_booking_service
from ...core.config import settings
from ...core.exceptions import DomainException, NotFoundException
from ...integrations.payment_gateway import (
    WebhookSignatureError,
    construct_webhook_event,
    extract_payment_outcome,
)
from ...services.booking_service import BookingService
from .errors import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(default="", alias="Stripe-Signature"),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, object]:
    if not settings.stripe_webhook_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Stripe webhook secret not configured",
        )

    payload = await request.body()
    try:
        event = construct_webhook_event(payload, stripe_signature, settings.stripe_webhook_secret)
    except WebhookSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    outcome = extract_payment_outcome(event)
    if outcome is None:
        return {"received": True, "handled": False}

    booking_id, succeeded, charge_id = outcome
    try:
        booking = await asyncio.to_thread(
            service.reconcile_payment, booking_id, succeeded, charge_id
        )
    except NotFoundException:
        logger.warning("Stripe webhook for unknown booking", extra={"booking_id": booking_id})
        return {"received": True, "handled": False}
    except DomainException as exc:
        handle_domain_exception(exc)

    return {"received": True, "handled": True, "payment_status": booking.payment_status}
