"""
Booking routes - API v1

Endpoints:
    POST /bookings                        → Create a booking
    GET  /bookings/{booking_id}           → Read one of the caller's bookings
    POST /bookings/{booking_id}/cancel    → Cancel and offer the slot to the waitlist
"""

import asyncio
from dataclasses import asdict
import logging

from fastapi import APIRouter, Body, Depends, status

from ...api.dependencies.auth import get_current_user_id
from ...api.dependencies.services import get_booking_service
from ...core.exceptions import DomainException
from ...schemas.booking import BookingCancelResponse, BookingCreate, BookingResponse
from ...schemas.waitlist import WaitlistFulfillmentResponse
from ...services.booking_service import BookingService
from .errors import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookings-v1"])


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate = Body(...),
    user_id: str = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            service.create_booking,
            user_id,
            payload.service_ids,
            payload.start_at,
            barber_id=payload.barber_id,
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(service.get_booking, booking_id, user_id)
    except DomainException as exc:
        handle_domain_exception(exc)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=BookingCancelResponse)
async def cancel_booking(
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
) -> BookingCancelResponse:
    try:
        result = await asyncio.to_thread(service.cancel_booking, booking_id, user_id)
    except DomainException as exc:
        handle_domain_exception(exc)
    return BookingCancelResponse(
        booking_id=result.booking.id,
        cancelled_at=result.booking.cancelled_at,
        refunded=result.refunded,
        waitlist=(
            WaitlistFulfillmentResponse(**asdict(result.waitlist)) if result.waitlist else None
        ),
    )
