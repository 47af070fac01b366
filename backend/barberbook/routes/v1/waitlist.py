"""
Waitlist routes - API v1

Endpoints:
    POST /waitlist                     → Join the queue for a full day
    GET  /waitlist/status              → Caller's position in a queue
    POST /waitlist/{entry_id}/leave    → Leave the queue
    POST /waitlist/{entry_id}/seen     → Acknowledge a fulfilled entry
"""

import asyncio
import logging

from fastapi import APIRouter, Body, Depends, Query, status

from ...api.dependencies.auth import get_current_user_id
from ...api.dependencies.services import get_waitlist_service
from ...core.exceptions import DomainException
from ...models.waitlist import WaitlistEntry
from ...schemas.waitlist import (
    WaitlistEntryResponse,
    WaitlistJoinRequest,
    WaitlistJoinResponse,
    WaitlistStatusResponse,
)
from ...services.waitlist_service import WaitlistService
from .errors import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["waitlist-v1"])


def _entry_response(entry: WaitlistEntry) -> WaitlistEntryResponse:
    return WaitlistEntryResponse(
        entry_id=entry.id,
        status=entry.status,
        date_day=entry.date_day,
        fulfilled_booking_id=entry.fulfilled_booking_id,
    )


@router.post("", response_model=WaitlistJoinResponse, status_code=status.HTTP_201_CREATED)
async def join_waitlist(
    payload: WaitlistJoinRequest = Body(...),
    user_id: str = Depends(get_current_user_id),
    service: WaitlistService = Depends(get_waitlist_service),
) -> WaitlistJoinResponse:
    try:
        result = await asyncio.to_thread(
            service.join_waitlist,
            user_id,
            payload.barbershop_id,
            payload.barber_id,
            payload.service_id,
            payload.date_day,
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return WaitlistJoinResponse(
        entry_id=result.entry_id, position=result.position, date_day=result.date_day
    )


@router.get("/status", response_model=WaitlistStatusResponse)
async def get_waitlist_status(
    barbershop_id: str = Query(...),
    barber_id: str = Query(...),
    service_id: str = Query(...),
    date_day: str = Query(..., description="Day in YYYY-MM-DD"),
    user_id: str = Depends(get_current_user_id),
    service: WaitlistService = Depends(get_waitlist_service),
) -> WaitlistStatusResponse:
    try:
        result = await asyncio.to_thread(
            service.get_waitlist_status, user_id, barbershop_id, barber_id, service_id, date_day
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return WaitlistStatusResponse(
        in_queue=result.in_queue,
        entry_id=result.entry_id,
        position=result.position,
        queue_length=result.queue_length,
    )


@router.post("/{entry_id}/leave", response_model=WaitlistEntryResponse)
async def leave_waitlist(
    entry_id: str,
    user_id: str = Depends(get_current_user_id),
    service: WaitlistService = Depends(get_waitlist_service),
) -> WaitlistEntryResponse:
    try:
        entry = await asyncio.to_thread(service.leave_waitlist, entry_id, user_id)
    except DomainException as exc:
        handle_domain_exception(exc)
    return _entry_response(entry)


@router.post("/{entry_id}/seen", response_model=WaitlistEntryResponse)
async def mark_fulfillment_seen(
    entry_id: str,
    user_id: str = Depends(get_current_user_id),
    service: WaitlistService = Depends(get_waitlist_service),
) -> WaitlistEntryResponse:
    try:
        entry = await asyncio.to_thread(service.mark_fulfillment_seen, entry_id, user_id)
    except DomainException as exc:
        handle_domain_exception(exc)
    return _entry_response(entry)
