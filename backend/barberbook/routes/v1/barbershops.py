"""
Barbershop routes - API v1

Endpoints:
    GET /barbershops/{barbershop_id}/availability    → Free slots for a day
    PUT /barbershops/{barbershop_id}/opening-hours   → Replace the weekly schedule (owner)
"""

import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies.auth import get_current_user_id
from ...api.dependencies.services import get_availability_service, get_opening_hours_service
from ...core.booking_time import parse_date_only
from ...core.exceptions import DomainException
from ...schemas.availability import AvailableSlotsResponse
from ...schemas.barbershop import OpeningHoursResponse, OpeningHoursUpdate
from ...services.availability_service import AvailabilityService
from ...services.opening_hours_service import OpeningHoursService
from .errors import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["barbershops-v1"])


def _split_service_ids(raw: List[str]) -> List[str]:
    ids: List[str] = []
    for value in raw:
        ids.extend(part.strip() for part in value.split(",") if part.strip())
    return ids


@router.get("/{barbershop_id}/availability", response_model=AvailableSlotsResponse)
async def get_availability(
    barbershop_id: str,
    date: str = Query(..., description="Day in YYYY-MM-DD"),
    service_ids: List[str] = Query(..., description="Repeat or comma-separate service ids"),
    barber_id: Optional[str] = Query(default=None),
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailableSlotsResponse:
    day = parse_date_only(date)
    if day is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid date", "code": "INVALID_DATE", "details": {"date": date}},
        )
    try:
        slots = await asyncio.to_thread(
            service.get_available_slots,
            barbershop_id,
            _split_service_ids(service_ids),
            day,
            barber_id=barber_id,
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return AvailableSlotsResponse(date=day, barber_id=barber_id, slots=slots.as_list())


@router.put("/{barbershop_id}/opening-hours", response_model=List[OpeningHoursResponse])
async def update_opening_hours(
    barbershop_id: str,
    payload: OpeningHoursUpdate = Body(...),
    user_id: str = Depends(get_current_user_id),
    service: OpeningHoursService = Depends(get_opening_hours_service),
) -> List[OpeningHoursResponse]:
    try:
        rows = await asyncio.to_thread(
            service.update_schedule,
            barbershop_id,
            user_id,
            [entry.model_dump() for entry in payload.opening_hours],
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return [OpeningHoursResponse.model_validate(row) for row in rows]
