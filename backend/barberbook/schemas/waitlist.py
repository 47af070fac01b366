"""Waitlist request and response schemas."""

from datetime import date
from typing import Optional

from pydantic import Field

from ._strict_base import StrictModel, StrictRequestModel


class WaitlistJoinRequest(StrictRequestModel):
    barbershop_id: str
    barber_id: str
    service_id: str
    date_day: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$", examples=["2026-03-14"])


class WaitlistJoinResponse(StrictModel):
    entry_id: str
    position: int
    date_day: str


class WaitlistStatusResponse(StrictModel):
    in_queue: bool
    entry_id: Optional[str] = None
    position: Optional[int] = None
    queue_length: int


class WaitlistEntryResponse(StrictModel):
    entry_id: str
    status: str
    date_day: date
    fulfilled_booking_id: Optional[str] = None


class WaitlistFulfillmentResponse(StrictModel):
    fulfilled: bool
    fulfilled_entry_id: Optional[str] = None
    fulfilled_booking_id: Optional[str] = None
    expired_entries_count: int = 0
    skipped_reason: Optional[str] = None
