"""Booking request and response schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from ..core.booking_time import ensure_utc
from ._strict_base import ORMResponseModel, StrictModel, StrictRequestModel
from .waitlist import WaitlistFulfillmentResponse


class BookingCreate(StrictRequestModel):
    service_ids: List[str] = Field(..., min_length=1)
    barber_id: Optional[str] = None
    start_at: datetime = Field(..., description="Start instant; naive values are read as UTC")

    @field_validator("service_ids")
    @classmethod
    def _dedupe(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(v for v in value if v))


class BookingResponse(ORMResponseModel):
    id: str
    barbershop_id: str
    barber_id: Optional[str]
    service_id: str
    user_id: str
    start_at: datetime
    end_at: Optional[datetime]
    total_duration_minutes: Optional[int]
    total_price_in_cents: int
    cancelled_at: Optional[datetime]
    payment_method: str
    payment_status: str
    checkout_reference: Optional[str] = None

    @field_validator("start_at", "end_at", "cancelled_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


class BookingCancelResponse(StrictModel):
    booking_id: str
    cancelled_at: datetime
    refunded: bool
    waitlist: Optional[WaitlistFulfillmentResponse] = None
