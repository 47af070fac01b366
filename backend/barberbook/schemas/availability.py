"""Availability response schemas."""

import datetime as dt
from typing import List, Optional

from pydantic import Field

from ._strict_base import StrictModel


class AvailableSlotsResponse(StrictModel):
    date: dt.date
    barber_id: Optional[str] = None
    slots: List[str] = Field(default_factory=list, description="Free start times as HH:MM")
