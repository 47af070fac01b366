"""Barbershop schedule schemas."""

from typing import List

from pydantic import Field, model_validator

from ._strict_base import ORMResponseModel, StrictRequestModel


class OpeningHoursEntry(StrictRequestModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0=Sunday .. 6=Saturday")
    open_minute: int = Field(..., ge=0, le=1439)
    close_minute: int = Field(..., ge=1, le=1440)
    closed: bool = False

    @model_validator(mode="after")
    def _close_after_open(self) -> "OpeningHoursEntry":
        if not self.closed and self.close_minute <= self.open_minute:
            raise ValueError("close_minute must be greater than open_minute")
        return self


class OpeningHoursUpdate(StrictRequestModel):
    opening_hours: List[OpeningHoursEntry] = Field(..., min_length=7, max_length=7)

    @model_validator(mode="after")
    def _unique_weekdays(self) -> "OpeningHoursUpdate":
        weekdays = {entry.day_of_week for entry in self.opening_hours}
        if len(weekdays) != len(self.opening_hours):
            raise ValueError("Weekdays must not repeat")
        return self


class OpeningHoursResponse(ORMResponseModel):
    day_of_week: int
    open_minute: int
    close_minute: int
    closed: bool
