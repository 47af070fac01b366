# backend/barberbook/services/opening_hours_service.py
"""
Opening hours resolution and weekly schedule updates.

A weekday without a configured row is treated as closed.
"""

from dataclasses import dataclass
import logging
from typing import Any, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.booking_interval import MINUTES_PER_DAY
from ..core.exceptions import ForbiddenException, NotFoundException, ValidationException
from ..models.barbershop import BarbershopOpeningHours
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpeningWindow:
    open_minute: int
    close_minute: int
    closed: bool
    configured: bool = True

    @classmethod
    def not_configured(cls) -> "OpeningWindow":
        return cls(open_minute=0, close_minute=0, closed=True, configured=False)


class OpeningHoursService(BaseService):
    def __init__(self, db: Session, barbershop_repository: Optional[Any] = None):
        super().__init__(db)
        self.barbershop_repository = (
            barbershop_repository or RepositoryFactory.create_barbershop_repository(db)
        )

    def resolve(self, barbershop_id: str, day_of_week: int) -> OpeningWindow:
        """Opening window for a weekday (0=Sunday)."""
        row = self.barbershop_repository.get_opening_hours(barbershop_id, day_of_week)
        if row is None:
            return OpeningWindow.not_configured()
        return OpeningWindow(
            open_minute=int(row.open_minute),
            close_minute=int(row.close_minute),
            closed=bool(row.closed),
        )

    @BaseService.measure_operation("update_schedule")
    def update_schedule(
        self,
        barbershop_id: str,
        owner_id: str,
        hours: Sequence[Mapping[str, Any]],
    ) -> List[BarbershopOpeningHours]:
        """
        Replace the weekly schedule of a barbershop.

        Args:
            barbershop_id: Target barbershop
            owner_id: Actor; must own the barbershop
            hours: Exactly seven entries with day_of_week, open_minute,
                close_minute and closed

        Raises:
            ValidationException: Malformed schedule
            NotFoundException: Unknown barbershop
            ForbiddenException: Actor is not the owner
        """
        entries = validate_weekly_schedule(hours)

        with self.transaction():
            barbershop = self.barbershop_repository.get_by_id(barbershop_id, load_relationships=False)
            if barbershop is None:
                raise NotFoundException("Barbershop not found", details={"barbershop_id": barbershop_id})
            if barbershop.owner_id != owner_id:
                raise ForbiddenException("Only the owner can change the schedule")
            rows = self.barbershop_repository.upsert_opening_hours(barbershop_id, entries)

        self.log_operation("update_schedule", barbershop_id=barbershop_id)
        return rows


def validate_weekly_schedule(hours: Sequence[Mapping[str, Any]]) -> List[dict]:
    """Normalize and validate a seven-day schedule."""
    if len(hours) != 7:
        raise ValidationException(
            "Opening hours must list all seven weekdays", details={"received": len(hours)}
        )

    entries: List[dict] = []
    for raw in hours:
        try:
            entry = {
                "day_of_week": int(raw["day_of_week"]),
                "open_minute": int(raw["open_minute"]),
                "close_minute": int(raw["close_minute"]),
                "closed": bool(raw["closed"]),
            }
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationException(f"Invalid opening hours entry: {exc}") from exc

        if not 0 <= entry["day_of_week"] <= 6:
            raise ValidationException("day_of_week must be between 0 and 6", details=entry)
        if not 0 <= entry["open_minute"] <= MINUTES_PER_DAY - 1:
            raise ValidationException("open_minute must be between 0 and 1439", details=entry)
        if not 1 <= entry["close_minute"] <= MINUTES_PER_DAY:
            raise ValidationException("close_minute must be between 1 and 1440", details=entry)
        if not entry["closed"] and entry["close_minute"] <= entry["open_minute"]:
            raise ValidationException(
                "Closing time must be later than opening time", details=entry
            )
        entries.append(entry)

    if len({entry["day_of_week"] for entry in entries}) != len(entries):
        raise ValidationException("Weekdays must not repeat")
    return entries
