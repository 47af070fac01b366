"""Notification job records consumed by the external dispatcher."""

from __future__ import annotations

from datetime import datetime
import json
from typing import Any, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..core.booking_time import utc_now
from ..models.notification_job import NotificationJob, NotificationJobStatus
from .base_repository import BaseRepository


class NotificationJobRepository(BaseRepository[NotificationJob]):
    def __init__(self, db: Session):
        super().__init__(db, NotificationJob)

    def enqueue(
        self,
        *,
        type: str,
        payload: dict[str, Any] | str | None = None,
        booking_id: Optional[str] = None,
        available_at: datetime | None = None,
    ) -> str:
        """Persist a PENDING job and return its id."""
        if isinstance(payload, str):
            payload = json.loads(payload)
        job = self.create(
            job_type=type,
            booking_id=booking_id,
            payload=payload,
            scheduled_for=available_at or utc_now(),
            status=NotificationJobStatus.PENDING.value,
        )
        return str(job.id)

    def cancel_pending_for_booking(self, booking_id: str, reason: str) -> int:
        result = self.db.execute(
            update(NotificationJob)
            .where(
                NotificationJob.booking_id == booking_id,
                NotificationJob.status == NotificationJobStatus.PENDING.value,
            )
            .values(status=NotificationJobStatus.CANCELED.value, cancel_reason=reason)
            .execution_options(synchronize_session="fetch")
        )
        return int(result.rowcount or 0)

    def list_for_booking(self, booking_id: str) -> List[NotificationJob]:
        return (
            self.db.query(NotificationJob)
            .filter(NotificationJob.booking_id == booking_id)
            .order_by(NotificationJob.scheduled_for, NotificationJob.job_type)
            .all()
        )
