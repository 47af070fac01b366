"""Event publisher - queues events as notification jobs."""
from datetime import datetime
from typing import Any, Dict, Optional, Protocol

from ..models.notification_job import NotificationJobType
from ..repositories.notification_job_repository import NotificationJobRepository


class Event(Protocol):
    """Protocol for event types."""

    def to_dict(self) -> Dict[str, Any]:
        ...


class EventPublisher:
    """Publishes domain events to the notification job queue."""

    def __init__(self, job_repository: NotificationJobRepository):
        self.job_repo = job_repository

    def publish(self, event: Event, booking_id: Optional[str] = None) -> str:
        """
        Queue an event for the external notifier.

        The job type is ``event:<EventClassName>``; datetimes in the payload
        are serialized as ISO strings.
        """
        event_type = type(event).__name__
        payload = event.to_dict()

        for key, value in payload.items():
            if isinstance(value, datetime):
                payload[key] = value.isoformat()

        return self.job_repo.enqueue(
            type=f"{NotificationJobType.EVENT_PREFIX}{event_type}",
            payload=payload,
            booking_id=booking_id or payload.get("booking_id"),
        )
