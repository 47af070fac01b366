"""
Persisted hand-off records for the external notifier.

The dispatcher that sends WhatsApp messages polls PENDING rows whose
``scheduled_for`` has passed; this service only writes and cancels them.
"""

from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, String

from ..core.booking_time import utc_now
from ..core.ulid_helper import generate_ulid
from ..database import Base


class NotificationJobStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    CANCELED = "CANCELED"


class NotificationJobType:
    BOOKING_CONFIRMATION = "booking_confirmation"
    BOOKING_REMINDER_24H = "booking_reminder_24h"
    BOOKING_REMINDER_1H = "booking_reminder_1h"
    EVENT_PREFIX = "event:"

    @staticmethod
    def reminder(offset_hours: int) -> str:
        return f"booking_reminder_{offset_hours}h"


class NotificationJob(Base):
    __tablename__ = "notification_jobs"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=True, index=True)
    job_type = Column(String(80), nullable=False)
    status = Column(String(20), nullable=False, default=NotificationJobStatus.PENDING.value)
    scheduled_for = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    payload = Column(JSON, nullable=True)
    cancel_reason = Column(String(120), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (Index("ix_notification_jobs_due", "status", "scheduled_for"),)
