"""Structured booking events."""

from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Types of booking events."""

    BOOKING_STARTED = "booking_started"
    BOOKING_COMMITTED = "booking_committed"
    BOOKING_REJECTED = "booking_rejected"
    BOOKING_FAILED = "booking_failed"
    STATUS_CHANGED = "status_changed"


class ObservabilityEvent(BaseModel):
    """Base class for all events."""

    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    request_id: Optional[str] = None
    duration_ms: Optional[float] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class BookingEvent(ObservabilityEvent):
    """One booking attempt through the booking transaction."""

    operation: str = "submit"  # submit, reschedule, reinstate
    booking_type: Optional[str] = None
    resource_key: Optional[str] = None
    service_id: Optional[str] = None
    staff_id: Optional[str] = None
    appointment_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None

    # Outcome
    appointment_id: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    error_type: Optional[str] = None


class StatusChangeEvent(ObservabilityEvent):
    """Staff action flipping an appointment's status."""

    event_type: EventType = EventType.STATUS_CHANGED
    appointment_id: str
    old_status: str
    new_status: str
    changed_by: Optional[str] = None
