"""Structured booking event logging."""

from clinic_booking.observability.events import (
    BookingEvent,
    EventType,
    ObservabilityEvent,
    StatusChangeEvent,
)
from clinic_booking.observability.logger import BookingEventLogger, get_booking_event_logger

__all__ = [
    "BookingEvent",
    "BookingEventLogger",
    "EventType",
    "ObservabilityEvent",
    "StatusChangeEvent",
    "get_booking_event_logger",
]
