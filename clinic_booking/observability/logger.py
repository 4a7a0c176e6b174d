"""Booking event logger writing JSON Lines."""

import json
import logging
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Optional

from clinic_booking.observability.events import (
    BookingEvent,
    EventType,
    ObservabilityEvent,
    StatusChangeEvent,
)

logger = logging.getLogger(__name__)


class BookingEventLogger:
    """Central logger for booking events.

    Writes structured events to JSON Lines files for later analysis and
    forwards them to registered callbacks.
    """

    _instance: Optional["BookingEventLogger"] = None

    def __init__(
        self,
        log_dir: Optional[Path] = None,
        enabled: bool = True,
    ):
        """Initialize the event logger.

        Args:
            log_dir: Directory for log files (default: data/logs)
            enabled: Whether events are written
        """
        self.enabled = enabled

        if log_dir is None:
            log_dir = Path("data/logs")
        self.log_dir = log_dir
        if self.enabled:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        self._log_files: dict[str, Path] = {
            "bookings": self.log_dir / "bookings.jsonl",
            "status": self.log_dir / "status_changes.jsonl",
        }

        self._callbacks: list[Callable[[ObservabilityEvent], None]] = []

    @classmethod
    def get_instance(cls) -> "BookingEventLogger":
        """Get or create singleton instance from settings."""
        if cls._instance is None:
            from clinic_booking.config import get_settings

            settings = get_settings()
            cls._instance = cls(log_dir=settings.events_log_dir, enabled=settings.events_enabled)
        return cls._instance

    def generate_request_id(self) -> str:
        return str(uuid.uuid4())[:8]

    def add_callback(self, callback: Callable[[ObservabilityEvent], None]) -> None:
        """Add callback for real-time event monitoring."""
        self._callbacks.append(callback)

    def _write_event(self, event: ObservabilityEvent, log_type: str) -> None:
        if not self.enabled:
            return

        try:
            log_file = self._log_files.get(log_type)
            if log_file:
                with open(log_file, "a") as f:
                    f.write(event.model_dump_json() + "\n")

            for callback in self._callbacks:
                try:
                    callback(event)
                except Exception as e:
                    logger.warning(f"Booking event callback failed: {e}")

        except OSError as e:
            logger.warning(f"Failed to write booking event: {e}")

    @contextmanager
    def booking_attempt(
        self,
        operation: str = "submit",
        request_id: Optional[str] = None,
        **fields: Any,
    ):
        """Context manager around one booking attempt.

        The caller fills in ``appointment_id`` on success or ``error_code``
        on a rejection; an exception marks the attempt as failed.

        Usage:
            with events.booking_attempt(booking_type="online") as event:
                event.resource_key = key
                ...
                event.appointment_id = str(appt.id)
        """
        start_time = time.time()
        event = BookingEvent(
            event_type=EventType.BOOKING_STARTED,
            operation=operation,
            request_id=request_id or self.generate_request_id(),
            **fields,
        )

        try:
            yield event
            if event.error_code:
                event.event_type = EventType.BOOKING_REJECTED
            else:
                event.event_type = EventType.BOOKING_COMMITTED

        except Exception as e:
            event.event_type = EventType.BOOKING_FAILED
            event.error_type = type(e).__name__
            event.error_message = str(e)[:200]
            raise

        finally:
            event.duration_ms = (time.time() - start_time) * 1000
            self._write_event(event, "bookings")

    def log_status_change(
        self,
        appointment_id: str,
        old_status: str,
        new_status: str,
        changed_by: Optional[str] = None,
    ) -> None:
        event = StatusChangeEvent(
            appointment_id=appointment_id,
            old_status=old_status,
            new_status=new_status,
            changed_by=changed_by,
        )
        self._write_event(event, "status")

    # Utility methods

    def get_recent_events(self, log_type: str, limit: int = 100) -> list[dict[str, Any]]:
        """Read recent events from a log file."""
        log_file = self._log_files.get(log_type)
        if not log_file or not log_file.exists():
            return []

        events = []
        with open(log_file) as f:
            for line in f:
                try:
                    events.append(json.loads(line))
                except json.JSONDecodeError:
                    continue

        return events[-limit:]

    def get_stats(self) -> dict[str, Any]:
        """Outcome counts for recent booking attempts."""
        events = self.get_recent_events("bookings", limit=1000)
        if not events:
            return {"total": 0}

        total = len(events)
        committed = sum(1 for e in events if e.get("event_type") == EventType.BOOKING_COMMITTED.value)
        rejected = sum(1 for e in events if e.get("event_type") == EventType.BOOKING_REJECTED.value)
        failed = sum(1 for e in events if e.get("event_type") == EventType.BOOKING_FAILED.value)
        conflicts = sum(1 for e in events if e.get("error_code") == "slot_no_longer_available")
        avg_duration = sum(e.get("duration_ms") or 0 for e in events) / total

        return {
            "total": total,
            "committed": committed,
            "rejected": rejected,
            "failed": failed,
            "conflicts": conflicts,
            "conflict_rate": conflicts / total,
            "avg_duration_ms": avg_duration,
        }


def get_booking_event_logger() -> BookingEventLogger:
    """Get the global booking event logger instance."""
    return BookingEventLogger.get_instance()
