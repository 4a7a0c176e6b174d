"""Pydantic models for the booking core."""

import uuid
from datetime import date, time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class AppointmentStatus(str, Enum):
    """Appointment lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class BookingType(str, Enum):
    """How the booking reached the clinic."""

    ONLINE = "online"
    WALK_IN = "walk_in"
    PHONE = "phone"


class StaffRole(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    NURSE = "nurse"
    RECEPTIONIST = "receptionist"


class Service(BaseModel):
    """A bookable clinic service. Duration drives the appointment end time."""

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    duration_minutes: int = Field(gt=0)
    is_active: bool = True


class BusinessHourWindow(BaseModel):
    """Recurring weekly open hours (0=Sunday..6=Saturday)."""

    id: Optional[uuid.UUID] = None
    day_of_week: int = Field(ge=0, le=6)
    start_time: time
    end_time: time
    is_active: bool = True

    @model_validator(mode="after")
    def _check_order(self) -> "BusinessHourWindow":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class Appointment(BaseModel):
    """A booked appointment as seen by the availability engine."""

    id: Optional[uuid.UUID] = None
    patient_id: Optional[uuid.UUID] = None
    service_id: Optional[uuid.UUID] = None
    staff_id: Optional[uuid.UUID] = None
    appointment_date: date
    start_time: time
    end_time: time
    status: AppointmentStatus = AppointmentStatus.PENDING
    booking_type: BookingType = BookingType.ONLINE
    notes: Optional[str] = None

    @property
    def occupies_slot(self) -> bool:
        return self.status != AppointmentStatus.CANCELLED


class StaffMember(BaseModel):
    id: uuid.UUID
    first_name: str
    last_name: str
    role: StaffRole
    is_active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class StaffAvailabilityRecord(BaseModel):
    """Explicit per-date override of a staff member's default availability."""

    staff_id: uuid.UUID
    date: date
    is_available: bool


class Slot(BaseModel):
    """A candidate or committed [start_time, end_time) interval on a date."""

    appointment_date: date
    start_time: time
    end_time: time


class BusinessSpan(BaseModel):
    """Earliest start and latest end (minute-of-day) of a weekday's windows."""

    earliest_start: int
    latest_end: int


class BookingRequest(BaseModel):
    """A booking attempt. Fields are optional so that missing values are
    reported as validation errors by the booking transaction, not by parsing."""

    service_id: Optional[uuid.UUID] = None
    staff_id: Optional[uuid.UUID] = None
    appointment_date: Optional[date] = None
    start_time: Optional[time] = None
    notes: Optional[str] = None
