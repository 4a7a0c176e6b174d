"""Pydantic schemas for the booking API I/O."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from clinic_booking.booking.models import AppointmentStatus, BookingType, StaffRole


# --- Service ---

class ServiceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    duration_minutes: int = Field(gt=0, le=24 * 60)
    is_active: bool = True


class ServiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    duration_minutes: int
    is_active: bool


# --- Business hours ---

class BusinessHoursCreate(BaseModel):
    day_of_week: int = Field(ge=0, le=6, description="0=Sunday..6=Saturday")
    start_time: time
    end_time: time
    is_active: bool = True

    @model_validator(mode="after")
    def _check_order(self) -> "BusinessHoursCreate":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class BusinessHoursRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    day_of_week: int
    start_time: time
    end_time: time
    is_active: bool


# --- Booking ---

class SlotRead(BaseModel):
    appointment_date: date
    start_time: time
    end_time: time
    label: str


class AvailableSlotsResponse(BaseModel):
    service_id: uuid.UUID
    date: date
    staff_id: Optional[uuid.UUID] = None
    slots: list[SlotRead] = []


class AvailableDatesResponse(BaseModel):
    dates: list[date] = []


# --- Appointment ---

class AppointmentCreate(BaseModel):
    """Online booking body. Fields stay optional so missing ones come back
    as booking validation errors rather than 422s."""

    service_id: Optional[uuid.UUID] = None
    staff_id: Optional[uuid.UUID] = None
    appointment_date: Optional[date] = None
    start_time: Optional[time] = None
    notes: Optional[str] = None


class WalkInCreate(AppointmentCreate):
    patient_id: uuid.UUID
    booking_type: BookingType = BookingType.WALK_IN

    @model_validator(mode="after")
    def _check_type(self) -> "WalkInCreate":
        if self.booking_type == BookingType.ONLINE:
            raise ValueError("walk-in bookings must be walk_in or phone")
        return self


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus


class RescheduleRequest(BaseModel):
    appointment_date: date
    start_time: time
    staff_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None


class AppointmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    patient_id: uuid.UUID
    service_id: uuid.UUID
    staff_id: Optional[uuid.UUID] = None
    appointment_date: date
    start_time: time
    end_time: time
    status: AppointmentStatus
    booking_type: BookingType
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# --- Staff ---

class StaffRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    first_name: str
    last_name: str
    role: StaffRole
    is_active: bool


class AvailableStaffResponse(BaseModel):
    date: date
    staff: list[StaffRead] = []
    selected_staff_id: Optional[uuid.UUID] = None
    selection_cleared: bool = False
    notice: Optional[str] = None


class StaffAvailabilityUpdate(BaseModel):
    start_date: date
    end_date: date
    is_available: bool

    @model_validator(mode="after")
    def _check_range(self) -> "StaffAvailabilityUpdate":
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class StaffAvailabilityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    staff_id: uuid.UUID
    availability_date: date
    is_available: bool
