"""FastAPI dependencies: caller identity, role checks and the booking service."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.booking.errors import BookingError, forbidden
from clinic_booking.booking.models import StaffRole
from clinic_booking.booking.transaction import BookingService
from clinic_booking.core.database import get_db
from clinic_booking.core.models import Patient, Staff
from clinic_booking.core.repository import PatientRepository, StaffRepository

STAFF_HEADER = "X-Staff-Id"
PATIENT_HEADER = "X-Patient-Id"


@dataclass
class Actor:
    """The caller of a request: a staff member or a patient."""

    staff: Optional[Staff] = None
    patient: Optional[Patient] = None

    @property
    def is_staff(self) -> bool:
        return self.staff is not None

    @property
    def is_patient(self) -> bool:
        return self.patient is not None

    @property
    def role(self) -> Optional[StaffRole]:
        return StaffRole(self.staff.role) if self.staff else None

    @property
    def user_id(self) -> str:
        if self.staff:
            return f"staff:{self.staff.id}"
        return f"patient:{self.patient.id}"


def raise_booking_error(error: BookingError) -> None:
    """Turn a booking error value into an HTTP response."""
    raise HTTPException(status_code=error.http_status, detail=error.to_detail())


def _parse_header_uuid(request: Request, header: str) -> Optional[uuid.UUID]:
    value = request.headers.get(header)
    if not value:
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {header}") from None


async def get_current_actor(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Actor:
    """Resolve the caller.

    The API key (if configured) is enforced by ``APIKeyMiddleware``; the
    caller then names itself with ``X-Staff-Id`` or ``X-Patient-Id``.
    """
    staff_id = _parse_header_uuid(request, STAFF_HEADER)
    if staff_id:
        staff = await StaffRepository(db).get_by_id(staff_id)
        if staff and staff.is_active:
            return Actor(staff=staff)
        raise HTTPException(status_code=401, detail="Unknown or inactive staff member")

    patient_id = _parse_header_uuid(request, PATIENT_HEADER)
    if patient_id:
        patient = await PatientRepository(db).get_by_id(patient_id)
        if patient:
            return Actor(patient=patient)
        raise HTTPException(status_code=401, detail="Unknown patient")

    raise HTTPException(status_code=401, detail="Not authenticated")


async def require_patient(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_patient:
        raise_booking_error(forbidden("Only patients can book appointments online"))
    return actor


async def require_staff(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_staff:
        raise_booking_error(forbidden("Staff access required"))
    return actor


async def require_admin(actor: Actor = Depends(require_staff)) -> Actor:
    """Require the current user to be an admin."""
    if actor.role != StaffRole.ADMIN:
        raise_booking_error(forbidden("Admin access required"))
    return actor


@lru_cache
def get_booking_service() -> BookingService:
    """Process-wide booking service; its calendar locks must be shared."""
    return BookingService()
