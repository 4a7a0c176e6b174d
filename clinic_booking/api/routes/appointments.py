"""Appointment endpoints: online and walk-in booking, listing, status and reschedule."""

import logging
import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.api.dependencies import (
    Actor,
    get_booking_service,
    get_current_actor,
    raise_booking_error,
    require_patient,
    require_staff,
)
from clinic_booking.booking.errors import BookingError
from clinic_booking.booking.models import Appointment, BookingRequest, StaffRole
from clinic_booking.booking.transaction import BookingService
from clinic_booking.core.database import get_db
from clinic_booking.core.models import AppointmentDB
from clinic_booking.core.repository import AppointmentRepository, PatientRepository
from clinic_booking.core.schemas import (
    AppointmentCreate,
    AppointmentRead,
    AppointmentStatusUpdate,
    RescheduleRequest,
    WalkInCreate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments")

# Roles that see every appointment rather than only their own.
CLINIC_WIDE_ROLES = {StaffRole.ADMIN, StaffRole.RECEPTIONIST}


def _to_response(appt: Appointment | AppointmentDB) -> AppointmentRead:
    return AppointmentRead.model_validate(appt, from_attributes=True)


def _unwrap(result: Appointment | BookingError) -> Appointment:
    if isinstance(result, BookingError):
        raise_booking_error(result)
    return result


async def _get_visible(db: AsyncSession, appointment_id: uuid.UUID, actor: Actor) -> AppointmentDB:
    appt = await AppointmentRepository(db).get_by_id(appointment_id)
    if not appt:
        raise HTTPException(status_code=404, detail="Appointment not found")
    if actor.is_patient and appt.patient_id != actor.patient.id:
        raise HTTPException(status_code=404, detail="Appointment not found")
    if actor.is_staff and actor.role not in CLINIC_WIDE_ROLES and appt.staff_id != actor.staff.id:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return appt


@router.get("", response_model=list[AppointmentRead])
async def list_appointments(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    staff_id: Optional[uuid.UUID] = Query(None),
    include_cancelled: bool = Query(False),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
) -> list[AppointmentRead]:
    """List appointments visible to the caller, ordered by date and start."""
    patient_id = None
    if actor.is_patient:
        patient_id = actor.patient.id
    elif actor.role not in CLINIC_WIDE_ROLES:
        staff_id = actor.staff.id

    appts = await AppointmentRepository(db).list(
        date_from=date_from,
        date_to=date_to,
        staff_id=staff_id,
        patient_id=patient_id,
        include_cancelled=include_cancelled,
    )
    return [_to_response(a) for a in appts]


@router.get("/{appointment_id}", response_model=AppointmentRead)
async def get_appointment(
    appointment_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
) -> AppointmentRead:
    return _to_response(await _get_visible(db, appointment_id, actor))


@router.post("", response_model=AppointmentRead, status_code=201)
async def book_appointment(
    body: AppointmentCreate,
    actor: Actor = Depends(require_patient),
    db: AsyncSession = Depends(get_db),
    booking: BookingService = Depends(get_booking_service),
) -> AppointmentRead:
    """Online booking by the calling patient."""
    result = await booking.submit_booking(
        db,
        BookingRequest(**body.model_dump()),
        patient_id=actor.patient.id,
        user_id=actor.user_id,
    )
    return _to_response(_unwrap(result))


@router.post("/walk-in", response_model=AppointmentRead, status_code=201)
async def book_walk_in(
    body: WalkInCreate,
    actor: Actor = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    booking: BookingService = Depends(get_booking_service),
) -> AppointmentRead:
    """Register a walk-in or phone booking for an existing patient.

    A doctor booking without naming a staff member takes the appointment
    themselves.
    """
    patient = await PatientRepository(db).get_by_id(body.patient_id)
    if not patient:
        raise HTTPException(status_code=404, detail="Patient not found")
    patient_id = patient.id

    request = BookingRequest(**body.model_dump(exclude={"patient_id", "booking_type"}))
    if request.staff_id is None and actor.role == StaffRole.DOCTOR:
        request.staff_id = actor.staff.id

    result = await booking.submit_booking(
        db,
        request,
        patient_id=patient_id,
        booking_type=body.booking_type,
        user_id=actor.user_id,
    )
    return _to_response(_unwrap(result))


@router.patch("/{appointment_id}/status", response_model=AppointmentRead)
async def update_status(
    appointment_id: uuid.UUID,
    body: AppointmentStatusUpdate,
    actor: Actor = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    booking: BookingService = Depends(get_booking_service),
) -> AppointmentRead:
    appt = await _get_visible(db, appointment_id, actor)
    if appt.status == body.status.value:
        return _to_response(appt)
    result = await booking.change_status(db, appt, body.status, user_id=actor.user_id)
    return _to_response(_unwrap(result))


@router.put("/{appointment_id}/reschedule", response_model=AppointmentRead)
async def reschedule_appointment(
    appointment_id: uuid.UUID,
    body: RescheduleRequest,
    actor: Actor = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    booking: BookingService = Depends(get_booking_service),
) -> AppointmentRead:
    """Move an appointment; it does not conflict with its own old slot."""
    appt = await _get_visible(db, appointment_id, actor)
    request = BookingRequest(**body.model_dump(exclude_unset=True))
    result = await booking.reschedule(db, appt, request, user_id=actor.user_id)
    return _to_response(_unwrap(result))
