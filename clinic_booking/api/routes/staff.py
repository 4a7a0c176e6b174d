"""Staff endpoints: doctors bookable on a date and per-date availability."""

import logging
import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.api.dependencies import Actor, raise_booking_error, require_staff
from clinic_booking.booking.errors import forbidden
from clinic_booking.booking.models import StaffRole
from clinic_booking.booking.staff import (
    eligible_staff,
    eligible_staff_for_display,
    reconcile_selection,
)
from clinic_booking.core.database import get_db
from clinic_booking.core.repository import (
    AuditRepository,
    StaffAvailabilityRepository,
    StaffRepository,
    availability_to_domain,
    staff_to_domain,
)
from clinic_booking.core.schemas import (
    AvailableStaffResponse,
    StaffAvailabilityRead,
    StaffAvailabilityUpdate,
    StaffRead,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/staff")


@router.get("/available", response_model=AvailableStaffResponse)
async def get_available_staff(
    target_date: date = Query(..., alias="date"),
    selected_staff_id: Optional[uuid.UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> AvailableStaffResponse:
    """Doctors bookable on a date, by name.

    When the caller passes its current selection, a doctor who is not
    available on the new date is dropped with a notice.
    """
    staff = [staff_to_domain(s) for s in await StaffRepository(db).list_active()]
    records = [
        availability_to_domain(r)
        for r in await StaffAvailabilityRepository(db).list_for_date(target_date)
    ]
    outcome = reconcile_selection(selected_staff_id, eligible_staff(target_date, staff, records))

    return AvailableStaffResponse(
        date=target_date,
        staff=[
            StaffRead.model_validate(m, from_attributes=True)
            for m in eligible_staff_for_display(target_date, staff, records)
        ],
        selected_staff_id=outcome.selected_staff_id,
        selection_cleared=outcome.cleared,
        notice=outcome.notice,
    )


async def _managed_staff(db: AsyncSession, staff_id: uuid.UUID, actor: Actor):
    """Doctors manage their own availability, admins anyone's."""
    if actor.role != StaffRole.ADMIN and actor.staff.id != staff_id:
        raise_booking_error(forbidden("You can only manage your own availability"))
    member = await StaffRepository(db).get_by_id(staff_id)
    if not member:
        raise HTTPException(status_code=404, detail="Staff member not found")
    return member


@router.get("/{staff_id}/availability", response_model=list[StaffAvailabilityRead])
async def get_staff_availability(
    staff_id: uuid.UUID,
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    actor: Actor = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
) -> list[StaffAvailabilityRead]:
    await _managed_staff(db, staff_id, actor)
    records = await StaffAvailabilityRepository(db).list_by_staff(staff_id, date_from, date_to)
    return [StaffAvailabilityRead.model_validate(r) for r in records]


@router.put("/{staff_id}/availability", response_model=list[StaffAvailabilityRead])
async def set_staff_availability(
    staff_id: uuid.UUID,
    body: StaffAvailabilityUpdate,
    actor: Actor = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
) -> list[StaffAvailabilityRead]:
    """Mark a staff member available or unavailable for every date in a range."""
    await _managed_staff(db, staff_id, actor)
    records = await StaffAvailabilityRepository(db).set_range(
        staff_id, body.start_date, body.end_date, body.is_available
    )
    await AuditRepository(db).log_action(
        "set_availability", "staff", str(staff_id), user_id=actor.user_id,
        details={
            "start_date": body.start_date.isoformat(),
            "end_date": body.end_date.isoformat(),
            "is_available": body.is_available,
        },
    )
    logger.info(
        f"Staff {staff_id} availability set to {body.is_available} "
        f"for {body.start_date}..{body.end_date}"
    )
    return [StaffAvailabilityRead.model_validate(r) for r in records]
