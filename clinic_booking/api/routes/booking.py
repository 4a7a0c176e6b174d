"""Patient-facing availability endpoints: open dates and bookable slots."""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.api.dependencies import get_booking_service
from clinic_booking.booking.availability import format_time
from clinic_booking.booking.transaction import BookingService
from clinic_booking.core.database import get_db
from clinic_booking.core.schemas import AvailableDatesResponse, AvailableSlotsResponse, SlotRead

router = APIRouter(prefix="/booking")


@router.get("/slots", response_model=AvailableSlotsResponse)
async def get_available_slots(
    service_id: uuid.UUID = Query(...),
    target_date: date = Query(..., alias="date", description="YYYY-MM-DD"),
    staff_id: Optional[uuid.UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    booking: BookingService = Depends(get_booking_service),
) -> AvailableSlotsResponse:
    """Bookable slots for a service on a date, optionally for one doctor."""
    slots = await booking.open_slots(db, service_id, target_date, staff_id)
    if slots is None:
        raise HTTPException(status_code=404, detail="Service not found")

    return AvailableSlotsResponse(
        service_id=service_id,
        date=target_date,
        staff_id=staff_id,
        slots=[
            SlotRead(
                appointment_date=s.appointment_date,
                start_time=s.start_time,
                end_time=s.end_time,
                label=f"{format_time(s.start_time)} - {format_time(s.end_time)}",
            )
            for s in slots
        ],
    )


@router.get("/dates", response_model=AvailableDatesResponse)
async def get_available_dates(
    days: Optional[int] = Query(None, ge=1, le=90),
    db: AsyncSession = Depends(get_db),
    booking: BookingService = Depends(get_booking_service),
) -> AvailableDatesResponse:
    """Dates from tomorrow on whose weekday has business hours."""
    return AvailableDatesResponse(dates=await booking.open_dates(db, days))
