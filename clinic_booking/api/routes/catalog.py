"""Service catalogue and business-hours endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.api.dependencies import Actor, require_admin
from clinic_booking.core.database import get_db
from clinic_booking.core.repository import ServiceRepository, TimeSlotRepository
from clinic_booking.core.schemas import (
    BusinessHoursCreate,
    BusinessHoursRead,
    ServiceCreate,
    ServiceRead,
)

router = APIRouter()


@router.get("/services", response_model=list[ServiceRead])
async def list_services(db: AsyncSession = Depends(get_db)) -> list[ServiceRead]:
    """Active services, by name."""
    services = await ServiceRepository(db).list_active()
    return [ServiceRead.model_validate(s) for s in services]


@router.post("/services", response_model=ServiceRead, status_code=201)
async def create_service(
    body: ServiceCreate,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> ServiceRead:
    service = await ServiceRepository(db).create(**body.model_dump())
    return ServiceRead.model_validate(service)


@router.get("/business-hours", response_model=list[BusinessHoursRead])
async def list_business_hours(db: AsyncSession = Depends(get_db)) -> list[BusinessHoursRead]:
    """Active weekly windows ordered by weekday (0=Sunday) and start."""
    windows = await TimeSlotRepository(db).list_active()
    return [BusinessHoursRead.model_validate(w) for w in windows]


@router.post("/business-hours", response_model=BusinessHoursRead, status_code=201)
async def create_business_hours(
    body: BusinessHoursCreate,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> BusinessHoursRead:
    window = await TimeSlotRepository(db).create(**body.model_dump())
    return BusinessHoursRead.model_validate(window)
