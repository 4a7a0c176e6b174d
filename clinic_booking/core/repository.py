"""CRUD repositories for the booking schema."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.booking.models import (
    Appointment,
    AppointmentStatus,
    BookingType,
    BusinessHourWindow,
    Service,
    StaffAvailabilityRecord,
    StaffMember,
    StaffRole,
)
from clinic_booking.core.models import (
    AppointmentDB,
    AuditLog,
    Patient,
    ServiceDB,
    Staff,
    StaffAvailability,
    TimeSlot,
)


# ---------------------------------------------------------------------------
# Row -> domain model conversion
# ---------------------------------------------------------------------------

def service_to_domain(row: ServiceDB) -> Service:
    return Service(
        id=row.id,
        name=row.name,
        description=row.description,
        duration_minutes=row.duration_minutes,
        is_active=row.is_active,
    )


def window_to_domain(row: TimeSlot) -> BusinessHourWindow:
    return BusinessHourWindow(
        id=row.id,
        day_of_week=row.day_of_week,
        start_time=row.start_time,
        end_time=row.end_time,
        is_active=row.is_active,
    )


def appointment_to_domain(row: AppointmentDB) -> Appointment:
    return Appointment(
        id=row.id,
        patient_id=row.patient_id,
        service_id=row.service_id,
        staff_id=row.staff_id,
        appointment_date=row.appointment_date,
        start_time=row.start_time,
        end_time=row.end_time,
        status=AppointmentStatus(row.status),
        booking_type=BookingType(row.booking_type),
        notes=row.notes,
    )


def staff_to_domain(row: Staff) -> StaffMember:
    return StaffMember(
        id=row.id,
        first_name=row.first_name,
        last_name=row.last_name,
        role=StaffRole(row.role),
        is_active=row.is_active,
    )


def availability_to_domain(row: StaffAvailability) -> StaffAvailabilityRecord:
    return StaffAvailabilityRecord(
        staff_id=row.staff_id,
        date=row.availability_date,
        is_available=row.is_available,
    )


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------

class ServiceRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> ServiceDB:
        service = ServiceDB(**kwargs)
        self.session.add(service)
        await self.session.flush()
        return service

    async def get_by_id(self, service_id: uuid.UUID) -> Optional[ServiceDB]:
        return await self.session.get(ServiceDB, service_id)

    async def list_active(self) -> Sequence[ServiceDB]:
        stmt = select(ServiceDB).where(ServiceDB.is_active.is_(True)).order_by(ServiceDB.name)
        result = await self.session.execute(stmt)
        return result.scalars().all()


class TimeSlotRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> TimeSlot:
        slot = TimeSlot(**kwargs)
        self.session.add(slot)
        await self.session.flush()
        return slot

    async def list_active(self) -> Sequence[TimeSlot]:
        stmt = (
            select(TimeSlot)
            .where(TimeSlot.is_active.is_(True))
            .order_by(TimeSlot.day_of_week, TimeSlot.start_time)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()


class StaffRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Staff:
        member = Staff(**kwargs)
        self.session.add(member)
        await self.session.flush()
        return member

    async def get_by_id(self, staff_id: uuid.UUID) -> Optional[Staff]:
        return await self.session.get(Staff, staff_id)

    async def list_active(self) -> Sequence[Staff]:
        stmt = (
            select(Staff)
            .where(Staff.is_active.is_(True))
            .order_by(Staff.first_name, Staff.last_name)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()


class PatientRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Patient:
        patient = Patient(**kwargs)
        self.session.add(patient)
        await self.session.flush()
        return patient

    async def get_by_id(self, patient_id: uuid.UUID) -> Optional[Patient]:
        return await self.session.get(Patient, patient_id)


class StaffAvailabilityRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_date(self, day: date) -> Sequence[StaffAvailability]:
        stmt = select(StaffAvailability).where(StaffAvailability.availability_date == day)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_by_staff(
        self,
        staff_id: uuid.UUID,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> Sequence[StaffAvailability]:
        stmt = select(StaffAvailability).where(StaffAvailability.staff_id == staff_id)
        if date_from:
            stmt = stmt.where(StaffAvailability.availability_date >= date_from)
        if date_to:
            stmt = stmt.where(StaffAvailability.availability_date <= date_to)
        stmt = stmt.order_by(StaffAvailability.availability_date)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def upsert(self, staff_id: uuid.UUID, day: date, is_available: bool) -> StaffAvailability:
        stmt = select(StaffAvailability).where(
            StaffAvailability.staff_id == staff_id,
            StaffAvailability.availability_date == day,
        )
        result = await self.session.execute(stmt)
        record = result.scalar_one_or_none()
        if record:
            record.is_available = is_available
            record.updated_at = datetime.now(timezone.utc)
        else:
            record = StaffAvailability(
                staff_id=staff_id, availability_date=day, is_available=is_available
            )
            self.session.add(record)
        await self.session.flush()
        return record

    async def set_range(
        self, staff_id: uuid.UUID, start: date, end: date, is_available: bool
    ) -> list[StaffAvailability]:
        records = []
        day = start
        while day <= end:
            records.append(await self.upsert(staff_id, day, is_available))
            day += timedelta(days=1)
        return records


class AppointmentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> AppointmentDB:
        appt = AppointmentDB(**kwargs)
        self.session.add(appt)
        await self.session.flush()
        return appt

    async def get_by_id(self, appointment_id: uuid.UUID) -> Optional[AppointmentDB]:
        return await self.session.get(AppointmentDB, appointment_id)

    async def list_for_resource_day(self, resource_key: str, day: date) -> Sequence[AppointmentDB]:
        """Slot-occupying appointments on one calendar for one day."""
        stmt = (
            select(AppointmentDB)
            .where(
                AppointmentDB.resource_key == resource_key,
                AppointmentDB.appointment_date == day,
                AppointmentDB.status != AppointmentStatus.CANCELLED.value,
            )
            .order_by(AppointmentDB.start_time)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        staff_id: Optional[uuid.UUID] = None,
        patient_id: Optional[uuid.UUID] = None,
        include_cancelled: bool = False,
        limit: int = 500,
    ) -> Sequence[AppointmentDB]:
        stmt = select(AppointmentDB)
        if date_from:
            stmt = stmt.where(AppointmentDB.appointment_date >= date_from)
        if date_to:
            stmt = stmt.where(AppointmentDB.appointment_date <= date_to)
        if staff_id:
            stmt = stmt.where(AppointmentDB.staff_id == staff_id)
        if patient_id:
            stmt = stmt.where(AppointmentDB.patient_id == patient_id)
        if not include_cancelled:
            stmt = stmt.where(AppointmentDB.status != AppointmentStatus.CANCELLED.value)
        stmt = stmt.order_by(AppointmentDB.appointment_date, AppointmentDB.start_time).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def update_status(self, appointment_id: uuid.UUID, status: str) -> Optional[AppointmentDB]:
        appt = await self.get_by_id(appointment_id)
        if appt:
            appt.status = status
            appt.updated_at = datetime.now(timezone.utc)
            await self.session.flush()
        return appt

    async def lock_resource_day(self, resource_key: str, day: date) -> None:
        """Serialize writers on one calendar day across processes.

        Takes a transaction-scoped advisory lock on PostgreSQL; other
        backends rely on the in-process lock and the unique slot index.
        """
        if self.session.get_bind().dialect.name != "postgresql":
            return
        key = f"{resource_key}:{day.isoformat()}"
        await self.session.execute(select(func.pg_advisory_xact_lock(func.hashtext(key))))


class AuditRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def log_action(
        self,
        action: str,
        resource_type: str,
        resource_id: str,
        user_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> AuditLog:
        entry = AuditLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id),
            details=details,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def get_by_resource(self, resource_type: str, resource_id: str, limit: int = 50) -> Sequence[AuditLog]:
        stmt = (
            select(AuditLog)
            .where(AuditLog.resource_type == resource_type, AuditLog.resource_id == resource_id)
            .order_by(AuditLog.timestamp.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
