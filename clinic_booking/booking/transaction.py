"""Booking transaction: re-validate against fresh bookings and commit atomically.

``validate_booking`` is the pure decision used for every write. The
``BookingService`` wraps it in a per-(resource, date) critical section:
the latest appointments are re-read inside the lock, the row is written and
committed before the lock is released, so two overlapping submissions are
totally ordered and the loser sees ``SlotNoLongerAvailable``. A partial
unique index on (resource, date, start) and, on PostgreSQL, an advisory
transaction lock cover writers in other processes.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Iterable, Optional, Union
from zoneinfo import ZoneInfo

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.booking.availability import (
    MINUTES_PER_DAY,
    available_dates,
    available_slots,
    compute_business_span,
    compute_end_minutes,
    conflicting_appointments,
    day_of_week,
    merge_window_runs,
    minutes_to_time,
    to_minutes,
    windows_for_day,
)
from clinic_booking.booking.errors import (
    BookingError,
    not_within_business_hours,
    persistence_failure,
    slot_no_longer_available,
    staff_ineligible,
    validation_error,
)
from clinic_booking.booking.models import (
    Appointment,
    AppointmentStatus,
    BookingRequest,
    BookingType,
    BusinessHourWindow,
    Service,
    Slot,
)
from clinic_booking.booking.staff import eligible_staff
from clinic_booking.config import Settings, get_settings
from clinic_booking.core.models import CLINIC_RESOURCE, AppointmentDB
from clinic_booking.core.repository import (
    AppointmentRepository,
    AuditRepository,
    ServiceRepository,
    StaffAvailabilityRepository,
    StaffRepository,
    TimeSlotRepository,
    appointment_to_domain,
    availability_to_domain,
    service_to_domain,
    staff_to_domain,
    window_to_domain,
)
from clinic_booking.observability import BookingEventLogger, get_booking_event_logger

logger = logging.getLogger(__name__)

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

# Statuses from which an appointment may still be moved to another slot.
RESCHEDULABLE_STATUSES = {AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED}


def clinic_today(timezone_name: str) -> date:
    """Current calendar date in the clinic's timezone."""
    return datetime.now(ZoneInfo(timezone_name)).date()


def resource_key_for(staff_id: Optional[uuid.UUID], scope: str = "staff") -> str:
    """Calendar an appointment occupies: its staff member, or the clinic."""
    if scope == "staff" and staff_id is not None:
        return str(staff_id)
    return CLINIC_RESOURCE


def validate_booking(
    request: BookingRequest,
    service: Optional[Service],
    windows: Iterable[BusinessHourWindow],
    existing: Iterable[Appointment],
    today: date,
    eligible_staff_ids: Optional[set[uuid.UUID]] = None,
    exclude_id: Optional[uuid.UUID] = None,
    split_disjoint_windows: bool = False,
) -> Union[Slot, BookingError]:
    """Decide whether *request* may be booked against *existing*.

    Returns the computed slot, or the first rule it breaks: structure and
    date, business hours, staff eligibility, then overlap.
    """
    if request.service_id is None:
        return validation_error("Please select a service before booking", "service_id")
    if request.appointment_date is None:
        return validation_error("Please select an appointment date", "appointment_date")
    if request.start_time is None:
        return validation_error("Please select an available time slot", "start_time")
    if request.appointment_date < today:
        return validation_error("Cannot book appointments for past dates", "appointment_date")
    if service is None or service.id != request.service_id:
        return validation_error("Unknown service", "service_id")
    if not service.is_active:
        return validation_error("Service is not available for booking", "service_id")

    start = to_minutes(request.start_time)
    end = compute_end_minutes(start, service.duration_minutes)
    if end >= MINUTES_PER_DAY:
        return validation_error("Appointment would run past midnight", "start_time")

    windows = list(windows)
    weekday = day_of_week(request.appointment_date)
    span = compute_business_span(windows, weekday)
    if span is None:
        return not_within_business_hours(
            f"The clinic is closed on {DAY_NAMES[weekday]}", day_of_week=weekday
        )
    if split_disjoint_windows:
        runs = merge_window_runs(windows_for_day(windows, weekday))
        inside = any(run_start <= start and end <= run_end for run_start, run_end in runs)
    else:
        inside = span.earliest_start <= start and end <= span.latest_end
    if not inside:
        return not_within_business_hours(
            "Appointment must start and end within business hours",
            earliest_start=minutes_to_time(span.earliest_start).isoformat(),
            latest_end=minutes_to_time(span.latest_end).isoformat(),
        )

    if (
        request.staff_id is not None
        and eligible_staff_ids is not None
        and request.staff_id not in eligible_staff_ids
    ):
        return staff_ineligible(
            "Selected doctor is not available on this date", staff_id=str(request.staff_id)
        )

    conflicts = conflicting_appointments(
        request.appointment_date, start, end, existing, exclude_id=exclude_id
    )
    if conflicts:
        return slot_no_longer_available(
            conflicting_ids=[str(a.id) for a in conflicts if a.id is not None]
        )

    return Slot(
        appointment_date=request.appointment_date,
        start_time=minutes_to_time(start),
        end_time=minutes_to_time(end),
    )


class BookingService:
    """Write path for appointments."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        events: Optional[BookingEventLogger] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.events = events or get_booking_event_logger()
        # (resource, date) -> [lock, holders and waiters]; dropped when unused.
        self._locks: dict[tuple[str, date], list] = {}

    @asynccontextmanager
    async def _calendar_lock(self, resource_key: str, day: date):
        """Hold the in-process lock for one calendar day."""
        key = (resource_key, day)
        entry = self._locks.setdefault(key, [asyncio.Lock(), 0])
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    def today(self) -> date:
        return clinic_today(self.settings.clinic_timezone)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def open_slots(
        self,
        session: AsyncSession,
        service_id: uuid.UUID,
        target_date: date,
        staff_id: Optional[uuid.UUID] = None,
        today: Optional[date] = None,
    ) -> Optional[list[Slot]]:
        """Bookable slots for a service, or ``None`` if the service is unknown.

        Past dates and doctors unavailable on *target_date* give no slots.
        """
        service = await self._load_service(session, service_id)
        if service is None or not service.is_active:
            return None
        if target_date < (today or self.today()):
            return []

        lookup = BookingRequest(staff_id=staff_id, appointment_date=target_date)
        eligible = await self._load_eligible(session, lookup)
        if eligible is not None and staff_id not in eligible:
            return []

        resource_key = resource_key_for(staff_id, self.settings.booking_scope)
        existing = [
            appointment_to_domain(a)
            for a in await AppointmentRepository(session).list_for_resource_day(resource_key, target_date)
        ]
        return available_slots(
            service,
            target_date,
            await self._load_windows(session),
            existing,
            step_minutes=self.settings.slot_step_minutes,
            split_disjoint_windows=self.settings.split_disjoint_windows,
        )

    async def open_dates(
        self, session: AsyncSession, days: Optional[int] = None, today: Optional[date] = None
    ) -> list[date]:
        """Dates from tomorrow on whose weekday has business hours."""
        return available_dates(
            await self._load_windows(session),
            today or self.today(),
            days or self.settings.booking_window_days,
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def _load_service(self, session: AsyncSession, service_id: Optional[uuid.UUID]) -> Optional[Service]:
        if service_id is None:
            return None
        row = await ServiceRepository(session).get_by_id(service_id)
        return service_to_domain(row) if row else None

    async def _load_windows(self, session: AsyncSession) -> list[BusinessHourWindow]:
        return [window_to_domain(w) for w in await TimeSlotRepository(session).list_active()]

    async def _load_eligible(self, session: AsyncSession, request: BookingRequest) -> Optional[set[uuid.UUID]]:
        if request.staff_id is None or request.appointment_date is None:
            return None
        staff = [staff_to_domain(s) for s in await StaffRepository(session).list_active()]
        records = [
            availability_to_domain(r)
            for r in await StaffAvailabilityRepository(session).list_for_date(request.appointment_date)
        ]
        return eligible_staff(request.appointment_date, staff, records)

    async def _fresh_snapshot(self, session: AsyncSession, resource_key: str, day: date) -> list[Appointment]:
        repo = AppointmentRepository(session)
        await repo.lock_resource_day(resource_key, day)
        return [appointment_to_domain(a) for a in await repo.list_for_resource_day(resource_key, day)]

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    async def _commit_under_lock(self, session: AsyncSession, resource_key: str, day: date, write):
        """Run *write* inside the calendar-day lock and map storage faults.

        The timeout covers waiting for the lock as well as the write.
        """

        async def locked_write():
            async with self._calendar_lock(resource_key, day):
                try:
                    result = await write()
                except (SQLAlchemyError, OSError, asyncio.CancelledError):
                    await session.rollback()
                    raise
                if isinstance(result, BookingError):
                    await session.rollback()
                return result

        try:
            return await asyncio.wait_for(
                locked_write(), timeout=self.settings.persistence_timeout_seconds
            )
        except IntegrityError:
            logger.info(f"Slot taken by a concurrent booking: {resource_key} {day}")
            return slot_no_longer_available()
        except (SQLAlchemyError, asyncio.TimeoutError, OSError) as e:
            await session.rollback()
            logger.error(f"Booking commit failed: {type(e).__name__}: {e}")
            return persistence_failure()

    async def submit_booking(
        self,
        session: AsyncSession,
        request: BookingRequest,
        patient_id: uuid.UUID,
        booking_type: BookingType = BookingType.ONLINE,
        today: Optional[date] = None,
        user_id: Optional[str] = None,
    ) -> Union[Appointment, BookingError]:
        """Validate and persist a new appointment in ``pending`` status."""
        today = today or self.today()

        with self.events.booking_attempt(
            operation="submit",
            booking_type=booking_type.value,
            service_id=str(request.service_id) if request.service_id else None,
            staff_id=str(request.staff_id) if request.staff_id else None,
            appointment_date=request.appointment_date,
            start_time=request.start_time,
        ) as event:
            service = await self._load_service(session, request.service_id)
            windows = await self._load_windows(session)
            eligible = await self._load_eligible(session, request)
            split = self.settings.split_disjoint_windows

            # Reject malformed requests before taking the lock.
            precheck = validate_booking(
                request, service, windows, [], today, eligible, split_disjoint_windows=split
            )
            if isinstance(precheck, BookingError):
                event.error_code = precheck.code.value
                event.error_message = precheck.message
                return precheck

            resource_key = resource_key_for(request.staff_id, self.settings.booking_scope)
            event.resource_key = resource_key

            async def write() -> Union[Appointment, BookingError]:
                existing = await self._fresh_snapshot(session, resource_key, request.appointment_date)
                decision = validate_booking(
                    request, service, windows, existing, today, eligible, split_disjoint_windows=split
                )
                if isinstance(decision, BookingError):
                    return decision

                row = await AppointmentRepository(session).create(
                    patient_id=patient_id,
                    service_id=request.service_id,
                    staff_id=request.staff_id,
                    resource_key=resource_key,
                    appointment_date=decision.appointment_date,
                    start_time=decision.start_time,
                    end_time=decision.end_time,
                    status=AppointmentStatus.PENDING.value,
                    booking_type=booking_type.value,
                    notes=request.notes,
                )
                await AuditRepository(session).log_action(
                    "create", "appointment", str(row.id), user_id=user_id,
                    details={"booking_type": booking_type.value, "resource": resource_key},
                )
                await session.commit()
                return appointment_to_domain(row)

            result = await self._commit_under_lock(session, resource_key, request.appointment_date, write)
            if isinstance(result, BookingError):
                event.error_code = result.code.value
                event.error_message = result.message
            else:
                event.appointment_id = str(result.id)
                event.end_time = result.end_time
                logger.info(
                    f"Booked appointment {result.id} on {result.appointment_date} "
                    f"{result.start_time}-{result.end_time} ({resource_key})"
                )
            return result

    async def reschedule(
        self,
        session: AsyncSession,
        appointment: AppointmentDB,
        request: BookingRequest,
        today: Optional[date] = None,
        user_id: Optional[str] = None,
    ) -> Union[Appointment, BookingError]:
        """Move an existing appointment to a new date/start (and staff)."""
        today = today or self.today()
        status = AppointmentStatus(appointment.status)
        if status not in RESCHEDULABLE_STATUSES:
            return validation_error(f"Cannot reschedule a {status.value} appointment", "status")

        appointment_id = appointment.id
        request = request.model_copy(
            update={
                "service_id": request.service_id or appointment.service_id,
                "staff_id": request.staff_id if "staff_id" in request.model_fields_set else appointment.staff_id,
            }
        )

        with self.events.booking_attempt(
            operation="reschedule",
            booking_type=appointment.booking_type,
            service_id=str(request.service_id),
            staff_id=str(request.staff_id) if request.staff_id else None,
            appointment_date=request.appointment_date,
            start_time=request.start_time,
        ) as event:
            service = await self._load_service(session, request.service_id)
            windows = await self._load_windows(session)
            eligible = await self._load_eligible(session, request)
            split = self.settings.split_disjoint_windows

            precheck = validate_booking(
                request, service, windows, [], today, eligible,
                exclude_id=appointment_id, split_disjoint_windows=split,
            )
            if isinstance(precheck, BookingError):
                event.error_code = precheck.code.value
                event.error_message = precheck.message
                return precheck

            resource_key = resource_key_for(request.staff_id, self.settings.booking_scope)
            event.resource_key = resource_key

            async def write() -> Union[Appointment, BookingError]:
                existing = await self._fresh_snapshot(session, resource_key, request.appointment_date)
                decision = validate_booking(
                    request, service, windows, existing, today, eligible,
                    exclude_id=appointment_id, split_disjoint_windows=split,
                )
                if isinstance(decision, BookingError):
                    return decision

                appointment.service_id = request.service_id
                appointment.staff_id = request.staff_id
                appointment.resource_key = resource_key
                appointment.appointment_date = decision.appointment_date
                appointment.start_time = decision.start_time
                appointment.end_time = decision.end_time
                if request.notes is not None:
                    appointment.notes = request.notes
                await session.flush()
                await AuditRepository(session).log_action(
                    "reschedule", "appointment", str(appointment_id), user_id=user_id,
                    details={
                        "appointment_date": decision.appointment_date.isoformat(),
                        "start_time": decision.start_time.isoformat(),
                    },
                )
                await session.commit()
                return appointment_to_domain(appointment)

            result = await self._commit_under_lock(session, resource_key, request.appointment_date, write)
            if isinstance(result, BookingError):
                event.error_code = result.code.value
                event.error_message = result.message
            else:
                event.appointment_id = str(appointment_id)
                event.end_time = result.end_time
            return result

    async def change_status(
        self,
        session: AsyncSession,
        appointment: AppointmentDB,
        new_status: AppointmentStatus,
        user_id: Optional[str] = None,
    ) -> Union[Appointment, BookingError]:
        """Flip an appointment's status.

        Bringing a cancelled appointment back makes it occupy its slot again,
        so that transition goes through the overlap check.
        """
        old_status = AppointmentStatus(appointment.status)
        appointment_id = appointment.id
        reinstating = old_status == AppointmentStatus.CANCELLED and new_status != AppointmentStatus.CANCELLED

        async def write() -> Union[Appointment, BookingError]:
            if reinstating:
                existing = await self._fresh_snapshot(
                    session, appointment.resource_key, appointment.appointment_date
                )
                conflicts = conflicting_appointments(
                    appointment.appointment_date,
                    appointment.start_time,
                    appointment.end_time,
                    existing,
                    exclude_id=appointment_id,
                )
                if conflicts:
                    return slot_no_longer_available(
                        "The original time slot has been booked by someone else",
                        conflicting_ids=[str(a.id) for a in conflicts],
                    )
            await AppointmentRepository(session).update_status(appointment_id, new_status.value)
            await AuditRepository(session).log_action(
                "status_change", "appointment", str(appointment_id), user_id=user_id,
                details={"from": old_status.value, "to": new_status.value},
            )
            await session.commit()
            return appointment_to_domain(appointment)

        result = await self._commit_under_lock(
            session, appointment.resource_key, appointment.appointment_date, write
        )
        if not isinstance(result, BookingError):
            self.events.log_status_change(
                str(appointment_id), old_status.value, new_status.value, changed_by=user_id
            )
        return result
