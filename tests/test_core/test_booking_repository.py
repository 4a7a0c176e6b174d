"""Tests for the booking repositories using async SQLite."""

from __future__ import annotations

from datetime import datetime, time, timedelta

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.core.database import seed_demo_data
from clinic_booking.core.models import Patient, Staff
from clinic_booking.core.repository import (
    AppointmentRepository,
    AuditRepository,
    PatientRepository,
    ServiceRepository,
    StaffAvailabilityRepository,
    StaffRepository,
    TimeSlotRepository,
    appointment_to_domain,
    staff_to_domain,
    window_to_domain,
)
from tests.conftest import (
    CONSULT_ID,
    DOCTOR_A_ID,
    DOCTOR_B_ID,
    EXAM_ID,
    MONDAY,
    OTHER_PATIENT_ID,
    PATIENT_ID,
)


async def _book(session: AsyncSession, start: time, status: str = "pending", **kw):
    fields = dict(
        patient_id=PATIENT_ID,
        service_id=CONSULT_ID,
        staff_id=DOCTOR_A_ID,
        resource_key=str(DOCTOR_A_ID),
        appointment_date=MONDAY,
        start_time=start,
        end_time=(datetime.combine(MONDAY, start) + timedelta(minutes=30)).time(),
        status=status,
    )
    fields.update(kw)
    return await AppointmentRepository(session).create(**fields)


# --- Catalogue ---

async def test_services_list_active_by_name(session: AsyncSession, clinic):
    names = [s.name for s in await ServiceRepository(session).list_active()]
    assert names == ["General Consultation", "Physical Examination"]


async def test_service_create(session: AsyncSession):
    service = await ServiceRepository(session).create(name="Vaccination", duration_minutes=15)
    assert service.id is not None
    fetched = await ServiceRepository(session).get_by_id(service.id)
    assert fetched.duration_minutes == 15


async def test_windows_ordered_by_day_then_start(session: AsyncSession, clinic):
    windows = [window_to_domain(w) for w in await TimeSlotRepository(session).list_active()]
    assert [(w.day_of_week, w.start_time) for w in windows] == [
        (1, time(8, 0)),
        (1, time(13, 0)),
        (2, time(9, 0)),
    ]


async def test_all_digit_ids_round_trip(session: AsyncSession, clinic):
    types = (await session.execute(text("SELECT DISTINCT typeof(id) FROM services"))).scalars().all()
    assert types == ["text"]

    services = await ServiceRepository(session).list_active()
    assert [s.id for s in services] == [CONSULT_ID, EXAM_ID]
    assert (await ServiceRepository(session).get_by_id(CONSULT_ID)).name == "General Consultation"


async def test_staff_list_active(session: AsyncSession, clinic):
    staff = [staff_to_domain(s) for s in await StaffRepository(session).list_active()]
    assert len(staff) == 5
    assert {m.id for m in staff} >= {DOCTOR_A_ID, DOCTOR_B_ID}


# --- Staff availability ---

async def test_availability_upsert_updates_in_place(session: AsyncSession, clinic):
    repo = StaffAvailabilityRepository(session)
    await repo.upsert(DOCTOR_A_ID, MONDAY, False)
    await repo.upsert(DOCTOR_A_ID, MONDAY, True)

    records = await repo.list_for_date(MONDAY)
    assert len(records) == 1
    assert records[0].is_available is True


async def test_availability_set_range(session: AsyncSession, clinic):
    repo = StaffAvailabilityRepository(session)
    records = await repo.set_range(DOCTOR_B_ID, MONDAY, MONDAY + timedelta(days=2), False)
    assert [r.availability_date for r in records] == [MONDAY + timedelta(days=i) for i in range(3)]

    window = await repo.list_by_staff(DOCTOR_B_ID, MONDAY + timedelta(days=1), MONDAY + timedelta(days=5))
    assert len(window) == 2
    assert all(not r.is_available for r in window)


# --- Appointments ---

async def test_list_for_resource_day_skips_cancelled(session: AsyncSession, clinic):
    await _book(session, time(9, 0))
    await _book(session, time(10, 0), status="cancelled")
    await _book(session, time(8, 0), staff_id=DOCTOR_B_ID, resource_key=str(DOCTOR_B_ID))

    rows = await AppointmentRepository(session).list_for_resource_day(str(DOCTOR_A_ID), MONDAY)
    assert [r.start_time for r in rows] == [time(9, 0)]
    assert appointment_to_domain(rows[0]).occupies_slot


async def test_unique_slot_per_resource(session: AsyncSession, clinic):
    await _book(session, time(9, 0))
    with pytest.raises(IntegrityError):
        await _book(session, time(9, 0), patient_id=OTHER_PATIENT_ID)


async def test_cancelled_row_does_not_hold_the_slot(session: AsyncSession, clinic):
    await _book(session, time(9, 0), status="cancelled")
    row = await _book(session, time(9, 0), patient_id=OTHER_PATIENT_ID)
    assert row.id is not None


async def test_list_filters(session: AsyncSession, clinic):
    await _book(session, time(9, 0))
    await _book(session, time(10, 0), status="cancelled")
    await _book(session, time(9, 0), staff_id=DOCTOR_B_ID, resource_key=str(DOCTOR_B_ID), patient_id=OTHER_PATIENT_ID)
    repo = AppointmentRepository(session)

    assert len(await repo.list()) == 2
    assert len(await repo.list(include_cancelled=True)) == 3
    assert len(await repo.list(staff_id=DOCTOR_B_ID)) == 1
    assert len(await repo.list(patient_id=PATIENT_ID, include_cancelled=True)) == 2
    assert await repo.list(date_from=MONDAY + timedelta(days=1)) == []


async def test_update_status(session: AsyncSession, clinic):
    row = await _book(session, time(9, 0))
    updated = await AppointmentRepository(session).update_status(row.id, "confirmed")
    assert updated.status == "confirmed"


async def test_lock_resource_day_is_noop_on_sqlite(session: AsyncSession, clinic):
    await AppointmentRepository(session).lock_resource_day(str(DOCTOR_A_ID), MONDAY)


# --- Audit ---

async def test_audit_log(session: AsyncSession):
    repo = AuditRepository(session)
    await repo.log_action("create", "appointment", "abc", user_id="staff:1", details={"k": "v"})
    entries = await repo.get_by_resource("appointment", "abc")
    assert len(entries) == 1
    assert entries[0].details == {"k": "v"}


# --- Patients and demo data ---

async def test_patient_create(session: AsyncSession):
    patient = await PatientRepository(session).create(first_name="Ada", last_name="Quinn", phone="555-0199")
    fetched = await PatientRepository(session).get_by_id(patient.id)
    assert fetched.last_name == "Quinn"


async def test_seed_demo_data_is_idempotent(session: AsyncSession):
    await seed_demo_data(session)
    await seed_demo_data(session)

    patients = (await session.execute(select(Patient))).scalars().all()
    assert [p.patient_number for p in patients] == ["P0001"]
    staff = (await session.execute(select(Staff))).scalars().all()
    assert len(staff) == 3
    assert len(await ServiceRepository(session).list_active()) == 3
