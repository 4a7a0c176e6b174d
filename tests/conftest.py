"""Pytest configuration and fixtures."""

import uuid
from datetime import date, time

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from clinic_booking.booking.transaction import BookingService
from clinic_booking.config import Settings
from clinic_booking.core.models import Base, Patient, ServiceDB, Staff, TimeSlot
from clinic_booking.observability import BookingEventLogger

# Saturday; the following Monday is 2026-10-19.
TODAY = date(2026, 10, 17)
MONDAY = date(2026, 10, 19)
TUESDAY = date(2026, 10, 20)

CONSULT_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
EXAM_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
RETIRED_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")

DOCTOR_A_ID = uuid.UUID("aaaaaaaa-0000-0000-0000-000000000001")
DOCTOR_B_ID = uuid.UUID("aaaaaaaa-0000-0000-0000-000000000002")
NURSE_ID = uuid.UUID("aaaaaaaa-0000-0000-0000-000000000003")
ADMIN_ID = uuid.UUID("aaaaaaaa-0000-0000-0000-000000000004")
RECEPTION_ID = uuid.UUID("aaaaaaaa-0000-0000-0000-000000000005")

PATIENT_ID = uuid.UUID("bbbbbbbb-0000-0000-0000-000000000001")
OTHER_PATIENT_ID = uuid.UUID("bbbbbbbb-0000-0000-0000-000000000002")


class FixedClockBookingService(BookingService):
    """Booking service whose clinic "today" is pinned."""

    def today(self) -> date:
        return TODAY


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite://",
        events_enabled=True,
        events_log_dir=tmp_path / "logs",
        persistence_timeout_seconds=5.0,
    )


@pytest.fixture
def event_logger(settings) -> BookingEventLogger:
    return BookingEventLogger(log_dir=settings.events_log_dir, enabled=True)


@pytest.fixture
def booking_service(settings, event_logger) -> BookingService:
    return FixedClockBookingService(settings=settings, events=event_logger)


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as sess:
        yield sess


@pytest_asyncio.fixture
async def clinic(session_factory) -> dict:
    """Seed services, Monday/Tuesday hours, staff and two patients."""
    async with session_factory() as sess:
        sess.add_all(
            [
                ServiceDB(id=CONSULT_ID, name="General Consultation", duration_minutes=30),
                ServiceDB(id=EXAM_ID, name="Physical Examination", duration_minutes=45),
                ServiceDB(id=RETIRED_ID, name="Retired Service", duration_minutes=30, is_active=False),
                # Monday: split day; Tuesday: morning only
                TimeSlot(day_of_week=1, start_time=time(8, 0), end_time=time(12, 0)),
                TimeSlot(day_of_week=1, start_time=time(13, 0), end_time=time(17, 0)),
                TimeSlot(day_of_week=2, start_time=time(9, 0), end_time=time(12, 0)),
                Staff(id=DOCTOR_A_ID, first_name="Liam", last_name="Byrne", role="doctor"),
                Staff(id=DOCTOR_B_ID, first_name="Amara", last_name="Okafor", role="doctor"),
                Staff(id=NURSE_ID, first_name="Nia", last_name="Hale", role="nurse"),
                Staff(id=ADMIN_ID, first_name="Clinic", last_name="Admin", role="admin"),
                Staff(id=RECEPTION_ID, first_name="Rosa", last_name="Diaz", role="receptionist"),
                Patient(id=PATIENT_ID, first_name="Jane", last_name="Doe", phone="555-0100"),
                Patient(id=OTHER_PATIENT_ID, first_name="John", last_name="Roe", phone="555-0101"),
            ]
        )
        await sess.commit()
    return {
        "consult": CONSULT_ID,
        "exam": EXAM_ID,
        "retired": RETIRED_ID,
        "doctor_a": DOCTOR_A_ID,
        "doctor_b": DOCTOR_B_ID,
        "nurse": NURSE_ID,
        "admin": ADMIN_ID,
        "receptionist": RECEPTION_ID,
        "patient": PATIENT_ID,
        "other_patient": OTHER_PATIENT_ID,
    }
