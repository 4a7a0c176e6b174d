"""Database engine and async session factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from datetime import time
from functools import lru_cache

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from clinic_booking.config import get_settings
from clinic_booking.core.models import Base, ServiceDB, Staff, TimeSlot
from clinic_booking.core.repository import PatientRepository

logger = logging.getLogger(__name__)


def get_database_url() -> str:
    return get_settings().database_url


@lru_cache
def _get_engine():
    url = get_database_url()
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        echo=False,
    )


@lru_cache
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(_get_engine(), class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an async session."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create all tables (dev only; production uses migrations)."""
    engine = _get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    if get_settings().seed_demo_data:
        async with get_session_factory()() as session:
            await seed_demo_data(session)


async def seed_demo_data(session: AsyncSession) -> None:
    """Insert a starter catalogue: services, weekday hours, staff and a patient."""
    result = await session.execute(select(ServiceDB).limit(1))
    if result.scalar_one_or_none():
        return

    session.add_all(
        [
            ServiceDB(name="General Consultation", duration_minutes=30),
            ServiceDB(name="Follow-up Visit", duration_minutes=15),
            ServiceDB(name="Physical Examination", duration_minutes=45),
        ]
    )
    # Monday..Friday, 08:00-12:00 and 13:00-17:00
    for day in range(1, 6):
        session.add(TimeSlot(day_of_week=day, start_time=time(8, 0), end_time=time(12, 0)))
        session.add(TimeSlot(day_of_week=day, start_time=time(13, 0), end_time=time(17, 0)))
    session.add_all(
        [
            Staff(first_name="Amara", last_name="Okafor", role="doctor", staff_number="D001"),
            Staff(first_name="Liam", last_name="Byrne", role="doctor", staff_number="D002"),
            Staff(first_name="Clinic", last_name="Admin", role="admin", staff_number="A001"),
        ]
    )
    await PatientRepository(session).create(
        first_name="Demo", last_name="Patient", phone="555-0100", patient_number="P0001"
    )
    await session.commit()
    logger.info("Seeded demo services, business hours, staff and patient")
