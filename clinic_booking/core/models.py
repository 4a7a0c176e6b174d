"""SQLAlchemy 2.0 async models for the booking schema."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.types import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_uuid() -> uuid.UUID:
    return uuid.uuid4()


CLINIC_RESOURCE = "clinic"

# Native UUID on PostgreSQL, CHAR(32) on SQLite (a bare UUID column there has NUMERIC affinity).
UUIDType = PG_UUID(as_uuid=True).with_variant(Uuid(), "sqlite")


class Base(DeclarativeBase):
    pass


class ServiceDB(Base):
    __tablename__ = "services"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=_new_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_services_duration_positive"),
        Index("ix_services_is_active", "is_active"),
    )


class Staff(Base):
    __tablename__ = "staff"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=_new_uuid)
    staff_number: Mapped[str | None] = mapped_column(String(50), unique=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="doctor")
    phone: Mapped[str | None] = mapped_column(String(20))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    appointments: Mapped[list[AppointmentDB]] = relationship(back_populates="staff", lazy="selectin")
    availability: Mapped[list[StaffAvailability]] = relationship(back_populates="staff", lazy="selectin")

    __table_args__ = (
        Index("ix_staff_role_active", "role", "is_active"),
    )


class Patient(Base):
    __tablename__ = "patients"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=_new_uuid)
    patient_number: Mapped[str | None] = mapped_column(String(50), unique=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    date_of_birth: Mapped[date | None] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    appointments: Mapped[list[AppointmentDB]] = relationship(back_populates="patient", lazy="selectin")

    __table_args__ = (
        Index("ix_patients_last_name", "last_name"),
    )


class TimeSlot(Base):
    """Recurring weekly business-hour window (0=Sunday..6=Saturday)."""

    __tablename__ = "time_slots"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=_new_uuid)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_time_slots_day_of_week"),
        CheckConstraint("start_time < end_time", name="ck_time_slots_order"),
        Index("ix_time_slots_day", "day_of_week", "is_active"),
    )


class AppointmentDB(Base):
    __tablename__ = "appointments"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=_new_uuid)
    patient_id: Mapped[uuid.UUID] = mapped_column(UUIDType, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    service_id: Mapped[uuid.UUID] = mapped_column(UUIDType, ForeignKey("services.id", ondelete="RESTRICT"), nullable=False)
    staff_id: Mapped[uuid.UUID | None] = mapped_column(UUIDType, ForeignKey("staff.id", ondelete="SET NULL"))
    # Calendar the appointment occupies: a staff id or the clinic-wide key.
    resource_key: Mapped[str] = mapped_column(String(64), nullable=False, default=CLINIC_RESOURCE)
    appointment_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    booking_type: Mapped[str] = mapped_column(String(20), nullable=False, default="online")
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    patient: Mapped[Patient] = relationship(back_populates="appointments")
    service: Mapped[ServiceDB] = relationship(lazy="selectin")
    staff: Mapped[Staff | None] = relationship(back_populates="appointments")

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_appointments_order"),
        Index("ix_appointments_patient_id", "patient_id"),
        Index("ix_appointments_staff_id", "staff_id"),
        Index("ix_appointments_date", "appointment_date"),
        Index("ix_appointments_status", "status"),
        Index("ix_appointments_resource_date", "resource_key", "appointment_date"),
        Index(
            "uq_appointments_resource_slot",
            "resource_key",
            "appointment_date",
            "start_time",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
    )


class StaffAvailability(Base):
    __tablename__ = "staff_availability"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=_new_uuid)
    staff_id: Mapped[uuid.UUID] = mapped_column(UUIDType, ForeignKey("staff.id", ondelete="CASCADE"), nullable=False)
    availability_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    staff: Mapped[Staff] = relationship(back_populates="availability")

    __table_args__ = (
        UniqueConstraint("staff_id", "availability_date", name="uq_staff_availability_day"),
        Index("ix_staff_availability_date", "availability_date"),
    )


class AuditLog(Base):
    __tablename__ = "audit_log"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=_new_uuid)
    user_id: Mapped[str | None] = mapped_column(String(255))
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_id: Mapped[str] = mapped_column(String(255), nullable=False)
    details: Mapped[dict | None] = mapped_column(JSON)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("ix_audit_resource", "resource_type", "resource_id"),
        Index("ix_audit_timestamp", "timestamp"),
    )
