"""Staff day-availability filter."""

import uuid
from datetime import date
from typing import Iterable, Optional

from pydantic import BaseModel

from clinic_booking.booking.models import StaffAvailabilityRecord, StaffMember, StaffRole

STAFF_UNAVAILABLE_NOTICE = (
    "Your previously selected doctor is not available on this date. "
    "Please choose another."
)


class SelectionOutcome(BaseModel):
    """Result of reconciling a staff selection after the date changed."""

    selected_staff_id: Optional[uuid.UUID] = None
    cleared: bool = False
    notice: Optional[str] = None


def _unavailable_ids(
    target_date: date, records: Iterable[StaffAvailabilityRecord]
) -> set[uuid.UUID]:
    # Later records for the same staff/date win, matching upsert order.
    latest: dict[uuid.UUID, bool] = {}
    for record in records:
        if record.date == target_date:
            latest[record.staff_id] = record.is_available
    return {staff_id for staff_id, available in latest.items() if not available}


def eligible_staff(
    target_date: date,
    all_staff: Iterable[StaffMember],
    records: Iterable[StaffAvailabilityRecord],
) -> set[uuid.UUID]:
    """Active doctors who have not been marked unavailable on *target_date*.

    A missing availability record means available.
    """
    unavailable = _unavailable_ids(target_date, records)
    return {
        member.id
        for member in all_staff
        if member.role == StaffRole.DOCTOR
        and member.is_active
        and member.id not in unavailable
    }


def eligible_staff_for_display(
    target_date: date,
    all_staff: Iterable[StaffMember],
    records: Iterable[StaffAvailabilityRecord],
) -> list[StaffMember]:
    """Eligible doctors ordered by first name, then last name."""
    all_staff = list(all_staff)
    eligible = eligible_staff(target_date, all_staff, records)
    return sorted(
        (m for m in all_staff if m.id in eligible),
        key=lambda m: (m.first_name.lower(), m.last_name.lower()),
    )


def reconcile_selection(
    selected_staff_id: Optional[uuid.UUID], eligible: set[uuid.UUID]
) -> SelectionOutcome:
    """Drop a staff selection that is no longer eligible and explain why."""
    if selected_staff_id is None or selected_staff_id in eligible:
        return SelectionOutcome(selected_staff_id=selected_staff_id)
    return SelectionOutcome(cleared=True, notice=STAFF_UNAVAILABLE_NOTICE)
