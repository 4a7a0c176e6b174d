"""Booking core: domain models, availability engine and staff filter.

The write path lives in :mod:`clinic_booking.booking.transaction`.
"""

from clinic_booking.booking.availability import (
    available_dates,
    available_slots,
    compute_business_span,
    day_of_week,
    intervals_overlap,
    is_slot_free,
)
from clinic_booking.booking.errors import BookingError, BookingErrorCode
from clinic_booking.booking.models import (
    Appointment,
    AppointmentStatus,
    BookingRequest,
    BookingType,
    BusinessHourWindow,
    BusinessSpan,
    Service,
    Slot,
    StaffAvailabilityRecord,
    StaffMember,
    StaffRole,
)
from clinic_booking.booking.staff import (
    eligible_staff,
    eligible_staff_for_display,
    reconcile_selection,
)

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "BookingError",
    "BookingErrorCode",
    "BookingRequest",
    "BookingType",
    "BusinessHourWindow",
    "BusinessSpan",
    "Service",
    "Slot",
    "StaffAvailabilityRecord",
    "StaffMember",
    "StaffRole",
    "available_dates",
    "available_slots",
    "compute_business_span",
    "day_of_week",
    "eligible_staff",
    "eligible_staff_for_display",
    "intervals_overlap",
    "is_slot_free",
    "reconcile_selection",
]
