"""Structured booking errors.

Errors are returned as values from the booking core. Only the HTTP layer
turns them into responses; "no slots available" is never an error.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class BookingErrorCode(str, Enum):
    VALIDATION_ERROR = "validation_error"
    NOT_WITHIN_BUSINESS_HOURS = "not_within_business_hours"
    SLOT_NO_LONGER_AVAILABLE = "slot_no_longer_available"
    STAFF_INELIGIBLE = "staff_ineligible"
    PERSISTENCE_FAILURE = "persistence_failure"
    FORBIDDEN = "forbidden"


HTTP_STATUS_BY_CODE: dict[BookingErrorCode, int] = {
    BookingErrorCode.VALIDATION_ERROR: 400,
    BookingErrorCode.NOT_WITHIN_BUSINESS_HOURS: 400,
    BookingErrorCode.SLOT_NO_LONGER_AVAILABLE: 409,
    BookingErrorCode.STAFF_INELIGIBLE: 409,
    BookingErrorCode.PERSISTENCE_FAILURE: 503,
    BookingErrorCode.FORBIDDEN: 403,
}

# Codes the caller may resolve by picking another slot or retrying the commit.
RECOVERABLE_CODES = frozenset(
    {
        BookingErrorCode.NOT_WITHIN_BUSINESS_HOURS,
        BookingErrorCode.SLOT_NO_LONGER_AVAILABLE,
        BookingErrorCode.STAFF_INELIGIBLE,
        BookingErrorCode.PERSISTENCE_FAILURE,
    }
)


class BookingError(BaseModel):
    """A rejected booking attempt."""

    code: BookingErrorCode
    message: str
    field: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_CODE[self.code]

    @property
    def retryable(self) -> bool:
        return self.code in RECOVERABLE_CODES

    def to_detail(self) -> dict[str, Any]:
        detail: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.field:
            detail["field"] = self.field
        if self.details:
            detail["details"] = self.details
        return detail


def validation_error(message: str, field: Optional[str] = None) -> BookingError:
    return BookingError(code=BookingErrorCode.VALIDATION_ERROR, message=message, field=field)


def not_within_business_hours(message: str, **details: Any) -> BookingError:
    return BookingError(
        code=BookingErrorCode.NOT_WITHIN_BUSINESS_HOURS, message=message, details=details
    )


def slot_no_longer_available(message: str = "Time slot is no longer available", **details: Any) -> BookingError:
    return BookingError(
        code=BookingErrorCode.SLOT_NO_LONGER_AVAILABLE, message=message, details=details
    )


def staff_ineligible(message: str, **details: Any) -> BookingError:
    return BookingError(code=BookingErrorCode.STAFF_INELIGIBLE, message=message, details=details)


def persistence_failure(message: str = "Booking could not be saved, please try again") -> BookingError:
    return BookingError(code=BookingErrorCode.PERSISTENCE_FAILURE, message=message)


def forbidden(message: str) -> BookingError:
    return BookingError(code=BookingErrorCode.FORBIDDEN, message=message)
