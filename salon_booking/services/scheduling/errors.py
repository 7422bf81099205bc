"""Error taxonomy for the scheduling engine.

Every error carries an HTTP status, a short machine-readable ``error`` code,
a human message, and a ``context`` dict with whatever the caller needs to
retry (current counts, limits, suggested slots).
"""

from typing import Any, Dict, Optional


class BookingError(Exception):
    status_code = 500
    error = "Booking error"

    def __init__(self, message: str, error: Optional[str] = None, **context: Any):
        super().__init__(message)
        self.message = message
        if error:
            self.error = error
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        payload = {"status": "error", "message": self.message, "error": self.error}
        payload.update(self.context)
        return payload


class ValidationError(BookingError):
    status_code = 400
    error = "Validation failed"


class NotFoundError(BookingError):
    status_code = 404
    error = "Not found"


class AuthorizationError(BookingError):
    status_code = 403
    error = "Forbidden"


class InvalidStateError(BookingError):
    status_code = 400
    error = "Invalid appointment state"


class ConflictError(BookingError):
    status_code = 422
    error = "Conflict"


class ScheduleConflictError(ConflictError):
    error = "Schedule conflict"


class CapacityExceededError(ConflictError):
    error = "Capacity exceeded"


class DuplicateBookingError(ConflictError):
    error = "Duplicate booking detected"


class InvalidCouponError(ConflictError):
    error = "Invalid coupon"


class NoStaffAvailableError(ConflictError):
    error = "No staff available"


class RateLimitError(BookingError):
    status_code = 429
    error = "Rate limited"

    def __init__(self, message: str, retry_after: Optional[int] = None, **context):
        if retry_after is not None:
            context["retry_after"] = retry_after
        super().__init__(message, **context)
        self.retry_after = retry_after


class TransientStorageError(BookingError):
    status_code = 500
    error = "Storage failure"
