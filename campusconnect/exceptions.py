class BookingError(Exception):
    status_code = 500
    error = "booking_error"

    def __init__(self, detail: str, **extra):
        super().__init__(detail)
        self.detail = detail
        self.extra = extra

    def to_dict(self) -> dict:
        return {"error": self.error, "detail": self.detail, **self.extra}


class ValidationError(BookingError):
    status_code = 400
    error = "validation_error"


class SlotUnavailable(BookingError):
    status_code = 409
    error = "slot_unavailable"


class Forbidden(BookingError):
    status_code = 403
    error = "forbidden"


class InvalidTransition(BookingError):
    status_code = 400
    error = "invalid_transition"


class Conflict(BookingError):
    """Compare-and-set lost: the booking changed between read and write."""

    status_code = 409
    error = "conflict"


class NotFound(BookingError):
    status_code = 404
    error = "not_found"


class PersistenceError(BookingError):
    status_code = 503
    error = "persistence_error"
