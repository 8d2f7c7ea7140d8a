class AppError(Exception):
    """Base class for failures reported to clients as ``success: false``."""

    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    default_message = "Invalid request data"


class NotFoundError(AppError):
    default_message = "Not found"


class ConflictError(AppError):
    default_message = "Conflict"


class SlotUnavailable(ConflictError):
    default_message = "Slot Not Available"


class DoctorUnavailable(SlotUnavailable):
    default_message = "Doctor Not Available"


class UnauthorizedError(AppError):
    default_message = "Unauthorized action"


class UpstreamError(AppError):
    default_message = "External service failure"


class AppointmentCancelledOrMissing(NotFoundError):
    default_message = "Appointment Cancelled or not found"
