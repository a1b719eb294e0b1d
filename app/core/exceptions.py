"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation error", fields: list[str] | None = None):
        """Initialize with 422 status code and the offending field names."""
        self.fields = list(fields or [])
        super().__init__(message, status_code=422)


class LimitExceededException(ConflictException):
    """Per-day appointment cap reached for a clinician."""

    def __init__(self, message: str = "Appointment limit reached for this day."):
        """Initialize with 409 status code."""
        super().__init__(message)


class StructuralIntegrityException(ConflictException):
    """Operation would leave the master/child series graph inconsistent."""

    def __init__(self, message: str = "Recurring series is inconsistent"):
        """Initialize with 409 status code."""
        super().__init__(message)


class StoreException(AppException):
    """Store failure inside a transaction; details stay in the logs."""

    def __init__(self, message: str = "Operation failed"):
        """Initialize with 500 status code."""
        super().__init__(message, status_code=500)
