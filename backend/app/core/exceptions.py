class AppError(Exception):
    """Base class for all application exceptions."""

    code = "error"
    retryable = False

    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class AuthorizationError(AppError):
    """Raised when the caller lacks the role required for an operation."""

    code = "forbidden"

    def __init__(self, message: str = "Insufficient permissions", details: dict = None):
        super().__init__(message, status_code=403, details=details)


class BookingValidationError(AppError):
    """Raised when a request violates a named scheduling rule."""

    code = "validation"

    def __init__(self, message: str, *, rule: str, details: dict = None):
        super().__init__(message, status_code=400, details={"rule": rule, **(details or {})})
        self.rule = rule


class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""

    code = "not_found"

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class StateConflictError(AppError):
    """Raised when a workflow transition is not allowed from the current state."""

    code = "conflict"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)


class SystemBusyError(AppError):
    """Raised when the booking lock cannot be acquired in time."""

    code = "busy"
    retryable = True

    def __init__(self, message: str = "The system is busy. Please try again in a moment."):
        super().__init__(message, status_code=503)


class ConfigurationError(AppError):
    """Raised when system configuration is invalid."""

    code = "configuration"

    def __init__(self, message: str):
        super().__init__(message, status_code=500)
