"""Service-layer errors, each mapped to one HTTP status by the app handler."""


class ServiceError(Exception):
    """Base class for errors raised by the service layer."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Raised when input is well-formed JSON but semantically invalid."""

    status_code = 400
    default_message = "Invalid request"


class UnauthorizedError(ServiceError):
    """Raised when the caller is not authenticated or the token is invalid."""

    status_code = 401
    default_message = "Could not validate credentials"


class ForbiddenError(ServiceError):
    """Raised when the caller lacks the role, ownership or visibility required."""

    status_code = 403
    default_message = "You do not have permission to perform this action"


class NotFoundError(ServiceError):
    """Raised when a referenced entity does not exist."""

    status_code = 404
    default_message = "Resource not found"


class ConflictError(ServiceError):
    """Raised when a unique natural key is already taken."""

    status_code = 409
    default_message = "Resource already exists"
