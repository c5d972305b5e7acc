# utils/exceptions.py


class ServiceError(Exception):
    """Base exception for business rule violations. Carries the HTTP status to report."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(ServiceError):
    """Raised for missing or malformed request fields."""

    status_code = 400


class NotFound(ServiceError):
    """Raised when a labourer, assignment or employee reference does not resolve."""

    status_code = 404


class Conflict(ServiceError):
    """Raised for duplicate unique fields and lost concurrent updates."""

    status_code = 400


class StorePersistenceFailure(ServiceError):
    """Raised when a write to the store fails part way through an operation."""

    status_code = 500
