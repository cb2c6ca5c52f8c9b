class ApplicationError(Exception):
    """Base application-layer error, independent from transport concerns."""


class NotFoundError(ApplicationError):
    """Raised when an expected entity does not exist."""


class ConflictError(ApplicationError):
    """Raised when a uniqueness or state conflict occurs."""


class ValidationError(ApplicationError):
    """Raised when application-level validation fails."""


class BatchFailedError(ValidationError):
    """Raised when every item of a per-item batch failed."""

    def __init__(self, message: str, errors: list[dict]):
        super().__init__(message)
        self.errors = errors
