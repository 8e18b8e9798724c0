class DomainError(Exception):
    """Base exception for business rule violations.

    Every subclass carries a default human-readable message and a short
    ``kind`` used by the HTTP layer.
    """

    kind = "domain_error"
    default_message = "Request could not be completed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    kind = "validation_error"
    default_message = "Invalid input"


class InvalidLocationError(ValidationError):
    """Raised when a submitted location lacks usable coordinates."""

    kind = "invalid_location"
    default_message = "Location with numeric coordinates is required"


class PayloadDecodeError(ValidationError):
    """Raised when a scanned QR payload cannot be decoded."""

    kind = "decode_error"
    default_message = "QR code is not a valid attendance session code"


class AuthenticationError(DomainError):
    """Raised when no caller identity is available."""

    kind = "unauthenticated"
    default_message = "Please sign in to continue"


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""

    kind = "forbidden"
    default_message = "You are not allowed to perform this action"


class NotFoundError(DomainError):
    kind = "not_found"
    default_message = "Resource not found"


class SessionNotFoundError(NotFoundError):
    kind = "session_not_found"
    default_message = "Session not found or no longer accepting attendance"


class SessionExpiredError(DomainError):
    kind = "session_expired"
    default_message = "This attendance session is over"


class DuplicateAttendanceError(DomainError):
    kind = "duplicate_attendance"
    default_message = "Attendance already marked for this session"


class CodeAllocationError(DomainError):
    kind = "code_allocation_failed"
    default_message = "Could not allocate a unique session code, please retry"


class StorageError(DomainError):
    """Infrastructure failure talking to the database."""

    kind = "storage_error"
    default_message = "Storage error, please retry"


class StorageTimeoutError(StorageError):
    kind = "storage_timeout"
    default_message = "Storage timed out, please retry"


class StorageUnavailableError(StorageError):
    kind = "storage_unavailable"
    default_message = "Storage is unavailable, please retry later"


class DuplicateKeyError(StorageError):
    """A unique constraint rejected an insert. Translated by services."""

    kind = "duplicate_key"
    default_message = "Duplicate key"

    def __init__(self, message: str | None = None, *, key: str | None = None):
        super().__init__(message)
        self.key = key
