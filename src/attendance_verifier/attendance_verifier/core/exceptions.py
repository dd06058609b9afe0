class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class InputError(ValidationError):
    """Raised when evidence coordinates, timestamps or payload fields cannot be read."""


class ConfigurationError(DomainError):
    """Raised when a center is configured with an invalid radius or coordinates."""


class RecordNotFoundError(DomainError):
    """Raised when an administrative action targets an unknown attendance record."""


class ResolutionDeferred(DomainError):
    """Resolution could not run; the record stays pending and may be retried."""


class DirectoryUnavailableError(ResolutionDeferred):
    """Raised when no center directory snapshot can be obtained."""


class PersistenceError(DomainError):
    """Base class for storage failures the ledger knows how to handle."""


class DuplicateRecordError(PersistenceError):
    """Raised when an insert races with another writer on the same (student, date)."""


class ConcurrencyConflictError(PersistenceError):
    """Raised when a version-checked update finds the row changed underneath it."""


class PersistenceTimeoutError(PersistenceError):
    """Raised when the storage call times out or the connection drops. Retryable."""


class RetryExhaustedError(PersistenceError):
    """Raised when the bounded retry policy gives up on an evidence item."""
