"""depositwatch exception hierarchy.

This module defines the base exception class and specialized exceptions
for the error categories of the deposit watcher and its collaborators.
"""


class DepositWatchError(Exception):
    """Base exception for all depositwatch errors.

    All custom exceptions should inherit from this class
    to enable consistent error handling and logging.
    """

    pass


class ConfigurationError(DepositWatchError):
    """Raised when configuration is invalid or missing.

    Example:
        raise ConfigurationError("INDEXER_URL must be set")
    """

    pass


class ValidationError(DepositWatchError):
    """Raised when input data fails validation.

    Example:
        raise ValidationError("Address must be 58 base32 characters")
    """

    pass


class ExternalServiceError(DepositWatchError):
    """Raised when an external service call fails.

    Attributes:
        service: Name of the external service that failed.
        status_code: HTTP status code if available, None otherwise.

    Example:
        raise ExternalServiceError(service="indexer", message="Bad gateway", status_code=502)
    """

    def __init__(
        self,
        service: str,
        message: str,
        status_code: int | None = None,
    ) -> None:
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service}: {message}")


class TransientQueryError(ExternalServiceError):
    """Raised when a transaction search fails or returns a malformed envelope.

    The poll cycle that hit it is abandoned without touching the cursor
    or the seen registry, and retried on the normal schedule.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(service="indexer", message=message, status_code=status_code)


class MalformedRecordError(DepositWatchError):
    """Raised when a single transaction record is missing an expected field.

    Attributes:
        record_id: Transaction id of the bad record, if it could be read.
    """

    def __init__(self, message: str, record_id: str | None = None) -> None:
        super().__init__(message)
        self.record_id = record_id


class SubscriberError(DepositWatchError):
    """Raised (and contained) when a deposit subscriber fails.

    Attributes:
        kind: Event kind the subscriber was registered for.
    """

    def __init__(self, message: str, kind: str) -> None:
        super().__init__(message)
        self.kind = kind


class CircuitBreakerOpenError(DepositWatchError):
    """Raised when circuit breaker is open.

    Use this when an API client's circuit breaker has tripped due to
    consecutive failures and requests are being blocked.

    Example:
        raise CircuitBreakerOpenError("Circuit is open for the indexer")
    """

    pass
