"""Custom exceptions for Mongo Extract."""

from datetime import datetime
from typing import Any


class MongoExtractError(Exception):
    """Base exception for all Mongo Extract errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(MongoExtractError):
    """Raised when the run configuration is malformed."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.field = field
        super().__init__(message, details)


class ConnectionError(MongoExtractError):
    """Raised when a connection fails."""

    def __init__(
        self,
        message: str,
        connector_type: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.connector_type = connector_type
        super().__init__(message, details)


class ExtractionError(MongoExtractError):
    """Raised when querying the document store fails."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.source = source
        super().__init__(message, details)


class WindowError(MongoExtractError):
    """Raised when a single extraction window fails and is skipped."""

    def __init__(
        self,
        message: str,
        window_start: datetime | None = None,
        window_end: datetime | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.window_start = window_start
        self.window_end = window_end
        super().__init__(message, details)


class SerializationError(MongoExtractError):
    """Raised when a batch cannot be rendered to a payload."""

    def __init__(
        self,
        message: str,
        output_format: str | None = None,
        batch_index: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.output_format = output_format
        self.batch_index = batch_index
        super().__init__(message, details)


class FatalRunError(MongoExtractError):
    """Raised when a run fails outside any window and must be rolled back."""

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.cause = cause
        super().__init__(message, details)


class RunStateError(MongoExtractError):
    """Raised when a run controller is driven through an invalid transition."""

    pass


class SinkError(MongoExtractError):
    """Raised when an output sink operation fails."""

    def __init__(
        self,
        message: str,
        sink: str | None = None,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.sink = sink
        self.operation = operation
        super().__init__(message, details)


class EnrichmentError(MongoExtractError):
    """Raised when the address lookup service cannot be used."""

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.endpoint = endpoint
        super().__init__(message, details)


class RetryExhaustedError(MongoExtractError):
    """Raised when all retry attempts are exhausted."""

    def __init__(
        self,
        message: str,
        attempts: int | None = None,
        last_error: Exception | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(message, details)
