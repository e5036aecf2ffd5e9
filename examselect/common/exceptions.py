"""
Common Exception Classes

This module defines the error taxonomy of the selection engine. Two kinds are
fatal and raised to the caller (``InsufficientPoolError`` and
``UnknownAlgorithmError``); ``HistoryUnavailableError`` and
``RecorderFailureError`` are only ever logged.
"""

from typing import Optional, Any


class BaseError(Exception):
    """Base class for all custom exceptions."""

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        """
        Initialize the exception.

        Args:
            message: Error message
            original_exception: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception


class SelectionError(BaseError):
    """Base class for failures of a selection call."""

    #: Whether the calling workflow may retry the same request.
    retryable: bool = False


class InsufficientPoolError(SelectionError):
    """Raised when the candidate pool cannot supply the requested count."""

    def __init__(
        self,
        category_id: Any,
        requested: int,
        available: int,
        reason: Optional[str] = None
    ):
        """
        Initialize the insufficient pool error.

        Args:
            category_id: Category whose pool was too small
            requested: Number of items requested
            available: Number of items that could be supplied
            reason: Optional detail (e.g. overlap budget exhausted)
        """
        message = (
            f"Insufficient pool for category {category_id}: "
            f"requested {requested}, available {available}"
        )
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.category_id = category_id
        self.requested = requested
        self.available = available
        self.reason = reason


class UnknownAlgorithmError(SelectionError):
    """Raised when a request names an algorithm the engine does not know."""

    def __init__(self, algorithm: Any):
        super().__init__(f"Unknown selection algorithm: {algorithm!r}")
        self.algorithm = algorithm


class HistoryUnavailableError(SelectionError):
    """Raised by history sources that cannot serve a request."""

    retryable = True

    def __init__(self, requester_id: Any, category_id: Any, original_exception: Optional[Exception] = None):
        super().__init__(
            f"History unavailable for requester {requester_id} in category {category_id}",
            original_exception
        )
        self.requester_id = requester_id
        self.category_id = category_id


class RecorderFailureError(SelectionError):
    """Raised by usage recorders when a bump or audit write fails."""

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(f"Usage recorder failure: {message}", original_exception)


class DatabaseError(BaseError):
    """Exception raised for database-related errors."""

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(f"Database error: {message}", original_exception)


class ValidationError(BaseError):
    """Exception raised for validation errors."""

    def __init__(self, message: str, errors: Optional[dict] = None):
        """
        Initialize the validation error.

        Args:
            message: Error message
            errors: Dictionary of validation errors
        """
        super().__init__(f"Validation error: {message}")
        self.errors = errors or {}


class ConfigurationError(BaseError):
    """Exception raised for configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(f"Configuration error: {message}")
        self.config_key = config_key
