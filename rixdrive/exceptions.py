"""Custom exceptions for the Rixian Drive client."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .errors import StructuredError


class DriveError(Exception):
    """Base exception for all Rixian Drive client errors."""

    pass


class DriveConfigError(DriveError):
    """Raised when the client configuration is missing or invalid."""

    pass


class DriveValidationError(DriveError, ValueError):
    """Raised when caller input is missing or invalid.

    Always raised before any network I/O takes place.
    """

    def __init__(self, message: str, parameter: str | None = None):
        super().__init__(message)
        self.parameter = parameter


class DriveAuthenticationError(DriveError):
    """Raised when no access token could be obtained for a request."""

    pass


class DriveNetworkError(DriveError):
    """Raised when a request fails at the transport level."""

    pass


class DriveTimeoutError(DriveNetworkError):
    """Raised when a request times out."""

    pass


class DriveCircuitOpenError(DriveNetworkError):
    """Raised when a circuit breaker rejects an attempt."""

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class ApiException(DriveError):
    """Raised by the exception tier when an operation returns a failure.

    The message is the indented JSON form of the structured error, which is
    also available unchanged as ``error``.
    """

    def __init__(self, message: str, error: StructuredError | None = None):
        super().__init__(message)
        self.error = error

    @classmethod
    def create(cls, error: StructuredError) -> ApiException:
        """Build an ApiException from a structured error."""
        payload: Any = error.to_dict()
        return cls(json.dumps(payload, indent=2, default=str), error)
