"""
Error types for the Oblique Strategies MCP Server.

This module defines the ToolError base class and subclasses for domain-specific errors.
Domain errors should be expressed using ToolError (or subclasses) instead of building
JSON-RPC error objects or HTTP responses directly.

The entry layers map these errors to their transport:
- ``/mcp`` and stdio: JSON-RPC error objects (see ``mcp_oblique.protocol``)
- ``/register`` and ``/auth``: plain JSON bodies with the HTTP status from
  ``ToolError.http_status``
"""

from __future__ import annotations

from typing import Any

# HTTP status codes used when a ToolError escapes a plain-HTTP endpoint
HTTP_STATUS_MAP: dict[str, int] = {
    "invalid_argument": 400,
    "unauthenticated": 401,
    "not_found": 404,
    "failed_precondition": 409,
    "internal": 500,
}


class ToolError(Exception):
    """
    Base exception class for domain errors.

    ToolError instances are caught at the entry layer and mapped to either
    JSON-RPC errors or plain HTTP error responses.

    Attributes:
        error_code: Internal error code string (e.g., "invalid_argument",
            "not_found", "unauthenticated", "internal").
        message: Human-readable error message.
        details: Optional structured details (e.g., parameter values, context).

    Example:
        >>> raise ToolError(
        ...     error_code="invalid_argument",
        ...     message="PIN must be exactly 6 digits",
        ...     details={"field": "pin"},
        ... )
    """

    def __init__(
        self,
        error_code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize a ToolError.

        Args:
            error_code: Internal error code string identifying the error category.
            message: Human-readable error message.
            details: Optional dictionary with structured error details.
        """
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.details = details or {}

    def __repr__(self) -> str:
        """Return a detailed string representation."""
        return (
            f"{self.__class__.__name__}("
            f"error_code={self.error_code!r}, "
            f"message={self.message!r}, "
            f"details={self.details!r})"
        )

    @property
    def http_status(self) -> int:
        """HTTP status code used when this error is returned outside JSON-RPC."""
        return HTTP_STATUS_MAP.get(self.error_code, 500)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the error to a dictionary for serialization.

        Returns:
            Dictionary with error_code, message, and details.
        """
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class InvalidArgumentError(ToolError):
    """
    Error raised when a request body or tool receives invalid input.

    Maps to the "invalid_argument" error code (HTTP 400).
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize an InvalidArgumentError."""
        super().__init__(
            error_code="invalid_argument", message=message, details=details
        )


class NotFoundError(ToolError):
    """
    Error raised when a referenced record does not exist or has expired.

    Maps to the "not_found" error code (HTTP 404).
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize a NotFoundError."""
        super().__init__(error_code="not_found", message=message, details=details)


class UnauthenticatedError(ToolError):
    """
    Error raised when a caller cannot be authenticated.

    Maps to the "unauthenticated" error code (HTTP 401).
    """

    def __init__(
        self,
        message: str = "Unauthorized",
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize an UnauthenticatedError."""
        super().__init__(
            error_code="unauthenticated", message=message, details=details
        )


class FailedPreconditionError(ToolError):
    """
    Error raised when a precondition for the operation is not met.

    Used by the storage backends when the database cannot be opened or written.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize a FailedPreconditionError."""
        super().__init__(
            error_code="failed_precondition", message=message, details=details
        )


class InternalError(ToolError):
    """
    Error raised for unexpected internal errors.

    Maps to the "internal" error code and should be used for
    unexpected exceptions that should be logged with full stack traces.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize an InternalError."""
        super().__init__(error_code="internal", message=message, details=details)
