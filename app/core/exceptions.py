"""
Base exception classes for application-wide error handling.

This module provides the root of the exception hierarchy that enables:
- Consistent error payloads across the application
- Machine-readable error codes for log filtering and client handling
- Detailed error context for debugging
- An explicit retry classification for background processing

Exception Hierarchy:
    BaseApplicationError (base)
    └── <domain>Error - Each domain app derives its own family
        (see ticketing.exceptions)

Usage:
    from core.exceptions import BaseApplicationError

    class InvoiceError(BaseApplicationError):
        default_error_code = "INVOICE_ERROR"

    # Raise with message only
    raise InvoiceError("Invoice could not be rendered")

    # Raise with error code and additional details
    raise InvoiceError(
        "Invoice total mismatch",
        error_code="INVOICE_TOTAL_MISMATCH",
        details={"expected": 1000, "actual": 900},
    )

    # Convert to dict for logging or an HTTP response
    try:
        ...
    except BaseApplicationError as e:
        logger.warning("Operation failed", extra=e.to_dict())
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Provides a consistent interface for error handling across the application.
    All custom exceptions should inherit from this class.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for log filtering and clients
        details: Additional error context (identifiers, metadata, etc.)
        is_retryable: Whether the failed operation may succeed if repeated
            with the same input. Background workers use this flag to decide
            between re-queueing and dropping a job.

    Example:
        try:
            materializer.materialize(event)
        except BaseApplicationError as e:
            if e.is_retryable:
                queue.enqueue("reprocess_event", payload)
            else:
                logger.error(f"Dropping event: {e.error_code}")
    """

    default_error_code: str = "APPLICATION_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API responses and log context.

        Returns:
            Dict with error, error_code, and details keys

        Example:
            {
                "error": "No checkout session found",
                "error_code": "SESSION_NOT_FOUND",
                "details": {"payment_intent_id": "pi_123"}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )
