"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Service Layer Philosophy:
    Services encapsulate business logic separate from views and models.
    Views handle HTTP concerns, models handle data, services handle logic.

Pattern Comparison:
    - ServiceResult: Use for expected failures (bad upstream data, business rules)
    - Exceptions: Use for unexpected failures (database errors, bugs)

Usage:
    from core.services import BaseService, ServiceResult

    class BookingService(BaseService):
        @classmethod
        def confirm(cls, booking_id: str) -> ServiceResult[str]:
            if not booking_id:
                return ServiceResult.failure(
                    "Booking id is required",
                    error_code="BOOKING_ID_REQUIRED",
                )

            cls.get_logger().info(f"Confirmed booking {booking_id}")
            return ServiceResult.success(booking_id)

    result = BookingService.confirm(booking_id)
    if not result.success:
        logger.warning(result.error)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generic, TypeVar

from core.exceptions import BaseApplicationError

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Provides consistent success/failure handling without exceptions.
    Use this for expected failures (malformed upstream data, business
    rule violations).

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code

    Usage:
        # Success case
        return ServiceResult.success(record)

        # Failure case
        return ServiceResult.failure("Ticket list is empty", "INCOMPLETE_BOOKING_DATA")

        # Check result
        result = dispatch_event(event)
        if result.success:
            record = result.data
        else:
            print(f"Error: {result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code

        Returns:
            ServiceResult with success=False and error details
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Application errors keep their own error code; any other exception
        falls back to its class name.

        Args:
            exc: The caught exception
            error_code: Optional error code override

        Returns:
            ServiceResult with error details from exception

        Example:
            try:
                materializer.materialize(event)
            except IncompleteBookingData as e:
                return ServiceResult.from_exception(e)
        """
        if isinstance(exc, BaseApplicationError):
            return cls.failure(exc.message, error_code or exc.error_code)
        return cls.failure(str(exc), error_code or exc.__class__.__name__.upper())


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service

    Usage:
        class TransactionService(BaseService):
            @classmethod
            def touch(cls, transaction_id: str) -> None:
                cls.get_logger().info(f"Touched {transaction_id}")

    Design Notes:
        - Services hold collaborators, never per-request state
        - Use ServiceResult for expected failures
        - Raise exceptions for unexpected failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.

        Returns:
            Logger instance for this service
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")
