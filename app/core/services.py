"""
Service layer primitives.

- ServiceResult: outcome of a client-facing operation (checkout, status
  poll, enrollment) that can fail in an expected way
- BaseService: classmethod-only service base with a per-class logger

Expected failures (course missing, already enrolled, provider declined)
come back as ServiceResult.failure with a stable error_code that views map
to an HTTP status. Unexpected failures (database down, bugs) propagate as
exceptions.

Usage:
    from core.services import BaseService, ServiceResult

    class FreeEnrollmentService(BaseService):
        @classmethod
        def enroll(cls, user, course_id) -> ServiceResult[GrantResult]:
            if course.price_cents > 0:
                return ServiceResult.failure(
                    "This course requires payment",
                    error_code="PAYMENT_REQUIRED",
                )
            ...
            return ServiceResult.success(grant)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Success or expected failure of a service call.

    Attributes:
        success: Whether the operation succeeded
        data: Payload when successful
        error: Human-readable message when failed
        error_code: Stable machine-readable code (COURSE_NOT_FOUND, ...)

    Usage:
        result = CheckoutService.start_checkout(user, course_id)
        if not result:
            return Response(result.error_body(), status=409)
        session = result.data
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: str, error_code: str | None = None) -> ServiceResult[T]:
        return cls(success=False, error=error, error_code=error_code)

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Build a failure from a caught exception.

        Application errors carry their own message and error_code; the code
        is used unless one is passed explicitly. Other exceptions fall back
        to their class name.
        """
        message = getattr(exc, "message", None) or str(exc)
        code = error_code or getattr(exc, "error_code", None)
        return cls(
            success=False,
            error=message,
            error_code=code or exc.__class__.__name__.upper(),
        )

    def error_body(self) -> dict[str, Any]:
        """Response body for a failed result."""
        return {"error": self.error, "error_code": self.error_code}

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for services.

    Services hold no instance state; operations are classmethods so they
    can be patched per class in tests.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named <module>.<ServiceClass> for per-service filtering."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")
