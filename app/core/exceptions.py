"""
Application error base classes.

Domain errors carry a stable error_code next to the human message so the
service layer can turn them into ServiceResult failures and views can map
them to HTTP statuses without string matching.

Hierarchy:
    BaseApplicationError
    ├── NotFoundError - 404-style lookups (course, order)
    └── ConflictError - 409-style state conflicts (duplicate status,
                        already enrolled, order in flight)

Usage:
    from core.exceptions import NotFoundError

    raise NotFoundError(
        "Course not found",
        error_code="COURSE_NOT_FOUND",
        details={"course_id": str(course_id)},
    )

DRF handles request-layer errors (serializer validation, authentication)
itself; these are for business rules.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Root of all application errors.

    Attributes:
        message: Human-readable description
        error_code: Machine-readable code, defaults to the class default
        details: Extra context for logs (ids, states)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Error body; details are included only when present."""
        body: dict[str, Any] = {"error": self.message, "error_code": self.error_code}
        if self.details:
            body["details"] = self.details
        return body

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class NotFoundError(BaseApplicationError):
    """A record the caller expected to exist is missing."""

    default_error_code: str = "NOT_FOUND"


class ConflictError(BaseApplicationError):
    """
    The operation conflicts with the record's current state.

    Raised for repeated statuses, backward transitions, version mismatches
    and duplicate enrollments.
    """

    default_error_code: str = "CONFLICT"
