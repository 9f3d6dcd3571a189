"""
Read-only course lookups used by the enrollment and payment services.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError as DjangoValidationError

from core.exceptions import NotFoundError
from core.services import BaseService

if TYPE_CHECKING:
    import uuid

    from catalog.models import Course


class CourseNotFoundError(NotFoundError):
    """Raised when a course does not exist or is not published."""

    default_error_code = "COURSE_NOT_FOUND"


class CatalogService(BaseService):
    """
    Course lookups shared by checkout, status and enrollment flows.

    Usage:
        course = CatalogService.get_course(course_id)
    """

    @classmethod
    def get_course(
        cls, course_id: uuid.UUID | str, published_only: bool = True
    ) -> Course:
        """
        Fetch a course by id.

        Args:
            course_id: Course UUID
            published_only: Treat unpublished courses as missing

        Raises:
            CourseNotFoundError: If no matching course exists
        """
        from catalog.models import Course

        queryset = Course.objects.all()
        if published_only:
            queryset = queryset.filter(is_published=True)
        try:
            return queryset.get(pk=course_id)
        except (Course.DoesNotExist, DjangoValidationError, ValueError):
            raise CourseNotFoundError(
                "Course not found",
                details={"course_id": str(course_id)},
            ) from None
