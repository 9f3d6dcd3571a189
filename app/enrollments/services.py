"""
Enrollment services.

EnrollmentGranter is the only code path that creates Enrollment rows.
It is idempotent: granting an existing (user, course) pair is a silent
success, so webhook, poll, sweeper retry and admin confirmation can all
call it without coordinating.

Usage:
    from enrollments.services import EnrollmentGranter, FreeEnrollmentService

    result = EnrollmentGranter.grant(user.id, course.id, order_id=order.id)
    if result.created:
        ...

    result = FreeEnrollmentService.enroll(user, course_id)
    if not result.success:
        result.error_code  # "COURSE_NOT_FOUND" or "PAYMENT_REQUIRED"
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from catalog.services import CatalogService, CourseNotFoundError
from core.services import BaseService, ServiceResult
from enrollments.models import Enrollment
from payments.exceptions import EnrollmentConflictError

if TYPE_CHECKING:
    import uuid

    from authentication.models import User


@dataclass
class GrantResult:
    """
    Outcome of an enrollment grant.

    Attributes:
        enrollment: The (new or existing) enrollment
        created: False when the user was already enrolled
    """

    enrollment: Enrollment
    created: bool


class EnrollmentGranter(BaseService):
    """
    Idempotent creator of course-access records.

    Not exposed over the network; called by the order ledger, the
    pending-enrollment retry task and the free enrollment service.
    """

    @classmethod
    def grant(
        cls,
        user_id: int,
        course_id: uuid.UUID | str,
        order_id: uuid.UUID | str | None = None,
    ) -> GrantResult:
        """
        Ensure the user is enrolled in the course.

        The insert runs in its own savepoint and relies on the
        (user, course) unique constraint; a concurrent insert that wins
        the race turns into a lookup of the row it created.

        Args:
            user_id: User to enroll
            course_id: Course to enroll in
            order_id: PaymentOrder that paid for access, if any

        Returns:
            GrantResult with the enrollment and whether it was created
        """
        logger = cls.get_logger()

        enrollment = Enrollment.objects.filter(user_id=user_id, course_id=course_id).first()
        created = False
        if enrollment is None:
            try:
                enrollment = cls._insert(user_id, course_id, order_id)
                created = True
            except EnrollmentConflictError:
                enrollment = Enrollment.objects.get(user_id=user_id, course_id=course_id)

        if order_id is not None:
            cls._clear_enrollment_pending(order_id)

        logger.info(
            "Enrollment granted" if created else "Enrollment already existed",
            extra={
                "user_id": user_id,
                "course_id": str(course_id),
                "payment_order_id": str(order_id) if order_id else None,
                "enrollment_id": str(enrollment.id),
            },
        )
        return GrantResult(enrollment=enrollment, created=created)

    @classmethod
    def _insert(cls, user_id, course_id, order_id) -> Enrollment:
        try:
            with transaction.atomic():
                return Enrollment.objects.create(
                    user_id=user_id,
                    course_id=course_id,
                    payment_order_id=order_id,
                )
        except IntegrityError as e:
            if not Enrollment.objects.filter(user_id=user_id, course_id=course_id).exists():
                raise
            raise EnrollmentConflictError(
                "User is already enrolled in this course",
                details={"user_id": user_id, "course_id": str(course_id)},
            ) from e

    @staticmethod
    def _clear_enrollment_pending(order_id) -> None:
        from payments.models import PaymentOrder

        PaymentOrder.objects.filter(pk=order_id, enrollment_pending=True).update(
            enrollment_pending=False,
            version=F("version") + 1,
            updated_at=timezone.now(),
        )

    @staticmethod
    def is_enrolled(user_id: int, course_id: uuid.UUID | str) -> bool:
        return Enrollment.objects.filter(user_id=user_id, course_id=course_id).exists()


class FreeEnrollmentService(BaseService):
    """Direct enrollment for courses priced at zero, bypassing PaymentOrder."""

    @classmethod
    def enroll(cls, user: User, course_id: uuid.UUID | str) -> ServiceResult[GrantResult]:
        """
        Enroll a user in a free course.

        Returns:
            ServiceResult with GrantResult on success; failure codes
            COURSE_NOT_FOUND (missing or unpublished) and
            PAYMENT_REQUIRED (course has a price)
        """
        try:
            course = CatalogService.get_course(course_id)
        except CourseNotFoundError as e:
            return ServiceResult.from_exception(e)

        if not course.is_free:
            cls.get_logger().info(
                "Free enrollment refused for paid course",
                extra={"user_id": user.id, "course_id": str(course.id)},
            )
            return ServiceResult.failure(
                "This course requires payment",
                error_code="PAYMENT_REQUIRED",
            )

        return ServiceResult.success(EnrollmentGranter.grant(user.id, course.id))
