"""
Enrollment model linking a user to a course they may access.

Usage:
    from enrollments.models import Enrollment

    Enrollment.objects.filter(user=user, course=course).exists()

Note:
    Do not create Enrollment rows directly; use
    enrollments.services.EnrollmentGranter so the (user, course)
    uniqueness and the order bookkeeping stay consistent.
"""

from __future__ import annotations

from django.conf import settings
from django.core.validators import MaxValueValidator
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class Enrollment(UUIDPrimaryKeyMixin, BaseModel):
    """
    Course access for one user.

    Fields:
        user: Enrolled user
        course: Course the user can access
        enrolled_at: When access was granted
        progress: Completion percentage (0-100)
        payment_order: Order that paid for access (null for free courses
            and for external confirmations without an order)

    Constraints:
        At most one enrollment per (user, course).
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="enrollments",
        help_text="Enrolled user",
    )

    course = models.ForeignKey(
        "catalog.Course",
        on_delete=models.PROTECT,
        related_name="enrollments",
        help_text="Course the user has access to",
    )

    enrolled_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When access was granted",
    )

    progress = models.PositiveSmallIntegerField(
        default=0,
        validators=[MaxValueValidator(100)],
        help_text="Completion percentage (0-100)",
    )

    payment_order = models.ForeignKey(
        "payments.PaymentOrder",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="enrollments",
        help_text="Order that paid for this enrollment (null for free courses)",
    )

    class Meta:
        ordering = ["-enrolled_at"]
        verbose_name = "Enrollment"
        verbose_name_plural = "Enrollments"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "course"],
                name="enrollment_unique_user_course",
            ),
            models.CheckConstraint(
                condition=models.Q(progress__lte=100),
                name="enrollment_progress_max_100",
            ),
        ]

    def __str__(self) -> str:
        return f"Enrollment({self.user_id}, {self.course_id}, {self.progress}%)"
