"""
ExternalCheckoutRecord model: tax id captured before a redirect checkout.

Hotmart and Kiwify never call back into this service, so the tax id (CPF)
the user typed before being redirected is the only way to match a later
out-of-band confirmation to a user. A record is proof of intent, never
proof of payment.

Usage:
    from payments.models import ExternalCheckoutRecord

    ExternalCheckoutRecord.objects.update_or_create(
        user=user,
        course=course,
        defaults={"tax_id": "12345678901", "captured_at": timezone.now()},
    )
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


def mask_tax_id(tax_id: str | None) -> str:
    """Keep only the last four digits for logs and admin listings."""
    if not tax_id:
        return ""
    return f"***{tax_id[-4:]}"


class ExternalCheckoutRecord(UUIDPrimaryKeyMixin, BaseModel):
    """
    Latest tax id a user submitted for a redirect-gateway course.

    Fields:
        user: User who submitted the tax id
        course: Course the user is about to buy externally
        tax_id: CPF, 11 digits, no punctuation
        captured_at: When the latest submission was received

    Constraints:
        One row per (user, course); later submissions overwrite.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="external_checkout_records",
        help_text="User who submitted the tax id",
    )

    course = models.ForeignKey(
        "catalog.Course",
        on_delete=models.CASCADE,
        related_name="external_checkout_records",
        help_text="Course bought through the external checkout",
    )

    tax_id = models.CharField(
        max_length=11,
        db_index=True,
        help_text="CPF (11 digits, no punctuation)",
    )

    captured_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the latest tax id submission was received",
    )

    class Meta:
        ordering = ["-captured_at"]
        verbose_name = "External Checkout Record"
        verbose_name_plural = "External Checkout Records"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "course"],
                name="external_checkout_unique_user_course",
            ),
        ]

    def __str__(self) -> str:
        return f"ExternalCheckoutRecord({self.user_id}, {self.course_id}, {mask_tax_id(self.tax_id)})"
