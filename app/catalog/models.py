"""
Course model: the catalog boundary seen by the payment and enrollment code.

Only the fields that drive checkout live here (price, currency and the
gateway the course is sold through). Lessons, modules and release-day
visibility belong to the content service and are not modeled.

Usage:
    from catalog.models import Course

    course = Course.objects.get(pk=course_id, is_published=True)
    if course.is_free:
        EnrollmentGranter.grant(user.id, course.id)
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import PaymentGateway


class Course(UUIDPrimaryKeyMixin, BaseModel):
    """
    A purchasable course.

    Fields:
        title: Display title (returned by the external-checkout intake)
        price_cents: Price in smallest currency unit; 0 means free
        currency: ISO 4217 currency code (lowercase)
        payment_gateway: Provider used when the course is paid
        external_checkout_url: Hosted checkout page for redirect gateways
        is_published: Unpublished courses cannot be enrolled in or bought
    """

    title = models.CharField(
        max_length=255,
        help_text="Course title",
    )

    price_cents = models.PositiveIntegerField(
        default=0,
        help_text="Price in smallest currency unit (0 for free courses)",
    )

    currency = models.CharField(
        max_length=3,
        default="brl",
        help_text="ISO 4217 currency code (lowercase)",
    )

    payment_gateway = models.CharField(
        max_length=20,
        choices=PaymentGateway.choices,
        default=PaymentGateway.STRIPE,
        help_text="Payment provider this course is sold through",
    )

    external_checkout_url = models.URLField(
        max_length=500,
        blank=True,
        default="",
        help_text="Hosted checkout URL (Hotmart/Kiwify courses only)",
    )

    is_published = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether the course is visible and purchasable",
    )

    class Meta:
        ordering = ["title"]
        verbose_name = "Course"
        verbose_name_plural = "Courses"

    def __str__(self) -> str:
        return self.title

    @property
    def is_free(self) -> bool:
        return self.price_cents == 0

    @property
    def uses_redirect_checkout(self) -> bool:
        """True when the gateway only hands out an external checkout URL."""
        return self.payment_gateway in PaymentGateway.redirect_only()
