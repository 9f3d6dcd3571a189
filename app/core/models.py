"""
Abstract base model shared by the catalog, enrollment and payment tables.

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class Enrollment(UUIDPrimaryKeyMixin, BaseModel):
        progress = models.PositiveSmallIntegerField(default=0)

List mixins before BaseModel so their fields and Meta come first.
"""

from __future__ import annotations

from django.db import models


class BaseModel(models.Model):
    """
    Row audit timestamps.

    created_at is indexed because the stale-order sweep and the admin
    listings both range-scan on it.
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="When the row was inserted",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the row was last written",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(id={self.pk})"
