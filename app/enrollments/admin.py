"""
Enrollment admin configuration.

Enrollments are created by EnrollmentGranter only; the admin is for
inspection and progress corrections.
"""

from django.contrib import admin

from enrollments.models import Enrollment


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ["id", "user", "course", "progress", "payment_order", "enrolled_at"]
    list_filter = ["course", "enrolled_at"]
    search_fields = ["user__email", "course__title"]
    readonly_fields = ["id", "user", "course", "payment_order", "enrolled_at", "created_at", "updated_at"]
    ordering = ["-enrolled_at"]

    def has_add_permission(self, request) -> bool:
        return False
