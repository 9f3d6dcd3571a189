from django.contrib import admin

from catalog.models import Course


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = (
        "title",
        "price_cents",
        "currency",
        "payment_gateway",
        "is_published",
        "created_at",
    )
    list_filter = ("payment_gateway", "is_published")
    search_fields = ("title",)
    readonly_fields = ("id", "created_at", "updated_at")
