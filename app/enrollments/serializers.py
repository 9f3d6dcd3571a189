"""
Serializers for enrollments app.
"""

from __future__ import annotations

from rest_framework import serializers

from enrollments.models import Enrollment


class FreeEnrollmentRequestSerializer(serializers.Serializer):
    """Request body for enrolling in a free course."""

    course_id = serializers.UUIDField(help_text="Free course to enroll in")


class EnrollmentSerializer(serializers.ModelSerializer):
    """Read-only representation of a course enrollment."""

    course_title = serializers.CharField(source="course.title", read_only=True)

    class Meta:
        model = Enrollment
        fields = [
            "id",
            "course",
            "course_title",
            "enrolled_at",
            "progress",
            "payment_order",
        ]
        read_only_fields = fields
