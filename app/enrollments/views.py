"""
DRF views for enrollments app.

Endpoints:
    GET /api/v1/enrollments/ - List the caller's enrollments
    POST /api/v1/enrollments/ - Enroll in a free course

Paid courses go through /api/v1/payments/checkout/ instead; enrollment
for them is granted when the payment succeeds.
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiExample, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from enrollments.models import Enrollment
from enrollments.serializers import EnrollmentSerializer, FreeEnrollmentRequestSerializer
from enrollments.services import FreeEnrollmentService

logger = logging.getLogger(__name__)


ERROR_STATUS = {
    "COURSE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PAYMENT_REQUIRED": status.HTTP_402_PAYMENT_REQUIRED,
}


class EnrollmentListCreateView(APIView):
    """
    List enrollments or enroll in a free course.

    GET /api/v1/enrollments/
    POST /api/v1/enrollments/

    Request body (POST):
        {"course_id": "<uuid>"}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List my enrollments",
        tags=["Enrollments"],
        responses={200: EnrollmentSerializer(many=True)},
    )
    def get(self, request):
        enrollments = (
            Enrollment.objects.filter(user=request.user)
            .select_related("course")
            .order_by("-enrolled_at")
        )
        return Response(EnrollmentSerializer(enrollments, many=True).data)

    @extend_schema(
        summary="Enroll in a free course",
        description=(
            "Grant access to a course priced at zero. No payment order is "
            "created. Paid courses answer 402."
        ),
        tags=["Enrollments"],
        request=FreeEnrollmentRequestSerializer,
        responses={
            201: OpenApiResponse(response=EnrollmentSerializer, description="Enrolled"),
            200: OpenApiResponse(response=EnrollmentSerializer, description="Already enrolled"),
            402: OpenApiResponse(
                description="Course requires payment",
                examples=[
                    OpenApiExample(
                        "Payment Required",
                        value={
                            "error": "This course requires payment",
                            "error_code": "PAYMENT_REQUIRED",
                        },
                    ),
                ],
            ),
            404: OpenApiResponse(description="Course not found"),
        },
    )
    def post(self, request):
        serializer = FreeEnrollmentRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = FreeEnrollmentService.enroll(
            request.user, serializer.validated_data["course_id"]
        )
        if not result.success:
            return Response(
                result.error_body(),
                status=ERROR_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST),
            )

        grant = result.data
        return Response(
            EnrollmentSerializer(grant.enrollment).data,
            status=status.HTTP_201_CREATED if grant.created else status.HTTP_200_OK,
        )
