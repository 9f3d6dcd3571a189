"""
DRF views for payments app.

This module provides API views for:
- Checkout initiation
- Mercado Pago transparent checkout (PIX, boleto, card token)
- Payment status polling
- External-checkout intake (save-cpf)
- Token-authenticated out-of-band confirmation

Related files:
    - services/: CheckoutService, StatusResolutionService, ExternalCheckoutService
    - serializers.py: Request/response serializers
    - webhooks/views.py: Provider webhook endpoints
    - urls.py, external_urls.py: URL routing

Endpoints:
    POST /api/v1/payments/checkout/ - Start or resume a checkout
    POST /api/v1/payments/mercadopago/pay/ - PIX, boleto or card payment
    GET /api/v1/payments/status/<course_id>/ - Poll payment status
    POST /api/v1/external/save-cpf/ - Record tax id before redirect checkout
    POST /api/v1/external/enroll/ - Confirm an external purchase (token)
    POST /api/v1/external/check-enrollment/ - Query enrollment (token)

Security:
    - Checkout, direct payment, status and save-cpf require a JWT
    - External enroll/check require EXTERNAL_API_TOKEN
    - Provider error detail is never returned to the browser
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import (
    OpenApiExample,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from payments.authentication import ExternalTokenAuthentication
from payments.serializers import (
    CheckoutRequestSerializer,
    CheckoutResponseSerializer,
    DirectPaymentRequestSerializer,
    DirectPaymentResponseSerializer,
    EnrollmentCheckResponseSerializer,
    ErrorResponseSerializer,
    ExternalEnrollResponseSerializer,
    PaymentStatusSerializer,
    SaveTaxIdResponseSerializer,
    TaxIdCourseSerializer,
)
from payments.services import (
    CheckoutService,
    ExternalCheckoutService,
    StatusResolutionService,
)

logger = logging.getLogger(__name__)


# Service error code -> HTTP status. Unlisted codes are 400.
ERROR_STATUS = {
    "COURSE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PAYMENT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "EXTERNAL_CHECKOUT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "ALREADY_ENROLLED": status.HTTP_409_CONFLICT,
    "PAYMENT_IN_PROGRESS": status.HTTP_409_CONFLICT,
    "TAX_ID_IN_USE": status.HTTP_409_CONFLICT,
    "PAYMENT_REQUIRED": status.HTTP_402_PAYMENT_REQUIRED,
    "GATEWAY_REJECTED": status.HTTP_402_PAYMENT_REQUIRED,
    "CARD_DECLINED": status.HTTP_402_PAYMENT_REQUIRED,
    "GATEWAY_UNAVAILABLE": status.HTTP_503_SERVICE_UNAVAILABLE,
    "GATEWAY_TIMEOUT": status.HTTP_503_SERVICE_UNAVAILABLE,
    "GATEWAY_RATE_LIMITED": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_response(result) -> Response:
    """Translate a failed ServiceResult into an HTTP error response."""
    http_status = ERROR_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST)
    return Response(result.error_body(), status=http_status)


# =============================================================================
# Checkout & Status
# =============================================================================


class CheckoutView(APIView):
    """
    Start a checkout for a paid course.

    POST /api/v1/payments/checkout/

    Request body:
        {"course_id": "<uuid>"}

    Returns:
        Stripe: {"client_secret": "pi_..._secret_...", ...}
        Mercado Pago / Hotmart / Kiwify: {"checkout_url": "https://...", ...}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Start checkout",
        description=(
            "Open (or resume) a pending payment order for the course and return "
            "the provider checkout handle. A pending order on the same gateway is "
            "reused without calling the provider again."
        ),
        tags=["Payments"],
        request=CheckoutRequestSerializer,
        responses={
            200: CheckoutResponseSerializer,
            400: OpenApiResponse(
                response=ErrorResponseSerializer,
                description="Course is free",
            ),
            402: OpenApiResponse(
                response=ErrorResponseSerializer,
                description="Provider rejected the checkout",
            ),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Course not found"),
            409: OpenApiResponse(
                response=ErrorResponseSerializer,
                description="Already enrolled, or a payment is already processing",
            ),
            503: OpenApiResponse(
                response=ErrorResponseSerializer,
                description="Provider temporarily unavailable; retry",
            ),
        },
    )
    def post(self, request):
        serializer = CheckoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = CheckoutService.start_checkout(
            request.user, serializer.validated_data["course_id"]
        )
        if not result.success:
            return error_response(result)

        return Response(CheckoutResponseSerializer(result.data).data)


class MercadoPagoDirectPaymentView(APIView):
    """
    Pay a Mercado Pago course in place with PIX, boleto or a card token.

    POST /api/v1/payments/mercadopago/pay/

    Request body:
        {"course_id": "<uuid>", "method": "pix"}
        {"course_id": "<uuid>", "method": "boleto", "cpf": "123.456.789-01"}
        {"course_id": "<uuid>", "method": "card", "card_token": "...",
         "payment_method_id": "visa", "installments": 1}

    Returns:
        PIX: qr_code and qr_code_base64
        Boleto: ticket_url and barcode
        Card: status (succeeded or failed) and status_detail
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Mercado Pago direct payment",
        description=(
            "Create a PIX, boleto or tokenized card payment for a Mercado Pago "
            "course. PIX and boleto stay pending until the provider webhook "
            "confirms the transfer; a card result is applied immediately."
        ),
        tags=["Payments"],
        request=DirectPaymentRequestSerializer,
        responses={
            200: DirectPaymentResponseSerializer,
            400: OpenApiResponse(
                response=ErrorResponseSerializer,
                description="Invalid method data, free course, or course not sold via Mercado Pago",
            ),
            402: OpenApiResponse(
                response=ErrorResponseSerializer,
                description="Provider rejected the payment",
            ),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Course not found"),
            409: OpenApiResponse(
                response=ErrorResponseSerializer,
                description="Already enrolled, or a payment is already processing",
            ),
            503: OpenApiResponse(
                response=ErrorResponseSerializer,
                description="Provider temporarily unavailable; retry",
            ),
        },
        examples=[
            OpenApiExample(
                "PIX",
                value={"course_id": "3fa85f64-5717-4562-b3fc-2c963f66afa6", "method": "pix"},
                request_only=True,
            ),
        ],
    )
    def post(self, request):
        serializer = DirectPaymentRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = CheckoutService.start_direct_payment(
            request.user,
            data["course_id"],
            data["method"],
            payer_tax_id=data.get("cpf"),
            card_token=data.get("card_token"),
            payment_method_id=data.get("payment_method_id"),
            installments=data["installments"],
        )
        if not result.success:
            return error_response(result)

        return Response(DirectPaymentResponseSerializer(result.data).data)


class PaymentStatusView(APIView):
    """
    Poll the payment status for a course.

    GET /api/v1/payments/status/<course_id>/

    Returns:
        {"status": "pending" | "succeeded" | "failed"}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Payment status",
        description=(
            "Resolve the caller's payment status for a course. Integrated "
            "gateways are queried before answering; redirect gateways report "
            "pending until the purchase is confirmed out of band. Pending is "
            "not a failure."
        ),
        tags=["Payments"],
        responses={
            200: OpenApiResponse(
                response=PaymentStatusSerializer,
                description="Current status",
                examples=[
                    OpenApiExample("Pending", value={"status": "pending"}),
                    OpenApiExample("Succeeded", value={"status": "succeeded"}),
                ],
            ),
            404: OpenApiResponse(
                response=ErrorResponseSerializer,
                description="No payment or enrollment for this course",
            ),
        },
    )
    def get(self, request, course_id):
        result = StatusResolutionService.resolve(request.user, course_id)
        if not result.success:
            return error_response(result)

        return Response(PaymentStatusSerializer(result.data).data)


# =============================================================================
# External Checkout
# =============================================================================


class SaveTaxIdView(APIView):
    """
    Record the user's CPF before redirecting to Hotmart/Kiwify.

    POST /api/v1/external/save-cpf/

    Request body:
        {"cpf": "123.456.789-01", "course_id": "<uuid>"}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Save CPF for external checkout",
        description=(
            "Store the tax id used to match a later out-of-band confirmation and "
            "open the pending order. Does not grant access."
        ),
        tags=["External Checkout"],
        request=TaxIdCourseSerializer,
        responses={
            200: OpenApiResponse(
                response=SaveTaxIdResponseSerializer,
                description="CPF recorded",
                examples=[
                    OpenApiExample(
                        "Success",
                        value={
                            "success": True,
                            "course_title": "Intro to Watercolor",
                            "payment_gateway": "hotmart",
                            "checkout_url": "https://pay.hotmart.com/X123",
                        },
                    ),
                ],
            ),
            400: OpenApiResponse(
                response=ErrorResponseSerializer,
                description="Invalid CPF or course without external checkout",
            ),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Course not found"),
            409: OpenApiResponse(
                response=ErrorResponseSerializer,
                description="CPF already used by another user",
            ),
        },
    )
    def post(self, request):
        serializer = TaxIdCourseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ExternalCheckoutService.save_tax_id(
            request.user,
            serializer.validated_data["cpf"],
            serializer.validated_data["course_id"],
        )
        if not result.success:
            return error_response(result)

        return Response({"success": True, **SaveTaxIdResponseSerializer(result.data).data})


class ExternalEnrollView(APIView):
    """
    Confirm an external purchase for the user behind a CPF.

    POST /api/v1/external/enroll/

    Authorization: Bearer <EXTERNAL_API_TOKEN>
    """

    authentication_classes = [ExternalTokenAuthentication]
    permission_classes = [AllowAny]

    @extend_schema(
        summary="Confirm external purchase",
        description=(
            "Move the pending Hotmart/Kiwify order to succeeded and grant "
            "enrollment. The user is matched through the CPF recorded by save-cpf."
        ),
        tags=["External Checkout"],
        request=TaxIdCourseSerializer,
        responses={
            200: ExternalEnrollResponseSerializer,
            401: OpenApiResponse(description="Invalid token"),
            404: OpenApiResponse(
                response=ErrorResponseSerializer,
                description="No recorded checkout for this CPF and course",
            ),
        },
    )
    def post(self, request):
        serializer = TaxIdCourseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ExternalCheckoutService.confirm_enrollment(
            serializer.validated_data["cpf"],
            serializer.validated_data["course_id"],
        )
        if not result.success:
            return error_response(result)

        return Response({"success": True, **ExternalEnrollResponseSerializer(result.data).data})


class ExternalCheckEnrollmentView(APIView):
    """
    Report whether the user behind a CPF is enrolled in a course.

    POST /api/v1/external/check-enrollment/

    Authorization: Bearer <EXTERNAL_API_TOKEN>
    """

    authentication_classes = [ExternalTokenAuthentication]
    permission_classes = [AllowAny]

    @extend_schema(
        summary="Check external enrollment",
        tags=["External Checkout"],
        request=TaxIdCourseSerializer,
        responses={
            200: OpenApiResponse(
                response=EnrollmentCheckResponseSerializer,
                description="Enrollment state",
                examples=[
                    OpenApiExample(
                        "Active",
                        value={
                            "success": True,
                            "user_id": 42,
                            "enrollment": {"course_id": "<uuid>", "status": "active"},
                        },
                    ),
                ],
            ),
            401: OpenApiResponse(description="Invalid token"),
        },
    )
    def post(self, request):
        serializer = TaxIdCourseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ExternalCheckoutService.check_enrollment(
            serializer.validated_data["cpf"],
            serializer.validated_data["course_id"],
        )
        if not result.success:
            return error_response(result)

        return Response({"success": True, **EnrollmentCheckResponseSerializer(result.data).data})
