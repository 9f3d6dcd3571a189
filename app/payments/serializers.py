"""
Serializers for payments app.

This module provides serializers for:
- Checkout initiation
- Mercado Pago transparent checkout (PIX, boleto, card token)
- Payment status polling
- External-checkout intake (save-cpf)
- Token-authenticated external enroll/check endpoints

Related files:
    - views.py: API views
    - services/: Business logic

Security:
    - Tax ids are accepted with punctuation and normalized by the service
    - Raw provider payloads are never serialized to clients
"""

from __future__ import annotations

from rest_framework import serializers

from payments.services.external_checkout import normalize_tax_id
from payments.state_machines import DirectPaymentMethod, PaymentGateway, PublicPaymentStatus


# =============================================================================
# Requests
# =============================================================================


class CheckoutRequestSerializer(serializers.Serializer):
    """Request body for starting a checkout."""

    course_id = serializers.UUIDField(help_text="Course to purchase")


class DirectPaymentRequestSerializer(serializers.Serializer):
    """
    Request body for a Mercado Pago transparent-checkout payment.

    boleto needs the buyer's CPF; card needs the token and brand produced
    by Mercado Pago's browser SDK. Card data never reaches this service.
    """

    course_id = serializers.UUIDField(help_text="Course to purchase")
    method = serializers.ChoiceField(choices=DirectPaymentMethod.choices)
    cpf = serializers.CharField(
        max_length=20, required=False, help_text="Buyer CPF (required for boleto)"
    )
    card_token = serializers.CharField(max_length=255, required=False)
    payment_method_id = serializers.CharField(
        max_length=50, required=False, help_text="Card brand (visa, master, ...)"
    )
    installments = serializers.IntegerField(min_value=1, max_value=12, default=1)

    def validate(self, attrs):
        method = attrs["method"]
        if method == DirectPaymentMethod.BOLETO:
            tax_id = normalize_tax_id(attrs.get("cpf"))
            if tax_id is None:
                raise serializers.ValidationError({"cpf": "A valid CPF is required for boleto"})
            attrs["cpf"] = tax_id
        if method == DirectPaymentMethod.CARD:
            missing = [name for name in ("card_token", "payment_method_id") if not attrs.get(name)]
            if missing:
                raise serializers.ValidationError(
                    {name: "Required for card payments" for name in missing}
                )
        return attrs


class TaxIdCourseSerializer(serializers.Serializer):
    """
    Request body carrying a CPF and a course.

    Used by save-cpf, external enroll and check-enrollment. The CPF may
    contain punctuation (123.456.789-01).
    """

    cpf = serializers.CharField(max_length=20, help_text="Brazilian tax id (CPF)")
    course_id = serializers.UUIDField(help_text="Course bought externally")


# =============================================================================
# Responses
# =============================================================================


class CheckoutResponseSerializer(serializers.Serializer):
    """
    Checkout handle returned to the client.

    Stripe returns client_secret (embedded checkout); the other gateways
    return checkout_url (hosted page).
    """

    payment_order_id = serializers.UUIDField(source="order.id")
    gateway = serializers.ChoiceField(choices=PaymentGateway.choices)
    status = serializers.CharField(source="order.public_status")
    checkout_url = serializers.URLField(allow_null=True)
    client_secret = serializers.CharField(allow_null=True)
    reused = serializers.BooleanField()


class DirectPaymentResponseSerializer(serializers.Serializer):
    """PIX code, boleto link or card outcome for a transparent-checkout payment."""

    payment_order_id = serializers.UUIDField(source="order.id")
    method = serializers.ChoiceField(choices=DirectPaymentMethod.choices)
    provider_payment_id = serializers.CharField()
    status = serializers.ChoiceField(choices=PublicPaymentStatus.choices)
    status_detail = serializers.CharField(allow_blank=True)
    qr_code = serializers.CharField(allow_null=True)
    qr_code_base64 = serializers.CharField(allow_null=True)
    ticket_url = serializers.URLField(allow_null=True)
    barcode = serializers.CharField(allow_null=True)


class PaymentStatusSerializer(serializers.Serializer):
    """Tri-state payment status for the polling client."""

    status = serializers.ChoiceField(choices=PublicPaymentStatus.choices)


class SaveTaxIdResponseSerializer(serializers.Serializer):
    course_title = serializers.CharField(source="course.title")
    payment_gateway = serializers.CharField(source="course.payment_gateway")
    checkout_url = serializers.URLField()


class ExternalEnrollResponseSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    enrollment_id = serializers.UUIDField()
    created = serializers.BooleanField()
    payment_order_id = serializers.UUIDField(allow_null=True)


class EnrollmentCheckResponseSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(allow_null=True)
    enrollment = serializers.SerializerMethodField()

    def get_enrollment(self, obj) -> dict:
        return {
            "course_id": obj.course_id,
            "status": "active" if obj.active else "none",
        }


class ErrorResponseSerializer(serializers.Serializer):
    """Error body shared by all payment endpoints."""

    error = serializers.CharField()
    error_code = serializers.CharField()
