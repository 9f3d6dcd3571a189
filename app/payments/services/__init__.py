"""
Payment services for checkout, reconciliation and external intake.

This module provides:
- OrderLedger: Single writer of PaymentOrder state
- CheckoutService: Starts or resumes a checkout for a course, or pays a
  Mercado Pago course in place (PIX, boleto, card)
- StatusResolutionService: Answers the client's status poll
- ExternalCheckoutService: Tax id intake and out-of-band confirmation

Usage:
    from payments.services import CheckoutService, StatusResolutionService

    result = CheckoutService.start_checkout(user, course_id)

    result = StatusResolutionService.resolve(user, course_id)
    result.data.status  # "pending" | "succeeded" | "failed"

    # Apply a provider-reported status
    from payments.services import OrderLedger

    OrderLedger.apply_status(order.id, "succeeded", source="webhook")
"""

from payments.services.checkout_service import (
    CheckoutResult,
    CheckoutService,
    DirectPaymentResult,
)
from payments.services.external_checkout import (
    EnrollmentCheckResult,
    ExternalCheckoutService,
    ExternalEnrollmentResult,
    SaveTaxIdResult,
    normalize_tax_id,
)
from payments.services.order_ledger import ApplyResult, OrderLedger
from payments.services.status_resolution import (
    StatusResolution,
    StatusResolutionService,
)

__all__ = [
    "ApplyResult",
    "CheckoutResult",
    "CheckoutService",
    "DirectPaymentResult",
    "EnrollmentCheckResult",
    "ExternalCheckoutService",
    "ExternalEnrollmentResult",
    "OrderLedger",
    "SaveTaxIdResult",
    "StatusResolution",
    "StatusResolutionService",
    "normalize_tax_id",
]
