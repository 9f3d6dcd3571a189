"""
Payment domain models.

This module contains all payment-related models:
- PaymentOrder: Ledger row tracking one checkout attempt's lifecycle
- WebhookEvent: Append-only audit log of provider notifications
- ExternalCheckoutRecord: Tax id captured before a redirect checkout
"""

from payments.models.external_checkout import ExternalCheckoutRecord, mask_tax_id
from payments.models.payment_order import PaymentOrder
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "ExternalCheckoutRecord",
    "PaymentOrder",
    "WebhookEvent",
    "mask_tax_id",
]
