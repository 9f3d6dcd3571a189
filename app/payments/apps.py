"""
Payments app configuration.

This app provides course payment reconciliation:
- Payment order ledger and state machine
- Gateway adapters (Stripe, Mercado Pago, Hotmart, Kiwify)
- Webhook ingestion and background reconciliation
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
