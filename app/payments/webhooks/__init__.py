"""
Webhook handling for payment provider notifications.

This module provides views and the event processor for Stripe and
Mercado Pago webhooks. Notifications are verified, recorded in the
WebhookEvent audit log, and processed asynchronously via Celery tasks.

Usage:
    # In urls.py
    from payments.webhooks.views import mercadopago_webhook, stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from payments.webhooks.handlers import process_event
from payments.webhooks.views import mercadopago_webhook, stripe_webhook

__all__ = [
    "mercadopago_webhook",
    "process_event",
    "stripe_webhook",
]
