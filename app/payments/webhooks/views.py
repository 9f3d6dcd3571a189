"""
Webhook endpoint views for the integrated gateways.

Each view:
1. Verifies the notification through the gateway adapter
2. Records a WebhookEvent (rejected ones too, for audit)
3. Queues the event for async processing
4. Returns immediately

Processing never happens inside the request. Once the event row exists
the provider gets a 200, even if queuing fails; the periodic drain
re-queues anything left unprocessed.

Usage:
    # In urls.py
    from payments.webhooks.views import mercadopago_webhook, stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
        path("webhooks/mercadopago/", mercadopago_webhook, name="mercadopago_webhook"),
    ]
"""

from __future__ import annotations

import json
import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.helpers import get_client_ip
from payments.adapters import get_adapter
from payments.exceptions import SignatureInvalidError
from payments.models import WebhookEvent
from payments.state_machines import PaymentGateway, WebhookOutcome

logger = logging.getLogger(__name__)


def _decode_body(raw_body: bytes) -> dict:
    """Best-effort JSON decode for the audit copy of a rejected body."""
    try:
        payload = json.loads(raw_body or b"{}")
    except ValueError:
        return {"raw": raw_body.decode("utf-8", errors="replace")[:10000]}
    return payload if isinstance(payload, dict) else {"raw": payload}


def receive_webhook(request: HttpRequest, gateway: str) -> HttpResponse:
    """
    Verify, record and queue one provider notification.

    Returns:
        HttpResponse with status:
        - 200: Event recorded (processing may be deferred)
        - 401: Signature verification failed
    """
    adapter = get_adapter(gateway)
    raw_body = request.body

    try:
        parsed = adapter.verify_webhook(raw_body, request.headers)
    except SignatureInvalidError as e:
        rejected = WebhookEvent.objects.create(
            gateway=gateway,
            signature_valid=False,
            outcome=WebhookOutcome.REJECTED,
            payload=_decode_body(raw_body),
            error_message=e.message,
        )
        logger.warning(
            "Webhook signature verification failed",
            extra={
                "gateway": gateway,
                "webhook_event_id": str(rejected.id),
                "remote_ip": get_client_ip(request),
                "error": e.message,
            },
        )
        return HttpResponse("Invalid signature", status=401)

    webhook_event = WebhookEvent(
        gateway=gateway,
        external_reference=parsed.external_reference,
        declared_status=parsed.declared_status,
        provider_event_id=parsed.provider_event_id,
        provider_object_id=parsed.provider_object_id,
        event_type=parsed.event_type,
        payload=parsed.payload,
        signature_valid=True,
    )
    webhook_event.refresh_dedup_key()
    webhook_event.save()

    logger.info(
        f"Received {gateway} webhook: {parsed.event_type}",
        extra={
            "gateway": gateway,
            "webhook_event_id": str(webhook_event.id),
            "provider_event_id": parsed.provider_event_id,
            "event_type": parsed.event_type,
            "external_reference": parsed.external_reference,
        },
    )

    try:
        from payments.tasks import process_webhook_event

        process_webhook_event.delay(str(webhook_event.id))
        logger.info(
            "Webhook queued for processing",
            extra={"gateway": gateway, "webhook_event_id": str(webhook_event.id)},
        )
    except Exception as e:
        # The event row is durable; drain_deferred_webhooks picks it up.
        logger.error(
            f"Failed to queue webhook: {type(e).__name__}",
            extra={"gateway": gateway, "webhook_event_id": str(webhook_event.id)},
            exc_info=True,
        )

    return HttpResponse("Accepted", status=200)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive Stripe events.

    Verified with stripe.Webhook.construct_event against the
    Stripe-Signature header (t=<ts>,v1=<sig>).
    """
    return receive_webhook(request, PaymentGateway.STRIPE)


@csrf_exempt
@require_POST
def mercadopago_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive Mercado Pago notifications.

    Verified with HMAC-SHA256 over id:<data.id>;request-id:<x-request-id>;ts:<ts>;
    using MERCADOPAGO_WEBHOOK_SECRET.
    """
    return receive_webhook(request, PaymentGateway.MERCADOPAGO)
