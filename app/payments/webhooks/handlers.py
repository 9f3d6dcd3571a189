"""
Webhook event processing.

process_event takes a recorded, signature-valid WebhookEvent and
reconciles it against the order ledger:

1. Resolve the event through the adapter (Mercado Pago notifications
   only carry a payment id; the reference and status come from the API)
2. Skip events whose dedup key was already applied (replays)
3. Find the order by (gateway, external_reference); an unknown
   reference is left orphaned for the drain to retry
4. Hand the declared status to OrderLedger.apply_status and record
   what happened as the event's outcome

Usage:
    from payments.webhooks.handlers import process_event

    outcome = process_event(webhook_event.id)  # "applied", "duplicate", ...
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from payments.adapters import ParsedEvent, get_adapter
from payments.exceptions import (
    DuplicateEventError,
    GatewayError,
    InvalidStateTransitionError,
    StaleTransitionError,
)
from payments.models import PaymentOrder, WebhookEvent
from payments.services.order_ledger import OrderLedger
from payments.state_machines import WebhookOutcome

if TYPE_CHECKING:
    import uuid


logger = logging.getLogger(__name__)


def to_parsed_event(webhook_event: WebhookEvent) -> ParsedEvent:
    return ParsedEvent(
        gateway=webhook_event.gateway,
        event_type=webhook_event.event_type,
        external_reference=webhook_event.external_reference,
        declared_status=webhook_event.declared_status,
        provider_event_id=webhook_event.provider_event_id,
        provider_object_id=webhook_event.provider_object_id,
        payload=webhook_event.payload,
    )


def _resolve(webhook_event: WebhookEvent) -> None:
    """
    Fill in reference and status from the provider when missing.

    Raises:
        GatewayError: Provider lookup failed
    """
    if webhook_event.external_reference and webhook_event.declared_status:
        return

    resolved = get_adapter(webhook_event.gateway).resolve_event(to_parsed_event(webhook_event))
    webhook_event.external_reference = resolved.external_reference
    webhook_event.declared_status = resolved.declared_status
    webhook_event.refresh_dedup_key()


def _already_applied(webhook_event: WebhookEvent) -> bool:
    return (
        WebhookEvent.objects.filter(
            dedup_key=webhook_event.dedup_key,
            outcome=WebhookOutcome.APPLIED,
        )
        .exclude(pk=webhook_event.pk)
        .exists()
    )


def process_event(webhook_event_id: uuid.UUID | str) -> str:
    """
    Reconcile one recorded webhook event against its order.

    Args:
        webhook_event_id: WebhookEvent to process

    Returns:
        The WebhookOutcome recorded on the event

    Raises:
        GatewayError: Transient failure resolving against the provider; the
            event is saved as failed first so the drain can pick it up.
            Permanent provider errors are recorded and not raised.
    """
    webhook_event = WebhookEvent.objects.get(pk=webhook_event_id)
    log_context = {
        "webhook_event_id": str(webhook_event.id),
        "gateway": webhook_event.gateway,
        "event_type": webhook_event.event_type,
    }

    if webhook_event.processed:
        logger.info("Webhook event already processed, skipping", extra=log_context)
        return webhook_event.outcome
    if not webhook_event.signature_valid:
        logger.warning("Refusing to process unverified webhook event", extra=log_context)
        return webhook_event.outcome

    webhook_event.mark_processing()

    try:
        _resolve(webhook_event)
    except GatewayError as e:
        webhook_event.mark_outcome(WebhookOutcome.FAILED, error_message=e.message)
        webhook_event.save()
        logger.warning(
            "Webhook resolution failed",
            extra={**log_context, "error_code": e.error_code, "retryable": e.is_retryable},
        )
        if e.is_retryable:
            raise
        return WebhookOutcome.FAILED

    log_context.update(
        {
            "external_reference": webhook_event.external_reference,
            "declared_status": webhook_event.declared_status,
        }
    )

    outcome = _reconcile(webhook_event, log_context)
    webhook_event.mark_outcome(outcome)
    webhook_event.save()

    logger.info(
        "Webhook event processed",
        extra={**log_context, "outcome": outcome, "retry_count": webhook_event.retry_count},
    )
    return outcome


def _reconcile(webhook_event: WebhookEvent, log_context: dict) -> str:
    if not webhook_event.external_reference or not webhook_event.declared_status:
        return WebhookOutcome.IGNORED

    if _already_applied(webhook_event):
        return WebhookOutcome.DUPLICATE

    order = PaymentOrder.objects.filter(
        gateway=webhook_event.gateway,
        external_reference=webhook_event.external_reference,
    ).first()
    if order is None:
        logger.warning("No payment order for webhook reference yet", extra=log_context)
        return WebhookOutcome.ORPHANED

    try:
        OrderLedger.apply_status(
            order.id,
            webhook_event.declared_status,
            source="webhook",
            event_payload=webhook_event.payload,
            reason=f"Provider reported {webhook_event.event_type}",
        )
    except DuplicateEventError:
        return WebhookOutcome.DUPLICATE
    except (StaleTransitionError, InvalidStateTransitionError):
        return WebhookOutcome.STALE

    return WebhookOutcome.APPLIED
