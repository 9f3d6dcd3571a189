"""
Celery tasks for payment reconciliation.

This module provides async tasks for:
- Processing recorded webhook events
- Draining events whose processing was deferred
- Retrying enrollment grants that failed after a successful payment

The stale-order sweep lives in payments.workers and is re-exported here
so Celery autodiscovery finds it.

Usage:
    from payments.tasks import process_webhook_event

    # Queue a webhook for async processing
    process_webhook_event.delay(str(webhook_event.id))

    # Periodic tasks (celery-beat, see migration 0002)
    drain_deferred_webhooks.delay()
    retry_pending_enrollments.delay()
"""

from __future__ import annotations

import logging
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.db import DatabaseError

from enrollments.services import EnrollmentGranter
from payments.exceptions import GatewayUnavailableError
from payments.models import PaymentOrder, WebhookEvent
from payments.models.webhook_event import RETRYABLE_OUTCOMES
from payments.state_machines import PaymentOrderState

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

BATCH_SIZE = 100

WEBHOOK_MAX_RETRIES = getattr(settings, "WEBHOOK_MAX_RETRIES", 5)
ENROLLMENT_GRANT_MAX_RETRIES = getattr(settings, "ENROLLMENT_GRANT_MAX_RETRIES", 5)


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(GatewayUnavailableError, DatabaseError),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": WEBHOOK_MAX_RETRIES},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Process a recorded webhook event asynchronously.

    Args:
        webhook_event_id: UUID of the WebhookEvent to process

    Returns:
        Dict with the recorded outcome

    Raises:
        GatewayUnavailableError: Re-raised to trigger Celery retry
    """
    # Import here to avoid circular imports
    from payments.webhooks.handlers import process_event

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    try:
        outcome = process_event(webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    return {"status": outcome, "webhook_event_id": str(webhook_event_id)}


@shared_task
def drain_deferred_webhooks() -> dict:
    """
    Periodic task to re-queue webhook events that are still unprocessed.

    Picks up events that were never queued, were orphaned (order not
    yet persisted when they arrived) or failed, as long as they are
    below the retry ceiling.

    Returns:
        Dict with count of events queued
    """
    deferred = WebhookEvent.objects.filter(
        signature_valid=True,
        processed=False,
        outcome__in=RETRYABLE_OUTCOMES,
        retry_count__lt=WEBHOOK_MAX_RETRIES,
    ).order_by("received_at")[:BATCH_SIZE]

    queued_count = 0
    for webhook in deferred:
        process_webhook_event.delay(str(webhook.id))
        queued_count += 1
        logger.info(
            "Queued deferred webhook",
            extra={
                "webhook_event_id": str(webhook.id),
                "gateway": webhook.gateway,
                "outcome": webhook.outcome,
                "retry_count": webhook.retry_count,
            },
        )

    if queued_count:
        logger.info(
            f"Queued {queued_count} deferred webhooks",
            extra={"queued_count": queued_count},
        )

    return {"queued_count": queued_count}


# =============================================================================
# Enrollment Grant Retry
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(DatabaseError,),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_kwargs={"max_retries": ENROLLMENT_GRANT_MAX_RETRIES},
    acks_late=True,
)
def grant_pending_enrollment(self, payment_order_id: str) -> dict:
    """
    Grant the enrollment a succeeded order is still owed.

    Args:
        payment_order_id: UUID of a succeeded PaymentOrder

    Returns:
        Dict with status: "granted", "already_enrolled", "not_pending"
        or "not_found"
    """
    order = PaymentOrder.objects.filter(pk=payment_order_id).first()
    if order is None:
        logger.warning(
            "PaymentOrder not found for enrollment retry",
            extra={"payment_order_id": str(payment_order_id)},
        )
        return {"status": "not_found", "payment_order_id": str(payment_order_id)}

    if order.status != PaymentOrderState.SUCCEEDED or not order.enrollment_pending:
        return {"status": "not_pending", "payment_order_id": str(order.id)}

    grant = EnrollmentGranter.grant(order.user_id, order.course_id, order.id)
    logger.info(
        "Pending enrollment granted",
        extra={
            "payment_order_id": str(order.id),
            "enrollment_id": str(grant.enrollment.id),
            "attempt": self.request.retries,
        },
    )
    return {
        "status": "granted" if grant.created else "already_enrolled",
        "payment_order_id": str(order.id),
    }


@shared_task
def retry_pending_enrollments() -> dict:
    """
    Periodic task to queue grants for succeeded orders without enrollment.

    Catches orders whose per-order retry task exhausted its attempts.

    Returns:
        Dict with count of orders queued
    """
    pending = PaymentOrder.objects.filter(
        status=PaymentOrderState.SUCCEEDED,
        enrollment_pending=True,
    ).order_by("succeeded_at")[:BATCH_SIZE]

    queued_count = 0
    for order in pending:
        grant_pending_enrollment.delay(str(order.id))
        queued_count += 1

    if queued_count:
        logger.warning(
            f"Queued {queued_count} pending enrollment grants",
            extra={"queued_count": queued_count},
        )

    return {"queued_count": queued_count}


# =============================================================================
# Re-exported Worker Tasks
# =============================================================================
# Defined in payments.workers but re-exported here so Celery autodiscover
# finds them.

from payments.workers import sweep_stale_orders  # noqa: E402, F401
