"""
Stale-order sweeper.

No order may stay ambiguous forever. This periodic task closes orders
the providers never resolved:

- processing longer than PAYMENT_PROCESSING_CEILING_MINUTES -> failed
- integrated-gateway pending longer than PAYMENT_PENDING_TTL_HOURS -> expired

Redirect-gateway pending orders are left alone: their confirmation is
out-of-band and may arrive at any time.

Usage:
    # Typically called via celery-beat schedule
    from payments.workers import sweep_stale_orders

    sweep_stale_orders.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from payments.exceptions import (
    DuplicateEventError,
    InvalidStateTransitionError,
    StaleTransitionError,
)
from payments.models import PaymentOrder
from payments.services.order_ledger import OrderLedger
from payments.state_machines import PaymentGateway, PaymentOrderState

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Maximum orders to close per category per run
BATCH_SIZE = 100

PROCESSING_TIMEOUT_REASON = "Payment processing timed out"


def _close(order: PaymentOrder, candidate: str, reason: str | None = None) -> bool:
    try:
        OrderLedger.apply_status(
            order.id,
            candidate,
            source="sweeper",
            event_payload={"source": "sweeper", "previous_status": order.status},
            reason=reason,
        )
    except (DuplicateEventError, StaleTransitionError, InvalidStateTransitionError):
        # Resolved by a webhook or poll since the scan.
        return False
    return True


@shared_task(bind=True)
def sweep_stale_orders(self) -> dict:
    """
    Fail stuck processing orders and expire abandoned pending ones.

    Returns:
        Dict with:
        - failed_count: processing orders moved to failed
        - expired_count: pending orders moved to expired

    Note:
        This task is idempotent. Each order is re-checked under a row
        lock before it is moved.
    """
    now = timezone.now()
    processing_cutoff = now - timedelta(minutes=settings.PAYMENT_PROCESSING_CEILING_MINUTES)
    pending_cutoff = now - timedelta(hours=settings.PAYMENT_PENDING_TTL_HOURS)

    logger.info(
        "Starting stale order sweep",
        extra={
            "processing_cutoff": processing_cutoff.isoformat(),
            "pending_cutoff": pending_cutoff.isoformat(),
        },
    )

    stuck = PaymentOrder.objects.filter(
        status=PaymentOrderState.PROCESSING,
        processing_at__lt=processing_cutoff,
    ).order_by("processing_at")[:BATCH_SIZE]

    failed_count = 0
    for order in stuck:
        if _close(order, PaymentOrderState.FAILED, reason=PROCESSING_TIMEOUT_REASON):
            failed_count += 1
            logger.warning(
                "Stuck processing order failed",
                extra={
                    "payment_order_id": str(order.id),
                    "gateway": order.gateway,
                    "processing_since": order.processing_at.isoformat(),
                },
            )

    abandoned = PaymentOrder.objects.filter(
        status=PaymentOrderState.PENDING,
        gateway__in=PaymentGateway.integrated(),
        created_at__lt=pending_cutoff,
    ).order_by("created_at")[:BATCH_SIZE]

    expired_count = 0
    for order in abandoned:
        if _close(order, PaymentOrderState.EXPIRED):
            expired_count += 1
            logger.info(
                "Abandoned pending order expired",
                extra={"payment_order_id": str(order.id), "gateway": order.gateway},
            )

    logger.info(
        f"Stale order sweep complete: {failed_count} failed, {expired_count} expired",
        extra={"failed_count": failed_count, "expired_count": expired_count},
    )

    return {"failed_count": failed_count, "expired_count": expired_count}
