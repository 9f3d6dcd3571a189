"""
State enums for payment models.

This module defines the enums used by payment models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

PaymentOrder States:
    pending → processing → succeeded | failed | expired
    pending → cancelled
    (succeeded, failed, expired and cancelled are terminal)

Gateways:
    stripe, mercadopago  - integrated (checkout + webhook + status query)
    hotmart, kiwify      - redirect only (hosted checkout URL, no callback)

Direct payment methods (Mercado Pago transparent checkout):
    pix, boleto, card

Webhook Outcomes:
    received → applied | duplicate | stale | ignored | orphaned | failed
    rejected (bad signature, never processed)
"""

from __future__ import annotations

import enum

from django.db import models


class PaymentGateway(models.TextChoices):
    """
    Payment providers a course can be sold through.

    The gateway tag on a PaymentOrder selects its adapter
    (see payments.adapters.get_adapter).
    """

    STRIPE = "stripe", "Stripe"
    MERCADOPAGO = "mercadopago", "Mercado Pago"
    HOTMART = "hotmart", "Hotmart"
    KIWIFY = "kiwify", "Kiwify"

    @classmethod
    def integrated(cls) -> frozenset[str]:
        """Gateways offering webhooks and a status-query API."""
        return frozenset({cls.STRIPE, cls.MERCADOPAGO})

    @classmethod
    def redirect_only(cls) -> frozenset[str]:
        """Gateways that only hand the user an external checkout URL."""
        return frozenset({cls.HOTMART, cls.KIWIFY})


class DirectPaymentMethod(models.TextChoices):
    """
    Mercado Pago transparent-checkout methods (paid without leaving the site).

    PIX and boleto are generated server-side and settle asynchronously; a
    card is charged with a token produced by Mercado Pago's browser SDK.
    """

    PIX = "pix", "PIX"
    BOLETO = "boleto", "Boleto"
    CARD = "card", "Credit card"


class PaymentOrderState(models.TextChoices):
    """
    States for the PaymentOrder model lifecycle.

    Terminal states: SUCCEEDED, FAILED, CANCELLED, EXPIRED

    State Flow:
        PENDING → PROCESSING → SUCCEEDED
        PENDING → PROCESSING → FAILED
        PENDING → PROCESSING → EXPIRED
        (an abandoned pending checkout passes through PROCESSING on the way)

    Cancellation Flow:
        PENDING → CANCELLED
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    SUCCEEDED = "succeeded", "Succeeded"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"
    EXPIRED = "expired", "Expired"

    @classmethod
    def terminal(cls) -> frozenset[str]:
        """States no transition may leave."""
        return frozenset({cls.SUCCEEDED, cls.FAILED, cls.CANCELLED, cls.EXPIRED})

    @classmethod
    def open(cls) -> frozenset[str]:
        """Non-terminal states (at most one such order per user and course)."""
        return frozenset({cls.PENDING, cls.PROCESSING})


class PublicPaymentStatus(models.TextChoices):
    """
    Coarse status exposed to the browser by the status endpoint.

    Provider detail never reaches the client; every internal state
    collapses onto one of these three values.
    """

    PENDING = "pending", "Pending"
    SUCCEEDED = "succeeded", "Succeeded"
    FAILED = "failed", "Failed"

    @classmethod
    def from_order_state(cls, state: str) -> PublicPaymentStatus:
        """Collapse a PaymentOrderState onto the public tri-state."""
        if state == PaymentOrderState.SUCCEEDED:
            return cls.SUCCEEDED
        if state in (
            PaymentOrderState.FAILED,
            PaymentOrderState.CANCELLED,
            PaymentOrderState.EXPIRED,
        ):
            return cls.FAILED
        return cls.PENDING


class WebhookOutcome(models.TextChoices):
    """
    What processing a WebhookEvent did to the ledger.

    RECEIVED: Stored, not yet processed
    APPLIED: Moved an order forward
    DUPLICATE: Same status already recorded for this reference
    STALE: Backward or terminal-exit transition, discarded
    IGNORED: Event type or provider status the ledger does not track
    ORPHANED: No order matches the reference yet (retried by the drain)
    FAILED: Processing raised (retried by the drain)
    REJECTED: Signature verification failed
    """

    RECEIVED = "received", "Received"
    APPLIED = "applied", "Applied"
    DUPLICATE = "duplicate", "Duplicate"
    STALE = "stale", "Stale"
    IGNORED = "ignored", "Ignored"
    ORPHANED = "orphaned", "Orphaned"
    FAILED = "failed", "Failed"
    REJECTED = "rejected", "Rejected"


# =============================================================================
# Forward-transition rule
# =============================================================================


class TransitionKind(enum.Enum):
    """Classification of a candidate status against the stored one."""

    FORWARD = "forward"
    DUPLICATE = "duplicate"
    STALE = "stale"


_STATE_RANK = {
    PaymentOrderState.PENDING: 0,
    PaymentOrderState.PROCESSING: 1,
    PaymentOrderState.SUCCEEDED: 2,
    PaymentOrderState.FAILED: 2,
    PaymentOrderState.CANCELLED: 2,
    PaymentOrderState.EXPIRED: 2,
}


def classify_transition(current: str, candidate: str) -> TransitionKind:
    """
    Decide whether moving from ``current`` to ``candidate`` is allowed.

    This is the single rule shared by the webhook processor, the status
    poller, the stale-order sweeper and manual confirmation.

    Args:
        current: Stored PaymentOrderState value
        candidate: Status reported by a provider or an operator

    Returns:
        FORWARD if the move advances the order,
        DUPLICATE if the order is already in that status,
        STALE if the move is backward, leaves a terminal state or names
        a status outside PaymentOrderState

    Example:
        classify_transition("pending", "succeeded")     # FORWARD
        classify_transition("processing", "pending")    # STALE
        classify_transition("succeeded", "failed")      # STALE
        classify_transition("pending", "chargeback")    # STALE
    """
    if current == candidate:
        return TransitionKind.DUPLICATE
    if current in PaymentOrderState.terminal():
        return TransitionKind.STALE
    rank = _STATE_RANK.get(candidate)
    if rank is None:
        return TransitionKind.STALE
    if rank > _STATE_RANK[current]:
        return TransitionKind.FORWARD
    return TransitionKind.STALE
