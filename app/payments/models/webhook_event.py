"""
WebhookEvent model: append-only audit log of provider notifications.

Every notification received on a webhook endpoint is stored before it
is acknowledged, including those that fail signature verification.
Replays are detected through dedup_key, not through a unique constraint,
so a resend is still recorded.

Usage:
    from payments.models import WebhookEvent
    from payments.state_machines import WebhookOutcome

    event = WebhookEvent.objects.create(
        gateway="stripe",
        provider_event_id="evt_123",
        external_reference="pi_123",
        declared_status="succeeded",
        payload=payload,
    )

    event.mark_processing()
    # ... apply to ledger ...
    event.mark_outcome(WebhookOutcome.APPLIED)
    event.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import PaymentGateway, WebhookOutcome

# Outcomes that leave the event for the deferred drain.
RETRYABLE_OUTCOMES = (WebhookOutcome.RECEIVED, WebhookOutcome.ORPHANED, WebhookOutcome.FAILED)


def build_dedup_key(gateway: str, external_reference: str | None, status: str | None) -> str:
    """Replay key: one applied event per (gateway, reference, status)."""
    return f"{gateway}:{external_reference or ''}:{status or ''}"


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    A provider notification and what processing it did.

    Processing Flow:
        1. Webhook arrives, adapter verifies signature
        2. Row inserted (signature_valid, processed=False, outcome=received)
        3. Endpoint returns 200, processing queued on Celery
        4. Processor resolves reference/status, applies to the ledger
        5. Outcome recorded; orphaned/failed rows are retried by the drain

    Fields:
        gateway: Provider that sent the notification
        external_reference: Order reference on the provider side
        declared_status: Normalized status the event reports
        provider_event_id: Provider's event/notification id
        provider_object_id: Provider object the event is about (pi_xxx, payment id)
        dedup_key: gateway:reference:status replay key
        received_at: When the request arrived
        signature_valid: Result of authenticity verification
        processed: Whether processing reached a final outcome
        outcome: What processing did (applied, duplicate, stale, ...)
        payload: Raw notification body
        retry_count: Number of processing attempts
        error_message: Error details if processing failed

    Note:
        Rows are never deleted.
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    gateway = models.CharField(
        max_length=20,
        choices=PaymentGateway.choices,
        db_index=True,
        help_text="Provider that sent the notification",
    )

    external_reference = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Order reference on the provider side",
    )

    declared_status = models.CharField(
        max_length=20,
        null=True,
        blank=True,
        help_text="Normalized order status reported by the event",
    )

    provider_event_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Provider event id (evt_xxx, notification id)",
    )

    provider_object_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Provider object id (pi_xxx, payment id)",
    )

    event_type = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Provider event type (e.g., 'payment_intent.succeeded')",
    )

    dedup_key = models.CharField(
        max_length=400,
        blank=True,
        default="",
        db_index=True,
        help_text="gateway:reference:status key used to detect replays",
    )

    # ==========================================================================
    # Payload & Verification
    # ==========================================================================

    received_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When the notification arrived",
    )

    signature_valid = models.BooleanField(
        default=False,
        help_text="Whether the signature check passed",
    )

    payload = models.JSONField(
        default=dict,
        blank=True,
        help_text="Raw notification body",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    processed = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether processing reached a final outcome",
    )

    outcome = models.CharField(
        max_length=20,
        choices=WebhookOutcome.choices,
        default=WebhookOutcome.RECEIVED,
        db_index=True,
        help_text="What processing did to the ledger",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When processing reached a final outcome",
    )

    # ==========================================================================
    # Error Handling
    # ==========================================================================

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error message if processing failed",
    )

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-received_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(
                fields=["processed", "signature_valid", "retry_count"],
                name="webhook_event_retry_idx",
            ),
            models.Index(fields=["dedup_key", "outcome"], name="webhook_event_dedup_idx"),
            models.Index(
                fields=["gateway", "external_reference"],
                name="webhook_event_gateway_ref_idx",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with gateway, reference and status."""
        return (
            f"WebhookEvent({self.gateway}, {self.external_reference}, "
            f"{self.declared_status}, {self.outcome})"
        )

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def can_retry(self) -> bool:
        """Check if the drain should pick this event up again."""
        return (
            self.signature_valid
            and not self.processed
            and self.outcome in RETRYABLE_OUTCOMES
            and self.retry_count < settings.WEBHOOK_MAX_RETRIES
        )

    # ==========================================================================
    # Helper Methods
    # ==========================================================================

    def refresh_dedup_key(self) -> None:
        """Recompute dedup_key from the current reference and status."""
        self.dedup_key = build_dedup_key(
            self.gateway, self.external_reference, self.declared_status
        )

    def mark_processing(self) -> None:
        """
        Count a processing attempt.

        Note: Does not save - caller must save after calling.
        """
        self.retry_count += 1

    def mark_outcome(self, outcome: str, error_message: str | None = None) -> None:
        """
        Record what processing did.

        Orphaned and failed outcomes leave processed=False so the drain
        retries them.

        Note: Does not save - caller must save after calling.
        """
        self.outcome = outcome
        self.error_message = error_message
        if outcome in RETRYABLE_OUTCOMES:
            self.processed = False
            return
        self.processed = True
        self.processed_at = timezone.now()
