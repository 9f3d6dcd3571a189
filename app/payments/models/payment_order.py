"""
PaymentOrder model: the ledger row for one checkout attempt.

A PaymentOrder is created when a user starts checkout for a paid course
and only ever moves forward. Once terminal it is immutable. Every writer
(webhook processor, status poller, sweeper, manual confirmation) goes
through payments.services.order_ledger.OrderLedger, never through the
transition methods directly.

Usage:
    from payments.models import PaymentOrder
    from payments.state_machines import PaymentGateway

    order = PaymentOrder.objects.create(
        user=user,
        course=course,
        gateway=PaymentGateway.STRIPE,
        amount_cents=course.price_cents,
        currency=course.currency,
    )

    # State transitions using django-fsm
    order.mark_processing()  # pending -> processing
    order.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedModelMixin
from core.models import BaseModel
from payments.state_machines import (
    PaymentGateway,
    PaymentOrderState,
    PublicPaymentStatus,
)


class PaymentOrderQuerySet(models.QuerySet):
    """Common PaymentOrder filters."""

    def open(self):
        """Orders still awaiting a provider outcome."""
        return self.filter(status__in=PaymentOrderState.open())

    def for_user_course(self, user_id, course_id):
        return self.filter(user_id=user_id, course_id=course_id)


class PaymentOrder(UUIDPrimaryKeyMixin, VersionedModelMixin, BaseModel):
    """
    Tracks a single payment attempt for a (user, course) pair.

    Uses django-fsm for state machine management and optimistic
    locking via the version field for concurrency control.

    State Flow:
        PENDING -> PROCESSING -> SUCCEEDED
        PENDING -> PROCESSING -> FAILED
        PENDING -> PROCESSING -> EXPIRED

    Cancellation Flow:
        PENDING -> CANCELLED

    Fields:
        user: User paying for the course
        course: Course being purchased
        gateway: Provider handling this attempt
        external_reference: Provider-side id (PaymentIntent id, order_<uuid>)
        amount_cents: Amount in smallest currency unit
        currency: ISO 4217 currency code
        status: Current FSM state
        raw_last_event: Last provider payload applied (audit)
        enrollment_pending: Succeeded but enrollment not yet granted
        checkout_url / client_secret: Handle last returned to the client
        *_at timestamps: Track state transition times
        failure_reason: Error details if payment failed
        version: Optimistic locking version

    Constraints:
        - At most one pending/processing order per (user, course)
        - external_reference unique per gateway once assigned

    Note:
        The status field is protected: assign it only through the
        transition methods. Re-read an order with
        PaymentOrder.objects.get() rather than refresh_from_db().
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payment_orders",
        help_text="User paying for the course",
    )

    course = models.ForeignKey(
        "catalog.Course",
        on_delete=models.PROTECT,
        related_name="payment_orders",
        help_text="Course being purchased",
    )

    # ==========================================================================
    # Gateway
    # ==========================================================================

    gateway = models.CharField(
        max_length=20,
        choices=PaymentGateway.choices,
        db_index=True,
        help_text="Payment provider handling this order",
    )

    external_reference = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Provider-side reference (pi_xxx for Stripe, order_<uuid> for Mercado Pago)",
    )

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    amount_cents = models.PositiveIntegerField(
        help_text="Payment amount in smallest currency unit (e.g., centavos)",
    )

    currency = models.CharField(
        max_length=3,
        default="brl",
        help_text="ISO 4217 currency code (lowercase)",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PaymentOrderState.PENDING,
        choices=PaymentOrderState.choices,
        db_index=True,
        protected=True,  # Prevent direct assignment outside transitions
        help_text="Current state of the payment order (managed by FSM)",
    )

    enrollment_pending = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Succeeded but enrollment grant has not completed yet",
    )

    # ==========================================================================
    # Checkout Handle
    # ==========================================================================

    checkout_url = models.URLField(
        max_length=1000,
        blank=True,
        default="",
        help_text="Hosted checkout URL returned to the client",
    )

    client_secret = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Client secret for embedded checkout (Stripe)",
    )

    # ==========================================================================
    # State Timestamps
    # ==========================================================================

    processing_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the provider started processing the payment",
    )

    succeeded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment was confirmed",
    )

    failed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When payment failed",
    )

    cancelled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the order was cancelled",
    )

    expired_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the order expired without an outcome",
    )

    # ==========================================================================
    # Audit & Error Info
    # ==========================================================================

    raw_last_event = models.JSONField(
        default=dict,
        blank=True,
        help_text="Last provider payload applied to this order",
    )

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Detailed reason if payment failed",
    )

    objects = PaymentOrderQuerySet.as_manager()

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment Order"
        verbose_name_plural = "Payment Orders"
        indexes = [
            models.Index(
                fields=["user", "course", "status"],
                name="payment_order_user_course_idx",
            ),
            models.Index(
                fields=["status", "updated_at"],
                name="payment_order_status_upd_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount_cents__gt=0),
                name="payment_order_amount_positive",
            ),
            models.UniqueConstraint(
                fields=["user", "course"],
                condition=models.Q(
                    status__in=[PaymentOrderState.PENDING, PaymentOrderState.PROCESSING]
                ),
                name="payment_order_one_open_per_user_course",
            ),
            models.UniqueConstraint(
                fields=["gateway", "external_reference"],
                condition=models.Q(external_reference__isnull=False),
                name="payment_order_unique_gateway_reference",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with ID, state, and amount."""
        amount_display = f"{self.amount_cents / 100:.2f} {self.currency.upper()}"
        return f"PaymentOrder({self.id}, {self.gateway}, {self.status}, {amount_display})"

    @property
    def is_terminal(self) -> bool:
        return self.status in PaymentOrderState.terminal()

    @property
    def public_status(self) -> PublicPaymentStatus:
        return PublicPaymentStatus.from_order_state(self.status)

    @property
    def uses_redirect_checkout(self) -> bool:
        return self.gateway in PaymentGateway.redirect_only()

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentOrderState.PENDING,
        target=PaymentOrderState.PROCESSING,
    )
    def mark_processing(self):
        """
        Provider has the payment and is working on it.

        Transition: PENDING -> PROCESSING
        """
        self.processing_at = timezone.now()

    @transition(
        field=status,
        source=PaymentOrderState.PROCESSING,
        target=PaymentOrderState.SUCCEEDED,
    )
    def succeed(self):
        """
        Mark payment as confirmed.

        Transition: PROCESSING -> SUCCEEDED

        The caller grants enrollment in the same unit of work.
        """
        self.succeeded_at = timezone.now()

    @transition(
        field=status,
        source=PaymentOrderState.PROCESSING,
        target=PaymentOrderState.FAILED,
    )
    def fail(self, reason: str | None = None):
        """
        Mark payment as failed.

        Transition: PROCESSING -> FAILED

        Args:
            reason: Optional failure reason for debugging
        """
        self.failed_at = timezone.now()
        if reason:
            self.failure_reason = reason

    @transition(
        field=status,
        source=PaymentOrderState.PROCESSING,
        target=PaymentOrderState.EXPIRED,
    )
    def expire(self):
        """
        Give up on an order that never reached an outcome.

        Transition: PROCESSING -> EXPIRED

        The ledger moves a pending order through PROCESSING first, so an
        expired order always carries processing_at.
        """
        self.expired_at = timezone.now()

    @transition(
        field=status,
        source=PaymentOrderState.PENDING,
        target=PaymentOrderState.CANCELLED,
    )
    def cancel(self):
        """
        Cancel the payment order.

        Transition: PENDING -> CANCELLED

        Called when the checkout is abandoned, superseded by a checkout on
        another gateway, or the provider reports cancellation before
        processing started.
        """
        self.cancelled_at = timezone.now()
