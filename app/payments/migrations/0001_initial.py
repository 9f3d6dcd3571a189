import uuid

import django.db.models.deletion
import django.utils.timezone
import django_fsm
from django.conf import settings
from django.db import migrations, models


GATEWAY_CHOICES = [
    ("stripe", "Stripe"),
    ("mercadopago", "Mercado Pago"),
    ("hotmart", "Hotmart"),
    ("kiwify", "Kiwify"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentOrder",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "gateway",
                    models.CharField(
                        choices=GATEWAY_CHOICES,
                        db_index=True,
                        help_text="Payment provider handling this order",
                        max_length=20,
                    ),
                ),
                (
                    "external_reference",
                    models.CharField(
                        blank=True,
                        help_text="Provider-side reference (pi_xxx for Stripe, order_<uuid> for Mercado Pago)",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "amount_cents",
                    models.PositiveIntegerField(
                        help_text="Payment amount in smallest currency unit (e.g., centavos)"
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="brl",
                        help_text="ISO 4217 currency code (lowercase)",
                        max_length=3,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("succeeded", "Succeeded"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                            ("expired", "Expired"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the payment order (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "enrollment_pending",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Succeeded but enrollment grant has not completed yet",
                    ),
                ),
                (
                    "checkout_url",
                    models.URLField(
                        blank=True,
                        default="",
                        help_text="Hosted checkout URL returned to the client",
                        max_length=1000,
                    ),
                ),
                (
                    "client_secret",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Client secret for embedded checkout (Stripe)",
                        max_length=255,
                    ),
                ),
                (
                    "processing_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the provider started processing the payment",
                        null=True,
                    ),
                ),
                (
                    "succeeded_at",
                    models.DateTimeField(
                        blank=True, help_text="When the payment was confirmed", null=True
                    ),
                ),
                (
                    "failed_at",
                    models.DateTimeField(
                        blank=True, help_text="When payment failed", null=True
                    ),
                ),
                (
                    "cancelled_at",
                    models.DateTimeField(
                        blank=True, help_text="When the order was cancelled", null=True
                    ),
                ),
                (
                    "expired_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the order expired without an outcome",
                        null=True,
                    ),
                ),
                (
                    "raw_last_event",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Last provider payload applied to this order",
                    ),
                ),
                (
                    "failure_reason",
                    models.TextField(
                        blank=True,
                        help_text="Detailed reason if payment failed",
                        null=True,
                    ),
                ),
                (
                    "course",
                    models.ForeignKey(
                        help_text="Course being purchased",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_orders",
                        to="catalog.course",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User paying for the course",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Order",
                "verbose_name_plural": "Payment Orders",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["user", "course", "status"],
                        name="payment_order_user_course_idx",
                    ),
                    models.Index(
                        fields=["status", "updated_at"],
                        name="payment_order_status_upd_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount_cents__gt", 0)),
                        name="payment_order_amount_positive",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("status__in", ["pending", "processing"])),
                        fields=("user", "course"),
                        name="payment_order_one_open_per_user_course",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("external_reference__isnull", False)),
                        fields=("gateway", "external_reference"),
                        name="payment_order_unique_gateway_reference",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "gateway",
                    models.CharField(
                        choices=GATEWAY_CHOICES,
                        db_index=True,
                        help_text="Provider that sent the notification",
                        max_length=20,
                    ),
                ),
                (
                    "external_reference",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Order reference on the provider side",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "declared_status",
                    models.CharField(
                        blank=True,
                        help_text="Normalized order status reported by the event",
                        max_length=20,
                        null=True,
                    ),
                ),
                (
                    "provider_event_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Provider event id (evt_xxx, notification id)",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "provider_object_id",
                    models.CharField(
                        blank=True,
                        help_text="Provider object id (pi_xxx, payment id)",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Provider event type (e.g., 'payment_intent.succeeded')",
                        max_length=100,
                    ),
                ),
                (
                    "dedup_key",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        default="",
                        help_text="gateway:reference:status key used to detect replays",
                        max_length=400,
                    ),
                ),
                (
                    "received_at",
                    models.DateTimeField(
                        auto_now_add=True, help_text="When the notification arrived"
                    ),
                ),
                (
                    "signature_valid",
                    models.BooleanField(
                        default=False, help_text="Whether the signature check passed"
                    ),
                ),
                (
                    "payload",
                    models.JSONField(
                        blank=True, default=dict, help_text="Raw notification body"
                    ),
                ),
                (
                    "processed",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Whether processing reached a final outcome",
                    ),
                ),
                (
                    "outcome",
                    models.CharField(
                        choices=[
                            ("received", "Received"),
                            ("applied", "Applied"),
                            ("duplicate", "Duplicate"),
                            ("stale", "Stale"),
                            ("ignored", "Ignored"),
                            ("orphaned", "Orphaned"),
                            ("failed", "Failed"),
                            ("rejected", "Rejected"),
                        ],
                        db_index=True,
                        default="received",
                        help_text="What processing did to the ledger",
                        max_length=20,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When processing reached a final outcome",
                        null=True,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True,
                        help_text="Error message if processing failed",
                        null=True,
                    ),
                ),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0, help_text="Number of processing attempts"
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-received_at"],
                "indexes": [
                    models.Index(
                        fields=["processed", "signature_valid", "retry_count"],
                        name="webhook_event_retry_idx",
                    ),
                    models.Index(
                        fields=["dedup_key", "outcome"],
                        name="webhook_event_dedup_idx",
                    ),
                    models.Index(
                        fields=["gateway", "external_reference"],
                        name="webhook_event_gateway_ref_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ExternalCheckoutRecord",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "tax_id",
                    models.CharField(
                        db_index=True,
                        help_text="CPF (11 digits, no punctuation)",
                        max_length=11,
                    ),
                ),
                (
                    "captured_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now,
                        help_text="When the latest tax id submission was received",
                    ),
                ),
                (
                    "course",
                    models.ForeignKey(
                        help_text="Course bought through the external checkout",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="external_checkout_records",
                        to="catalog.course",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User who submitted the tax id",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="external_checkout_records",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "External Checkout Record",
                "verbose_name_plural": "External Checkout Records",
                "ordering": ["-captured_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user", "course"),
                        name="external_checkout_unique_user_course",
                    ),
                ],
            },
        ),
    ]
