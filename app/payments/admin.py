"""
Payment admin configuration.

Registers the payment ledger, webhook audit log and external-checkout
records with the Django admin. Order state is read-only here; the only
write path is the "Confirm payment manually" action, which goes through
OrderLedger like every other writer.
"""

from django.contrib import admin, messages

from payments.exceptions import (
    DuplicateEventError,
    PaymentValidationError,
    StaleTransitionError,
)
from payments.models import ExternalCheckoutRecord, PaymentOrder, WebhookEvent, mask_tax_id
from payments.services.order_ledger import OrderLedger

__all__ = [
    "ExternalCheckoutRecordAdmin",
    "PaymentOrderAdmin",
    "WebhookEventAdmin",
]


@admin.register(PaymentOrder)
class PaymentOrderAdmin(admin.ModelAdmin):
    """
    Admin configuration for PaymentOrder.

    Provides visibility into payment orders and their states.
    Redirect-gateway orders (Hotmart, Kiwify) are confirmed here once the
    sale shows up in the provider's dashboard.
    """

    list_display = [
        "id",
        "user",
        "course",
        "gateway",
        "amount_display",
        "status",
        "enrollment_pending",
        "created_at",
    ]
    list_filter = ["status", "gateway", "enrollment_pending", "currency", "created_at"]
    search_fields = [
        "id",
        "external_reference",
        "user__email",
        "course__title",
    ]
    readonly_fields = [
        "id",
        "user",
        "course",
        "gateway",
        "status",
        "external_reference",
        "amount_cents",
        "currency",
        "checkout_url",
        "enrollment_pending",
        "raw_last_event",
        "failure_reason",
        "created_at",
        "updated_at",
        "version",
        "processing_at",
        "succeeded_at",
        "failed_at",
        "cancelled_at",
        "expired_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["confirm_manually"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "user", "course", "status", "enrollment_pending"),
            },
        ),
        (
            "Amount",
            {
                "fields": ("amount_cents", "currency"),
            },
        ),
        (
            "Gateway",
            {
                "fields": ("gateway", "external_reference", "checkout_url"),
            },
        ),
        (
            "State Timestamps",
            {
                "fields": (
                    "processing_at",
                    "succeeded_at",
                    "failed_at",
                    "cancelled_at",
                    "expired_at",
                ),
                "classes": ("collapse",),
            },
        ),
        (
            "Failure Info",
            {
                "fields": ("failure_reason",),
                "classes": ("collapse",),
            },
        ),
        (
            "Audit",
            {
                "fields": ("raw_last_event", "version"),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    def amount_display(self, obj: PaymentOrder) -> str:
        """Display the amount formatted as currency."""
        return f"{obj.amount_cents / 100:.2f} {obj.currency.upper()}"

    amount_display.short_description = "Amount"

    @admin.action(description="Confirm payment manually")
    def confirm_manually(self, request, queryset):
        """Mark pending Hotmart/Kiwify orders as paid and grant enrollment."""
        confirmed = 0
        for order in queryset:
            try:
                OrderLedger.confirm_manually(
                    order.id,
                    source="admin",
                    confirmed_by=request.user.email,
                )
            except PaymentValidationError:
                self.message_user(
                    request,
                    f"Order {order.id} uses {order.get_gateway_display()}; "
                    "only redirect-gateway orders can be confirmed manually.",
                    level=messages.WARNING,
                )
                continue
            except (DuplicateEventError, StaleTransitionError):
                self.message_user(
                    request,
                    f"Order {order.id} is already {order.status}.",
                    level=messages.WARNING,
                )
                continue
            confirmed += 1

        self.message_user(request, f"Confirmed {confirmed} payment(s).")

    def has_add_permission(self, request) -> bool:
        """Orders are only created through checkout."""
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for payment orders (audit trail)."""
        return False


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    The audit log is append-only: no adding, editing or deleting.
    """

    list_display = [
        "id",
        "gateway",
        "event_type",
        "external_reference",
        "declared_status",
        "signature_valid",
        "outcome",
        "retry_count",
        "received_at",
    ]
    list_filter = ["gateway", "outcome", "signature_valid", "processed", "received_at"]
    search_fields = ["id", "external_reference", "provider_event_id", "provider_object_id"]
    date_hierarchy = "received_at"
    ordering = ["-received_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "gateway", "event_type", "signature_valid"),
            },
        ),
        (
            "Reconciliation",
            {
                "fields": (
                    "external_reference",
                    "declared_status",
                    "dedup_key",
                    "provider_event_id",
                    "provider_object_id",
                ),
            },
        ),
        (
            "Processing",
            {
                "fields": ("processed", "outcome", "processed_at", "retry_count"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("received_at", "created_at", "updated_at"),
            },
        ),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for webhook events (audit trail)."""
        return False

    def has_add_permission(self, request) -> bool:
        """Disable adding webhook events through admin."""
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False


@admin.register(ExternalCheckoutRecord)
class ExternalCheckoutRecordAdmin(admin.ModelAdmin):
    """Tax ids captured before redirect checkouts (masked in listings)."""

    list_display = ["id", "user", "course", "masked_tax_id", "captured_at"]
    list_filter = ["course", "captured_at"]
    search_fields = ["user__email", "course__title", "tax_id"]
    readonly_fields = ["id", "user", "course", "captured_at", "created_at", "updated_at"]
    ordering = ["-captured_at"]

    def masked_tax_id(self, obj: ExternalCheckoutRecord) -> str:
        return mask_tax_id(obj.tax_id)

    masked_tax_id.short_description = "CPF"

    def has_add_permission(self, request) -> bool:
        return False
