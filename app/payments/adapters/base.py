"""
Gateway adapter contract and shared helpers.

Every payment provider is reached through a GatewayAdapter subclass so the
ledger, the webhook processor and the status poller never branch on the
provider themselves. Adapters are looked up by the order's gateway tag
through payments.adapters.get_adapter.

Contract:
    create_checkout(order)               -> CheckoutSession
    verify_webhook(raw_body, headers)    -> ParsedEvent (or SignatureInvalidError)
    resolve_event(event)                 -> ParsedEvent with reference/status filled
    query_status(external_reference)     -> normalized PaymentOrderState value or None

Redirect-only gateways implement create_checkout alone; the other
operations raise GatewayOperationNotSupportedError.
"""

from __future__ import annotations

import hashlib
import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from django.conf import settings

from payments.exceptions import GatewayOperationNotSupportedError

if TYPE_CHECKING:
    from payments.models import PaymentOrder


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CheckoutSession:
    """
    Handle returned to the client after starting a checkout.

    Attributes:
        checkout_url: Hosted checkout page (Mercado Pago, Hotmart, Kiwify)
        client_secret: Secret for embedded confirmation (Stripe)
        external_reference: Provider reference mapped back to the order
            (None for redirect gateways)
        raw_response: Provider response (for debugging)
    """

    checkout_url: str | None = None
    client_secret: str | None = None
    external_reference: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class ParsedEvent:
    """
    Provider notification normalized for the ledger.

    Attributes:
        gateway: Provider tag
        event_type: Provider event type (payment_intent.succeeded, payment, ...)
        external_reference: Order reference, when already known
        declared_status: PaymentOrderState value, None when untracked
        provider_event_id: Provider event/notification id
        provider_object_id: Object the event is about (pi_xxx, payment id)
        payload: Raw notification body
    """

    gateway: str
    event_type: str = ""
    external_reference: str | None = None
    declared_status: str | None = None
    provider_event_id: str | None = None
    provider_object_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    def with_resolution(
        self, external_reference: str | None, declared_status: str | None
    ) -> ParsedEvent:
        """Copy with reference and status filled in by the provider API."""
        return replace(
            self,
            external_reference=external_reference,
            declared_status=declared_status,
        )


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for provider API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    The key only depends on its inputs, so retrying a timed-out call for
    the same order returns the provider's original response instead of
    creating a second payment.

    Example:
        key = IdempotencyKeyGenerator.generate(
            operation="create_checkout",
            entity_id=order.id,
        )
        # Result: "create_checkout:550e8400-e29b-41d4-a716-446655440000:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        """
        Generate an idempotency key.

        Args:
            operation: The provider operation (create_checkout, ...)
            entity_id: The domain entity ID (payment order id)
            attempt: Attempt number (default: 1)

        Returns:
            Formatted idempotency key string
        """
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]

        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


def get_header(headers: Mapping[str, str], name: str) -> str | None:
    """Case-insensitive header lookup over a plain mapping."""
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


# =============================================================================
# Adapter Base
# =============================================================================


class GatewayAdapter(ABC):
    """
    Base class for payment provider adapters.

    All methods are classmethods - no instance state is maintained.
    Thread-safe for use from Celery workers.

    Attributes:
        gateway: Provider tag handled by the adapter
        supports_status_query: Whether query_status talks to the provider
    """

    gateway: str = ""
    supports_status_query: bool = False

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def timeout(cls) -> float:
        """Bounded timeout for outbound provider calls, in seconds."""
        return float(getattr(settings, "PAYMENT_GATEWAY_TIMEOUT_SECONDS", 10))

    @classmethod
    @abstractmethod
    def create_checkout(cls, order: PaymentOrder) -> CheckoutSession:
        """
        Start a checkout for a pending order.

        Raises:
            GatewayUnavailableError: Transient provider failure
            GatewayRejectedError: Provider refused the checkout
        """

    @classmethod
    def verify_webhook(cls, raw_body: bytes, headers: Mapping[str, str]) -> ParsedEvent:
        """
        Authenticate and parse a provider notification.

        Raises:
            SignatureInvalidError: Authenticity check failed
        """
        raise cls._not_supported("verify_webhook")

    @classmethod
    def resolve_event(cls, event: ParsedEvent) -> ParsedEvent:
        """Fill in reference and status when the notification only carries an id."""
        return event

    @classmethod
    def query_status(cls, external_reference: str) -> str | None:
        """
        Ask the provider for the current status of a reference.

        Returns:
            PaymentOrderState value, or None when the provider reports
            nothing the ledger tracks
        """
        raise cls._not_supported("query_status")

    @classmethod
    def _not_supported(cls, operation: str) -> GatewayOperationNotSupportedError:
        return GatewayOperationNotSupportedError(
            f"{operation} is not available for {cls.gateway}",
            gateway=cls.gateway,
            details={"operation": operation},
        )
