"""
Stripe API adapter for course checkout.

Encapsulates every Stripe interaction behind the GatewayAdapter contract
so errors, timeouts, idempotency and logging are handled in one place.

Features:
- Configurable timeouts on all API calls
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Idempotency support for safe retries
- Thread-safe for use from Celery workers

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- PAYMENT_STATUS_QUERY_TIMEOUT_SECONDS: Timeout for status polling

Usage:
    from payments.adapters import StripeAdapter

    session = StripeAdapter.create_checkout(order)
    session.client_secret       # handed to Stripe.js
    session.external_reference  # pi_xxx

    StripeAdapter.query_status("pi_xxx")  # "succeeded"
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import stripe
from django.conf import settings

from payments.adapters.base import (
    CheckoutSession,
    GatewayAdapter,
    IdempotencyKeyGenerator,
    ParsedEvent,
    get_header,
)
from payments.exceptions import (
    CardDeclinedError,
    GatewayRateLimitError,
    GatewayRejectedError,
    GatewayUnavailableError,
    SignatureInvalidError,
)
from payments.state_machines import PaymentGateway, PaymentOrderState

if TYPE_CHECKING:
    from payments.models import PaymentOrder


# Webhook event type -> order status. Other event types are recorded and ignored.
EVENT_STATUS_MAP: dict[str, str] = {
    "payment_intent.processing": PaymentOrderState.PROCESSING,
    "payment_intent.succeeded": PaymentOrderState.SUCCEEDED,
    "payment_intent.payment_failed": PaymentOrderState.FAILED,
    "payment_intent.canceled": PaymentOrderState.CANCELLED,
}

# PaymentIntent.status -> order status
INTENT_STATUS_MAP: dict[str, str] = {
    "requires_payment_method": PaymentOrderState.PENDING,
    "requires_confirmation": PaymentOrderState.PENDING,
    "requires_action": PaymentOrderState.PENDING,
    "requires_capture": PaymentOrderState.PENDING,
    "processing": PaymentOrderState.PROCESSING,
    "succeeded": PaymentOrderState.SUCCEEDED,
    "canceled": PaymentOrderState.CANCELLED,
}


class StripeAdapter(GatewayAdapter):
    """
    Adapter for Stripe PaymentIntents.

    External reference: the PaymentIntent id (pi_xxx).
    Checkout handle: the PaymentIntent client secret.
    """

    gateway = PaymentGateway.STRIPE
    supports_status_query = True

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _client(timeout: float | None = None) -> stripe.StripeClient:
        """
        Build a Stripe client for one call.

        Each call gets its own HTTP client so a status query's short timeout
        never leaks into a checkout running on another thread.
        """
        if timeout is None:
            timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        return stripe.StripeClient(
            settings.STRIPE_SECRET_KEY,
            http_client=stripe.RequestsClient(timeout=timeout),
        )

    # =========================================================================
    # Core Operations
    # =========================================================================

    @classmethod
    def create_checkout(cls, order: PaymentOrder) -> CheckoutSession:
        """
        Create a PaymentIntent for the order.

        The idempotency key is derived from the order id, so a retry after
        a timeout returns the intent created by the first attempt.

        Raises:
            CardDeclinedError: Card was declined
            GatewayRejectedError: Invalid parameters or authentication failure
            GatewayUnavailableError: Stripe unreachable or erroring
        """
        client = cls._client()
        logger = cls.get_logger()

        idempotency_key = IdempotencyKeyGenerator.generate(
            operation="create_checkout",
            entity_id=order.id,
        )
        log_context = {
            "operation": "create_payment_intent",
            "payment_order_id": str(order.id),
            "amount_cents": order.amount_cents,
            "currency": order.currency,
            "idempotency_key": idempotency_key,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            intent = client.payment_intents.create(
                params={
                    "amount": order.amount_cents,
                    "currency": order.currency,
                    "payment_method_types": ["card"],
                    "metadata": {
                        "payment_order_id": str(order.id),
                        "user_id": str(order.user_id),
                        "course_id": str(order.course_id),
                    },
                },
                options={"idempotency_key": idempotency_key},
            )
        except stripe.StripeError as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Stripe operation completed",
            extra={
                **log_context,
                "payment_intent_id": intent.id,
                "status": intent.status,
                "duration_ms": duration_ms,
            },
        )

        return CheckoutSession(
            client_secret=intent.client_secret,
            external_reference=intent.id,
            raw_response=intent.to_dict(),
        )

    @classmethod
    def query_status(cls, external_reference: str) -> str | None:
        """
        Retrieve the PaymentIntent and map its status.

        Uses PAYMENT_STATUS_QUERY_TIMEOUT_SECONDS so a slow Stripe
        response cannot hold up the status endpoint.

        Returns:
            PaymentOrderState value, or None for an unmapped status
        """
        client = cls._client(
            timeout=getattr(settings, "PAYMENT_STATUS_QUERY_TIMEOUT_SECONDS", 5)
        )
        logger = cls.get_logger()

        log_context = {
            "operation": "retrieve_payment_intent",
            "payment_intent_id": external_reference,
        }

        start_time = time.time()
        logger.debug("Starting Stripe operation", extra=log_context)

        try:
            intent = client.payment_intents.retrieve(external_reference)
        except stripe.StripeError as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.debug(
            "Stripe operation completed",
            extra={
                **log_context,
                "status": intent.status,
                "duration_ms": duration_ms,
            },
        )
        return INTENT_STATUS_MAP.get(intent.status)

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook(cls, raw_body: bytes, headers: Mapping[str, str]) -> ParsedEvent:
        """
        Verify the Stripe-Signature header and parse the event.

        Raises:
            SignatureInvalidError: Missing or invalid signature, or a
                body that is not a Stripe event
        """
        signature = get_header(headers, "Stripe-Signature")
        if not signature:
            raise SignatureInvalidError(
                "Missing Stripe-Signature header",
                details={"gateway": cls.gateway},
            )

        try:
            event = stripe.Webhook.construct_event(
                raw_body,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
            )
        except (stripe.SignatureVerificationError, ValueError) as e:
            raise SignatureInvalidError(
                "Invalid webhook signature",
                details={"gateway": cls.gateway, "error": str(e)},
            ) from e

        return cls.parse_event(event.to_dict())

    @classmethod
    def parse_event(cls, payload: dict[str, Any]) -> ParsedEvent:
        """Normalize a verified Stripe event payload."""
        event_type = payload.get("type", "")
        obj = payload.get("data", {}).get("object", {}) or {}
        object_id = obj.get("id")
        is_intent_event = event_type.startswith("payment_intent.")

        return ParsedEvent(
            gateway=cls.gateway,
            event_type=event_type,
            external_reference=object_id if is_intent_event else None,
            declared_status=EVENT_STATUS_MAP.get(event_type),
            provider_event_id=payload.get("id"),
            provider_object_id=object_id,
            payload=payload,
        )

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to domain exceptions.

        Raises:
            CardDeclinedError: Card was declined
            GatewayRejectedError: Invalid request or authentication failure
            GatewayRateLimitError: Rate limited
            GatewayUnavailableError: Network error or Stripe 5xx
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            raise CardDeclinedError(
                str(error.user_message or error),
                gateway=cls.gateway,
                provider_code=decline_code or error.code,
            ) from error

        elif isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            raise GatewayRejectedError(
                str(error),
                gateway=cls.gateway,
                provider_code=error.code,
            ) from error

        elif isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise GatewayRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                gateway=cls.gateway,
                provider_code="rate_limit",
            ) from error

        elif isinstance(error, stripe.APIConnectionError):
            logger.error(
                "Connection error to Stripe",
                extra=log_context,
                exc_info=True,
            )
            raise GatewayUnavailableError(
                "Could not connect to Stripe. Please retry.",
                gateway=cls.gateway,
                provider_code="api_connection_error",
            ) from error

        elif isinstance(error, stripe.AuthenticationError):
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise GatewayRejectedError(
                "Stripe authentication failed",
                gateway=cls.gateway,
                provider_code="authentication_error",
            ) from error

        else:
            logger.error(
                f"Unexpected error from Stripe: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise GatewayUnavailableError(
                "Stripe service error. Please retry.",
                gateway=cls.gateway,
                provider_code="api_error",
            ) from error
