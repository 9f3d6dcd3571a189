"""
Mercado Pago REST adapter for course checkout.

Talks to the Mercado Pago API over requests with a bearer access token.
A checkout is a Checkout Pro preference whose init_point is the hosted
payment page; the order is identified on the provider side by the
preference's external_reference (order_<uuid>).

The transparent checkout (PIX, boleto, tokenized card) creates the payment
directly through /v1/payments with the same external_reference, so
webhooks and status polling treat both flows alike.

Configuration (via settings):
- MERCADOPAGO_ACCESS_TOKEN: API access token
- MERCADOPAGO_WEBHOOK_SECRET: Secret used to sign x-signature
- MERCADOPAGO_API_BASE_URL: API root (default: https://api.mercadopago.com)
- PAYMENT_GATEWAY_TIMEOUT_SECONDS: Timeout for checkout/resolve calls
- PAYMENT_STATUS_QUERY_TIMEOUT_SECONDS: Timeout for status polling
- FRONTEND_URL: Landing pages used as back_urls
- PUBLIC_API_URL: Public root of this service (notification_url)

Webhook Signature:
    x-signature: ts=<ts>,v1=<hex>
    manifest:    id:<data.id>;request-id:<x-request-id>;ts:<ts>;
    v1 == HMAC-SHA256(MERCADOPAGO_WEBHOOK_SECRET, manifest)
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import requests
from django.conf import settings

from payments.adapters.base import (
    CheckoutSession,
    GatewayAdapter,
    IdempotencyKeyGenerator,
    ParsedEvent,
    get_header,
)
from payments.exceptions import (
    GatewayRateLimitError,
    GatewayRejectedError,
    GatewayTimeoutError,
    GatewayUnavailableError,
    PaymentValidationError,
    SignatureInvalidError,
)
from payments.state_machines import DirectPaymentMethod, PaymentGateway, PaymentOrderState

if TYPE_CHECKING:
    from payments.models import PaymentOrder


# Payment.status -> order status. Unlisted statuses (refunded, charged_back) map to None.
PAYMENT_STATUS_MAP: dict[str, str] = {
    "pending": PaymentOrderState.PENDING,
    "in_process": PaymentOrderState.PROCESSING,
    "in_mediation": PaymentOrderState.PROCESSING,
    "approved": PaymentOrderState.SUCCEEDED,
    "authorized": PaymentOrderState.SUCCEEDED,
    "rejected": PaymentOrderState.FAILED,
    "charged_back": PaymentOrderState.FAILED,
    "cancelled": PaymentOrderState.CANCELLED,
}

PAYMENT_TOPICS = ("payment",)

# Transparent-checkout method -> /v1/payments payment_method_id. Cards send
# the brand returned by the browser SDK alongside the token.
DIRECT_PAYMENT_METHOD_IDS: dict[str, str] = {
    DirectPaymentMethod.PIX: "pix",
    DirectPaymentMethod.BOLETO: "bolbradesco",
}


@dataclass
class DirectPayment:
    """
    Payment created through the transparent checkout.

    Attributes:
        payment_id: Mercado Pago payment id
        external_reference: order_<uuid>, shared with Checkout Pro
        status: PaymentOrderState value, None when untracked
        status_detail: Provider detail (pending_waiting_transfer, accredited,
            cc_rejected_insufficient_amount, ...)
        payment_method_id: pix, bolbradesco or the card brand
        qr_code: PIX copy-and-paste code
        qr_code_base64: PIX QR code as a base64 PNG
        ticket_url: Boleto (or PIX) page to show the buyer
        barcode: Boleto digitable line
        raw_response: Provider response (for debugging)
    """

    payment_id: str
    external_reference: str
    status: str | None = None
    status_detail: str = ""
    payment_method_id: str = ""
    qr_code: str | None = None
    qr_code_base64: str | None = None
    ticket_url: str | None = None
    barcode: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


def external_reference_for(order: PaymentOrder) -> str:
    return f"order_{order.id}"


def parse_signature_header(value: str | None) -> tuple[str | None, str | None]:
    """Split 'ts=<ts>,v1=<hex>' into (ts, v1)."""
    if not value:
        return None, None
    parts: dict[str, str] = {}
    for chunk in value.split(","):
        key, _, item = chunk.strip().partition("=")
        if item:
            parts[key.strip()] = item.strip()
    return parts.get("ts"), parts.get("v1")


def build_signature_manifest(data_id: str, request_id: str, ts: str) -> str:
    return f"id:{data_id.lower()};request-id:{request_id};ts:{ts};"


class MercadoPagoAdapter(GatewayAdapter):
    """
    Adapter for Mercado Pago Checkout Pro and the transparent checkout.

    External reference: order_<payment order uuid>.
    Checkout handle: the preference init_point URL, or the boleto/PIX
    ticket URL for a direct payment.
    """

    gateway = PaymentGateway.MERCADOPAGO
    supports_status_query = True

    # =========================================================================
    # HTTP
    # =========================================================================

    @classmethod
    def _url(cls, path: str) -> str:
        base = getattr(settings, "MERCADOPAGO_API_BASE_URL", "https://api.mercadopago.com")
        return f"{base.rstrip('/')}{path}"

    @classmethod
    def _request(
        cls,
        method: str,
        path: str,
        log_context: dict[str, Any],
        timeout: float | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """
        Perform an authenticated API call and translate failures.

        Raises:
            GatewayTimeoutError: No response within the timeout
            GatewayUnavailableError: Network error or 5xx
            GatewayRateLimitError: HTTP 429
            GatewayRejectedError: Any other 4xx
        """
        logger = cls.get_logger()
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {settings.MERCADOPAGO_ACCESS_TOKEN}"

        start_time = time.time()
        try:
            response = requests.request(
                method,
                cls._url(path),
                headers=headers,
                timeout=timeout or cls.timeout(),
                **kwargs,
            )
        except requests.Timeout as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                "Mercado Pago request timed out",
                extra={**log_context, "duration_ms": duration_ms},
            )
            raise GatewayTimeoutError(
                "Mercado Pago did not respond in time. Please retry.",
                gateway=cls.gateway,
                provider_code="timeout",
            ) from e
        except requests.RequestException as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Connection error to Mercado Pago",
                extra={**log_context, "duration_ms": duration_ms},
                exc_info=True,
            )
            raise GatewayUnavailableError(
                "Could not connect to Mercado Pago. Please retry.",
                gateway=cls.gateway,
                provider_code="connection_error",
            ) from e

        duration_ms = (time.time() - start_time) * 1000
        log_context = {
            **log_context,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }

        if response.status_code == 429:
            logger.warning("Rate limited by Mercado Pago", extra=log_context)
            raise GatewayRateLimitError(
                "Mercado Pago rate limit exceeded. Please retry.",
                gateway=cls.gateway,
                provider_code="rate_limit",
            )
        if response.status_code >= 500:
            logger.error("Mercado Pago API error", extra=log_context)
            raise GatewayUnavailableError(
                "Mercado Pago service error. Please retry.",
                gateway=cls.gateway,
                provider_code=str(response.status_code),
            )
        if response.status_code >= 400:
            provider_code = cls._error_code(response)
            logger.error(
                "Request rejected by Mercado Pago",
                extra={**log_context, "provider_code": provider_code},
            )
            raise GatewayRejectedError(
                "Mercado Pago rejected the request",
                gateway=cls.gateway,
                provider_code=provider_code,
            )

        logger.info("Mercado Pago operation completed", extra=log_context)
        return response.json()

    @staticmethod
    def _error_code(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return str(response.status_code)
        return str(body.get("error") or body.get("message") or response.status_code)

    @staticmethod
    def _notification_url() -> str:
        return f"{settings.PUBLIC_API_URL.rstrip('/')}/api/v1/payments/webhooks/mercadopago/"

    @staticmethod
    def _metadata(order: PaymentOrder) -> dict[str, str]:
        return {
            "payment_order_id": str(order.id),
            "user_id": str(order.user_id),
            "course_id": str(order.course_id),
        }

    # =========================================================================
    # Core Operations
    # =========================================================================

    @classmethod
    def create_checkout(cls, order: PaymentOrder) -> CheckoutSession:
        """
        Create a Checkout Pro preference for the order.

        Raises:
            GatewayUnavailableError: Transient failure (order stays pending)
            GatewayRejectedError: Preference refused
        """
        reference = external_reference_for(order)
        frontend_url = settings.FRONTEND_URL.rstrip("/")

        body = {
            "items": [
                {
                    "id": str(order.course_id),
                    "title": order.course.title,
                    "quantity": 1,
                    "currency_id": order.currency.upper(),
                    "unit_price": order.amount_cents / 100,
                }
            ],
            "payer": {"email": order.user.email, "name": order.user.get_full_name()},
            "external_reference": reference,
            "back_urls": {
                "success": f"{frontend_url}/payment/success?course_id={order.course_id}",
                "failure": f"{frontend_url}/payment/failure?course_id={order.course_id}",
                "pending": f"{frontend_url}/payment/pending?course_id={order.course_id}",
            },
            "auto_return": "approved",
            "notification_url": cls._notification_url(),
            "metadata": cls._metadata(order),
        }
        log_context = {
            "operation": "create_preference",
            "payment_order_id": str(order.id),
            "external_reference": reference,
            "amount_cents": order.amount_cents,
        }
        cls.get_logger().info("Starting Mercado Pago operation", extra=log_context)

        preference = cls._request(
            "POST",
            "/checkout/preferences",
            log_context,
            json=body,
            headers={
                "X-Idempotency-Key": IdempotencyKeyGenerator.generate(
                    operation="create_checkout",
                    entity_id=order.id,
                )
            },
        )

        return CheckoutSession(
            checkout_url=preference.get("init_point"),
            external_reference=reference,
            raw_response=preference,
        )

    @classmethod
    def create_direct_payment(
        cls,
        order: PaymentOrder,
        method: str,
        payer_tax_id: str | None = None,
        card_token: str | None = None,
        payment_method_id: str | None = None,
        installments: int = 1,
    ) -> DirectPayment:
        """
        Create a PIX, boleto or card payment without leaving the site.

        Args:
            order: Pending Mercado Pago order
            method: DirectPaymentMethod value
            payer_tax_id: Buyer CPF, required for boleto
            card_token: Token from the browser SDK, required for card
            payment_method_id: Card brand from the browser SDK (visa, master)
            installments: Card installments

        Raises:
            PaymentValidationError: Missing data for the chosen method
            GatewayUnavailableError: Transient failure (order stays pending)
            GatewayRejectedError: Payment refused outright
        """
        reference = external_reference_for(order)

        if method == DirectPaymentMethod.CARD:
            if not (card_token and payment_method_id):
                raise PaymentValidationError(
                    "A card token and payment method are required",
                    error_code="INVALID_PAYMENT_DATA",
                    details={"method": method},
                )
            method_id = payment_method_id
        elif method in DIRECT_PAYMENT_METHOD_IDS:
            method_id = DIRECT_PAYMENT_METHOD_IDS[method]
        else:
            raise PaymentValidationError(
                f"Unsupported payment method: {method}",
                error_code="INVALID_PAYMENT_METHOD",
                details={"method": method},
            )
        if method == DirectPaymentMethod.BOLETO and not payer_tax_id:
            raise PaymentValidationError(
                "A CPF is required for boleto payments",
                error_code="INVALID_PAYMENT_DATA",
                details={"method": method},
            )

        first_name, _, last_name = order.user.get_full_name().partition(" ")
        payer: dict[str, Any] = {
            "email": order.user.email,
            "first_name": first_name,
            "last_name": last_name,
        }
        if payer_tax_id:
            payer["identification"] = {"type": "CPF", "number": payer_tax_id}

        body: dict[str, Any] = {
            "transaction_amount": order.amount_cents / 100,
            "description": order.course.title,
            "payment_method_id": method_id,
            "external_reference": reference,
            "notification_url": cls._notification_url(),
            "payer": payer,
            "metadata": cls._metadata(order),
        }
        if method == DirectPaymentMethod.CARD:
            body["token"] = card_token
            body["installments"] = installments

        log_context = {
            "operation": "create_payment",
            "payment_order_id": str(order.id),
            "external_reference": reference,
            "amount_cents": order.amount_cents,
            "method": method,
        }
        cls.get_logger().info("Starting Mercado Pago operation", extra=log_context)

        payment = cls._request(
            "POST",
            "/v1/payments",
            log_context,
            json=body,
            headers={
                "X-Idempotency-Key": IdempotencyKeyGenerator.generate(
                    operation=f"create_payment_{method}",
                    entity_id=order.id,
                )
            },
        )

        transaction_data = (payment.get("point_of_interaction") or {}).get(
            "transaction_data"
        ) or {}
        details = payment.get("transaction_details") or {}
        barcode = payment.get("barcode") or {}
        return DirectPayment(
            payment_id=str(payment.get("id", "")),
            external_reference=payment.get("external_reference") or reference,
            status=PAYMENT_STATUS_MAP.get(payment.get("status")),
            status_detail=payment.get("status_detail") or "",
            payment_method_id=payment.get("payment_method_id") or method_id,
            qr_code=transaction_data.get("qr_code"),
            qr_code_base64=transaction_data.get("qr_code_base64"),
            ticket_url=details.get("external_resource_url") or transaction_data.get("ticket_url"),
            barcode=barcode.get("content"),
            raw_response=payment,
        )

    @classmethod
    def query_status(cls, external_reference: str) -> str | None:
        """
        Look up the most recent payment for a preference reference.

        Returns:
            PaymentOrderState value; None when no payment exists yet or
            its status is not tracked
        """
        log_context = {
            "operation": "search_payments",
            "external_reference": external_reference,
        }
        result = cls._request(
            "GET",
            "/v1/payments/search",
            log_context,
            timeout=getattr(settings, "PAYMENT_STATUS_QUERY_TIMEOUT_SECONDS", 5),
            params={
                "external_reference": external_reference,
                "sort": "date_created",
                "criteria": "desc",
            },
        )
        payments = result.get("results") or []
        if not payments:
            return None
        return PAYMENT_STATUS_MAP.get(payments[0].get("status"))

    # =========================================================================
    # Webhooks
    # =========================================================================

    @classmethod
    def verify_webhook(cls, raw_body: bytes, headers: Mapping[str, str]) -> ParsedEvent:
        """
        Verify x-signature against the notification and parse it.

        Raises:
            SignatureInvalidError: Missing secret, headers or data.id,
                malformed body, or signature mismatch
        """
        secret = getattr(settings, "MERCADOPAGO_WEBHOOK_SECRET", "")
        ts, received = parse_signature_header(get_header(headers, "x-signature"))
        request_id = get_header(headers, "x-request-id")

        try:
            payload = json.loads(raw_body or b"{}")
        except ValueError as e:
            raise SignatureInvalidError(
                "Malformed webhook body",
                details={"gateway": cls.gateway},
            ) from e
        if not isinstance(payload, dict):
            payload = {}

        data = payload.get("data")
        data_id = data.get("id") if isinstance(data, dict) else None

        if not (secret and ts and received and request_id and data_id):
            raise SignatureInvalidError(
                "Missing webhook signature components",
                details={"gateway": cls.gateway},
            )

        manifest = build_signature_manifest(str(data_id), request_id, ts)
        expected = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
        if not hmac.compare_digest(expected, received):
            raise SignatureInvalidError(
                "Invalid webhook signature",
                details={"gateway": cls.gateway},
            )

        return ParsedEvent(
            gateway=cls.gateway,
            event_type=str(payload.get("type") or payload.get("topic") or ""),
            provider_event_id=str(payload["id"]) if payload.get("id") else None,
            provider_object_id=str(data_id),
            payload=payload,
        )

    @classmethod
    def resolve_event(cls, event: ParsedEvent) -> ParsedEvent:
        """
        Fetch the payment a notification refers to.

        Only payment notifications are resolved; other topics come back
        unchanged with no declared status.
        """
        if event.event_type not in PAYMENT_TOPICS or not event.provider_object_id:
            return event

        log_context = {
            "operation": "get_payment",
            "payment_id": event.provider_object_id,
        }
        payment = cls._request(
            "GET",
            f"/v1/payments/{event.provider_object_id}",
            log_context,
        )
        return event.with_resolution(
            external_reference=payment.get("external_reference"),
            declared_status=PAYMENT_STATUS_MAP.get(payment.get("status")),
        )
