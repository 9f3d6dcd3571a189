"""
Payment adapters for external providers.

All provider API calls go through these adapters to ensure consistent
error handling, timeouts, idempotency, and observability. Callers pick
the adapter from the order's gateway tag instead of branching on it.

Usage:
    from payments.adapters import get_adapter

    adapter = get_adapter(order.gateway)
    session = adapter.create_checkout(order)

    if adapter.supports_status_query:
        status = adapter.query_status(order.external_reference)
"""

from __future__ import annotations

from payments.adapters.base import (
    CheckoutSession,
    GatewayAdapter,
    IdempotencyKeyGenerator,
    ParsedEvent,
)
from payments.adapters.mercadopago_adapter import DirectPayment, MercadoPagoAdapter
from payments.adapters.redirect_adapter import HotmartAdapter, KiwifyAdapter
from payments.adapters.stripe_adapter import StripeAdapter
from payments.exceptions import PaymentValidationError
from payments.state_machines import PaymentGateway

ADAPTERS: dict[str, type[GatewayAdapter]] = {
    PaymentGateway.STRIPE: StripeAdapter,
    PaymentGateway.MERCADOPAGO: MercadoPagoAdapter,
    PaymentGateway.HOTMART: HotmartAdapter,
    PaymentGateway.KIWIFY: KiwifyAdapter,
}


def get_adapter(gateway: str) -> type[GatewayAdapter]:
    """
    Return the adapter registered for a gateway tag.

    Raises:
        PaymentValidationError: Unknown gateway
    """
    try:
        return ADAPTERS[gateway]
    except KeyError:
        raise PaymentValidationError(
            f"Unknown payment gateway: {gateway}",
            error_code="UNKNOWN_GATEWAY",
            details={"gateway": gateway},
        ) from None


__all__ = [
    "ADAPTERS",
    "CheckoutSession",
    "DirectPayment",
    "GatewayAdapter",
    "HotmartAdapter",
    "IdempotencyKeyGenerator",
    "KiwifyAdapter",
    "MercadoPagoAdapter",
    "ParsedEvent",
    "StripeAdapter",
    "get_adapter",
]
