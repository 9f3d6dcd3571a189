"""
Fixtures for the provider adapter tests.

Stripe calls are intercepted at stripe.StripeClient; responses are real
StripeObjects built with construct_from so attribute access and to_dict()
behave as in production. Mercado Pago calls are intercepted at
requests.request inside the adapter module.
"""

from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import stripe
from stripe import PaymentIntent

# =============================================================================
# Stripe
# =============================================================================


@pytest.fixture
def mock_payment_intent():
    """Factory for PaymentIntent responses."""

    def _create(
        id: str = "pi_test123456",
        status: str = "requires_payment_method",
        amount: int = 19900,
        currency: str = "brl",
        metadata: dict | None = None,
    ) -> PaymentIntent:
        return PaymentIntent.construct_from(
            {
                "id": id,
                "object": "payment_intent",
                "status": status,
                "amount": amount,
                "currency": currency,
                "client_secret": f"{id}_secret_abc123",
                "metadata": metadata or {},
            },
            "sk_test_123",
        )

    return _create


@pytest.fixture
def mock_stripe_client():
    """Patch StripeClient; the class mock records how each client was built."""
    with patch("stripe.StripeClient") as client_class:
        yield client_class


@pytest.fixture
def mock_stripe_payment_intent(mock_stripe_client, mock_payment_intent):
    """The payment_intents service; create/retrieve return a fresh intent."""
    service = mock_stripe_client.return_value.payment_intents
    service.create.return_value = mock_payment_intent()
    service.retrieve.return_value = mock_payment_intent()
    return service


@pytest.fixture
def card_error():
    def _create(decline_code: str | None = "generic_decline") -> stripe.CardError:
        error = stripe.CardError(
            message="Your card was declined.", param=None, code="card_declined"
        )
        error.decline_code = decline_code
        return error

    return _create


STRIPE_ERRORS = {
    "invalid_request_error": lambda: stripe.InvalidRequestError(
        message="No such payment_intent: 'pi_missing'",
        param="intent",
        code="resource_missing",
    ),
    "rate_limit_error": lambda: stripe.RateLimitError(message="Too many requests"),
    "api_connection_error": lambda: stripe.APIConnectionError(message="Could not connect"),
    "api_error": lambda: stripe.APIError(message="Stripe had a problem"),
    "authentication_error": lambda: stripe.AuthenticationError(message="Invalid API Key"),
}


@pytest.fixture
def invalid_request_error():
    return STRIPE_ERRORS["invalid_request_error"]()


@pytest.fixture
def rate_limit_error():
    return STRIPE_ERRORS["rate_limit_error"]()


@pytest.fixture
def api_connection_error():
    return STRIPE_ERRORS["api_connection_error"]()


@pytest.fixture
def api_error():
    return STRIPE_ERRORS["api_error"]()


@pytest.fixture
def authentication_error():
    return STRIPE_ERRORS["authentication_error"]()


# =============================================================================
# Mercado Pago
# =============================================================================


@pytest.fixture
def mp_settings(settings):
    settings.MERCADOPAGO_ACCESS_TOKEN = "TEST-mp-access-token"
    settings.MERCADOPAGO_WEBHOOK_SECRET = "mp_test_secret"
    settings.MERCADOPAGO_API_BASE_URL = "https://api.mercadopago.com"
    settings.FRONTEND_URL = "https://app.example.com"
    settings.PUBLIC_API_URL = "https://api.example.com"
    return settings


@pytest.fixture
def mp_response():
    """Factory for requests.Response stand-ins."""

    def _create(payload: Any = None, status_code: int = 200) -> MagicMock:
        response = MagicMock(status_code=status_code)
        response.json.return_value = payload if payload is not None else {}
        return response

    return _create


@pytest.fixture
def mock_mp_request(mp_settings):
    with patch("payments.adapters.mercadopago_adapter.requests.request") as mock:
        yield mock
