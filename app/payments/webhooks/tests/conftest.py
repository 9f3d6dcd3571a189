"""
Pytest fixtures for webhook tests.

Provides fixtures for testing webhook views and handlers: a request
factory, signed provider payloads and recorded WebhookEvent rows.
Order and course fixtures come from the payments conftest.
"""

from unittest.mock import patch

import pytest
from django.test import RequestFactory

from payments.state_machines import PaymentGateway, PaymentOrderState
from payments.tests.factories import WebhookEventFactory
from payments.tests.signing import mercadopago_webhook_request, stripe_webhook_request


@pytest.fixture
def rf():
    """Request factory for creating test requests."""
    return RequestFactory()


@pytest.fixture
def mock_queue():
    """Keep webhook processing out of the view under test."""
    with patch("payments.tasks.process_webhook_event.delay") as mock:
        yield mock


# =============================================================================
# Signed Request Fixtures
# =============================================================================


@pytest.fixture
def signed_stripe_request(rf, webhook_secrets):
    """Build a signed Stripe webhook request."""

    def _create(event_type="payment_intent.succeeded", intent_id="pi_test_webhook_123"):
        body, headers = stripe_webhook_request(
            event_type, intent_id, secret=webhook_secrets.STRIPE_WEBHOOK_SECRET
        )
        return rf.post(
            "/api/v1/payments/webhooks/stripe/",
            data=body,
            content_type="application/json",
            **headers,
        )

    return _create


@pytest.fixture
def signed_mercadopago_request(rf, webhook_secrets):
    """Build a signed Mercado Pago notification request."""

    def _create(payment_id="123456"):
        body, headers = mercadopago_webhook_request(
            payment_id, secret=webhook_secrets.MERCADOPAGO_WEBHOOK_SECRET
        )
        return rf.post(
            "/api/v1/payments/webhooks/mercadopago/",
            data=body,
            content_type="application/json",
            **headers,
        )

    return _create


# =============================================================================
# WebhookEvent Fixtures
# =============================================================================


@pytest.fixture
def succeeded_event(pending_order):
    """Recorded payment_intent.succeeded event for the pending order."""
    return WebhookEventFactory(external_reference=pending_order.external_reference)


@pytest.fixture
def mercadopago_event(db):
    """Recorded Mercado Pago notification still to be resolved."""

    def _create(payment_id="123456"):
        return WebhookEventFactory(
            gateway=PaymentGateway.MERCADOPAGO,
            event_type="payment",
            external_reference=None,
            declared_status=None,
            provider_event_id="987",
            provider_object_id=payment_id,
            payload={"type": "payment", "data": {"id": payment_id}},
        )

    return _create


@pytest.fixture
def stripe_event_for(db):
    """Recorded Stripe event with a given status for a reference."""

    def _create(reference, status=PaymentOrderState.SUCCEEDED, event_type=None):
        event_type = event_type or {
            PaymentOrderState.PROCESSING: "payment_intent.processing",
            PaymentOrderState.SUCCEEDED: "payment_intent.succeeded",
            PaymentOrderState.FAILED: "payment_intent.payment_failed",
            PaymentOrderState.CANCELLED: "payment_intent.canceled",
        }[status]
        return WebhookEventFactory(
            external_reference=reference,
            declared_status=status,
            event_type=event_type,
        )

    return _create
