"""
Pytest fixtures for payment tests.

This module provides fixtures for creating payment-related test data.
Fixtures are designed to provide orders in various states for testing
state transitions and reconciliation logic. Shared user and API client
fixtures live in the project conftest.

Usage:
    def test_succeed_payment(processing_order):
        processing_order.succeed()
        processing_order.save()
        assert processing_order.status == PaymentOrderState.SUCCEEDED
"""

import pytest
from rest_framework.test import APIClient

from catalog.tests.factories import CourseFactory
from payments.tests.factories import PaymentOrderFactory


# =============================================================================
# Course Fixtures
# =============================================================================


@pytest.fixture
def stripe_course(db):
    """Create a published Stripe course."""
    return CourseFactory(title="Intro to Watercolor")


@pytest.fixture
def mercadopago_course(db):
    return CourseFactory(mercadopago=True)


@pytest.fixture
def hotmart_course(db):
    """Create a course sold through a Hotmart hosted checkout."""
    return CourseFactory(hotmart=True, title="Hotmart Masterclass")


@pytest.fixture
def free_course(db):
    return CourseFactory(free=True)


# =============================================================================
# External API Fixtures
# =============================================================================


@pytest.fixture
def external_token(settings):
    settings.EXTERNAL_API_TOKEN = "test-external-token"
    return settings.EXTERNAL_API_TOKEN


@pytest.fixture
def external_client(external_token):
    """DRF client presenting the external API token."""
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {external_token}")
    return client


# =============================================================================
# PaymentOrder State Fixtures
# =============================================================================


@pytest.fixture
def pending_order(db, user, stripe_course):
    """Create a pending Stripe order with a PaymentIntent attached."""
    return PaymentOrderFactory(user=user, course=stripe_course)


@pytest.fixture
def processing_order(db, user, stripe_course):
    """Create a processing Stripe order."""
    order = PaymentOrderFactory(user=user, course=stripe_course)
    order.mark_processing()
    order.save()
    return order


@pytest.fixture
def succeeded_order(db, user, stripe_course):
    """Create a succeeded Stripe order (no enrollment)."""
    order = PaymentOrderFactory(user=user, course=stripe_course)
    order.mark_processing()
    order.save()
    order.succeed()
    order.save()
    return order


@pytest.fixture
def mercadopago_order(db, user, mercadopago_course):
    """Create a pending Mercado Pago order."""
    return PaymentOrderFactory(user=user, course=mercadopago_course, mercadopago=True)


@pytest.fixture
def hotmart_order(db, user, hotmart_course):
    """Create a pending Hotmart order."""
    return PaymentOrderFactory(user=user, course=hotmart_course, hotmart=True)


# =============================================================================
# Webhook Fixtures
# =============================================================================


@pytest.fixture
def webhook_secrets(settings):
    """Configure provider webhook secrets used to sign test payloads."""
    settings.STRIPE_WEBHOOK_SECRET = "whsec_test_secret"
    settings.MERCADOPAGO_WEBHOOK_SECRET = "mp_test_secret"
    settings.MERCADOPAGO_ACCESS_TOKEN = "TEST-mp-access-token"
    return settings
