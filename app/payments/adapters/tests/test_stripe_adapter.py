"""
Tests for Stripe adapter.

Tests cover:
- PaymentIntent creation for a payment order
- Status query mapping
- Webhook signature verification and event parsing
- Error translation for each Stripe exception type
- Timeout configuration
"""

import json

import pytest
import stripe

from payments.adapters import StripeAdapter
from payments.adapters.stripe_adapter import EVENT_STATUS_MAP, INTENT_STATUS_MAP
from payments.exceptions import (
    CardDeclinedError,
    GatewayRateLimitError,
    GatewayRejectedError,
    GatewayUnavailableError,
    SignatureInvalidError,
)
from payments.state_machines import PaymentOrderState
from payments.tests.signing import stripe_event, stripe_signature

S = PaymentOrderState

WEBHOOK_SECRET = "whsec_adapter_test"


# =============================================================================
# create_checkout Tests
# =============================================================================


@pytest.mark.django_db
class TestCreateCheckout:
    """Tests for StripeAdapter.create_checkout."""

    def test_creates_payment_intent(self, pending_order, mock_stripe_payment_intent):
        session = StripeAdapter.create_checkout(pending_order)

        assert session.external_reference == "pi_test123456"
        assert session.client_secret == "pi_test123456_secret_abc123"
        assert session.checkout_url is None
        assert session.raw_response["object"] == "payment_intent"

    def test_sends_order_amount_and_metadata(self, pending_order, mock_stripe_payment_intent):
        StripeAdapter.create_checkout(pending_order)

        kwargs = mock_stripe_payment_intent.create.call_args.kwargs["params"]
        assert kwargs["amount"] == pending_order.amount_cents
        assert kwargs["currency"] == pending_order.currency
        assert kwargs["metadata"] == {
            "payment_order_id": str(pending_order.id),
            "user_id": str(pending_order.user_id),
            "course_id": str(pending_order.course_id),
        }

    def test_idempotency_key_is_stable_per_order(self, pending_order, mock_stripe_payment_intent):
        StripeAdapter.create_checkout(pending_order)
        StripeAdapter.create_checkout(pending_order)

        first, second = mock_stripe_payment_intent.create.call_args_list
        first_key = first.kwargs["options"]["idempotency_key"]
        assert first_key == second.kwargs["options"]["idempotency_key"]
        assert str(pending_order.id) in first_key

    def test_card_declined(self, pending_order, mock_stripe_payment_intent, card_error):
        mock_stripe_payment_intent.create.side_effect = card_error(decline_code="insufficient_funds")

        with pytest.raises(CardDeclinedError) as exc_info:
            StripeAdapter.create_checkout(pending_order)

        assert exc_info.value.provider_code == "insufficient_funds"
        assert exc_info.value.error_code == "CARD_DECLINED"

    def test_invalid_request(self, pending_order, mock_stripe_payment_intent, invalid_request_error):
        mock_stripe_payment_intent.create.side_effect = invalid_request_error

        with pytest.raises(GatewayRejectedError) as exc_info:
            StripeAdapter.create_checkout(pending_order)

        assert exc_info.value.provider_code == "resource_missing"
        assert exc_info.value.is_retryable is False

    def test_rate_limited(self, pending_order, mock_stripe_payment_intent, rate_limit_error):
        mock_stripe_payment_intent.create.side_effect = rate_limit_error

        with pytest.raises(GatewayRateLimitError) as exc_info:
            StripeAdapter.create_checkout(pending_order)

        assert exc_info.value.is_retryable is True

    def test_connection_error(self, pending_order, mock_stripe_payment_intent, api_connection_error):
        mock_stripe_payment_intent.create.side_effect = api_connection_error

        with pytest.raises(GatewayUnavailableError) as exc_info:
            StripeAdapter.create_checkout(pending_order)

        assert exc_info.value.provider_code == "api_connection_error"

    def test_authentication_error(self, pending_order, mock_stripe_payment_intent, authentication_error):
        mock_stripe_payment_intent.create.side_effect = authentication_error

        with pytest.raises(GatewayRejectedError) as exc_info:
            StripeAdapter.create_checkout(pending_order)

        assert exc_info.value.provider_code == "authentication_error"

    def test_api_error(self, pending_order, mock_stripe_payment_intent, api_error):
        mock_stripe_payment_intent.create.side_effect = api_error

        with pytest.raises(GatewayUnavailableError) as exc_info:
            StripeAdapter.create_checkout(pending_order)

        assert exc_info.value.provider_code == "api_error"


# =============================================================================
# query_status Tests
# =============================================================================


class TestQueryStatus:
    """Tests for StripeAdapter.query_status."""

    @pytest.mark.parametrize(
        ("intent_status", "expected"),
        [
            ("requires_payment_method", S.PENDING),
            ("requires_action", S.PENDING),
            ("processing", S.PROCESSING),
            ("succeeded", S.SUCCEEDED),
            ("canceled", S.CANCELLED),
        ],
    )
    def test_maps_intent_status(
        self, mock_stripe_payment_intent, mock_payment_intent, intent_status, expected
    ):
        mock_stripe_payment_intent.retrieve.return_value = mock_payment_intent(status=intent_status)

        assert StripeAdapter.query_status("pi_test123456") == expected
        mock_stripe_payment_intent.retrieve.assert_called_once_with("pi_test123456")

    def test_unknown_status_is_none(self, mock_stripe_payment_intent, mock_payment_intent):
        mock_stripe_payment_intent.retrieve.return_value = mock_payment_intent(status="mystery")

        assert StripeAdapter.query_status("pi_test123456") is None

    def test_connection_error(self, mock_stripe_payment_intent, api_connection_error):
        mock_stripe_payment_intent.retrieve.side_effect = api_connection_error

        with pytest.raises(GatewayUnavailableError):
            StripeAdapter.query_status("pi_test123456")

    def test_uses_status_query_timeout(self, settings, mock_stripe_client, mock_stripe_payment_intent):
        settings.PAYMENT_STATUS_QUERY_TIMEOUT_SECONDS = 3
        settings.STRIPE_SECRET_KEY = "sk_test_123"

        StripeAdapter.query_status("pi_test123456")

        args, kwargs = mock_stripe_client.call_args
        assert args == ("sk_test_123",)
        assert kwargs["http_client"]._timeout == 3

    def test_status_query_leaves_global_client_alone(self, settings, mock_stripe_payment_intent):
        settings.PAYMENT_STATUS_QUERY_TIMEOUT_SECONDS = 3
        before = stripe.default_http_client

        StripeAdapter.query_status("pi_test123456")

        assert stripe.default_http_client is before

    def test_every_intent_status_maps_to_known_state(self):
        assert set(INTENT_STATUS_MAP.values()) <= set(S.values)


# =============================================================================
# Webhook Tests
# =============================================================================


class TestVerifyWebhook:
    """Tests for StripeAdapter.verify_webhook."""

    @pytest.fixture(autouse=True)
    def webhook_secret(self, settings):
        settings.STRIPE_WEBHOOK_SECRET = WEBHOOK_SECRET

    def _signed(self, event_type="payment_intent.succeeded", intent_id="pi_abc"):
        body = json.dumps(stripe_event(event_type, intent_id))
        return body.encode(), {"Stripe-Signature": stripe_signature(body, WEBHOOK_SECRET)}

    def test_valid_signature(self):
        body, headers = self._signed()

        event = StripeAdapter.verify_webhook(body, headers)

        assert event.gateway == "stripe"
        assert event.event_type == "payment_intent.succeeded"
        assert event.external_reference == "pi_abc"
        assert event.declared_status == S.SUCCEEDED
        assert event.provider_event_id.startswith("evt_")

    def test_missing_header(self):
        body, _ = self._signed()

        with pytest.raises(SignatureInvalidError, match="Missing"):
            StripeAdapter.verify_webhook(body, {})

    def test_wrong_secret(self):
        body = json.dumps(stripe_event("payment_intent.succeeded", "pi_abc"))
        headers = {"Stripe-Signature": stripe_signature(body, "whsec_other")}

        with pytest.raises(SignatureInvalidError):
            StripeAdapter.verify_webhook(body.encode(), headers)

    def test_tampered_body(self):
        body, headers = self._signed()
        tampered = body.replace(b"pi_abc", b"pi_xyz")

        with pytest.raises(SignatureInvalidError):
            StripeAdapter.verify_webhook(tampered, headers)


class TestParseEvent:
    @pytest.mark.parametrize(("event_type", "expected"), list(EVENT_STATUS_MAP.items()))
    def test_intent_events(self, event_type, expected):
        event = StripeAdapter.parse_event(stripe_event(event_type, "pi_abc"))

        assert event.declared_status == expected
        assert event.external_reference == "pi_abc"
        assert event.provider_object_id == "pi_abc"

    def test_untracked_intent_event(self):
        event = StripeAdapter.parse_event(stripe_event("payment_intent.created", "pi_abc"))

        assert event.declared_status is None
        assert event.external_reference == "pi_abc"

    def test_non_intent_event_has_no_reference(self):
        payload = {
            "id": "evt_1",
            "type": "charge.refunded",
            "data": {"object": {"id": "ch_1", "object": "charge"}},
        }

        event = StripeAdapter.parse_event(payload)

        assert event.external_reference is None
        assert event.declared_status is None
        assert event.provider_object_id == "ch_1"

    def test_resolve_event_is_passthrough(self):
        event = StripeAdapter.parse_event(stripe_event("payment_intent.succeeded", "pi_abc"))

        assert StripeAdapter.resolve_event(event) is event
