"""
Tests for Mercado Pago adapter.

Tests cover:
- Checkout Pro preference creation
- Transparent checkout payments (PIX, boleto, card token)
- HTTP failure translation
- Payment search for status queries
- x-signature verification
- Resolution of payment notifications through the payments API
"""

import json

import pytest
import requests

from payments.adapters import MercadoPagoAdapter, ParsedEvent
from payments.adapters.mercadopago_adapter import (
    build_signature_manifest,
    external_reference_for,
    parse_signature_header,
)
from payments.exceptions import (
    GatewayRateLimitError,
    GatewayRejectedError,
    GatewayTimeoutError,
    GatewayUnavailableError,
    PaymentValidationError,
    SignatureInvalidError,
)
from payments.state_machines import PaymentOrderState
from payments.tests.signing import mercadopago_signature

S = PaymentOrderState


def notification(data_id="123456", topic="payment"):
    return {"id": 987, "action": "payment.updated", "type": topic, "data": {"id": data_id}}


# =============================================================================
# Helper Tests
# =============================================================================


class TestSignatureHelpers:
    def test_parse_signature_header(self):
        assert parse_signature_header("ts=1704908010,v1=abc123") == ("1704908010", "abc123")

    def test_parse_signature_header_with_spaces(self):
        assert parse_signature_header(" ts=1 , v1=ff ") == ("1", "ff")

    def test_parse_missing_header(self):
        assert parse_signature_header(None) == (None, None)
        assert parse_signature_header("garbage") == (None, None)

    def test_manifest_lowercases_data_id(self):
        assert build_signature_manifest("ABC123", "req-1", "1700") == (
            "id:abc123;request-id:req-1;ts:1700;"
        )


# =============================================================================
# create_checkout Tests
# =============================================================================


@pytest.mark.django_db
class TestCreateCheckout:
    def test_creates_preference(self, mercadopago_order, mock_mp_request, mp_response):
        mock_mp_request.return_value = mp_response(
            {"id": "pref-1", "init_point": "https://www.mercadopago.com.br/checkout/v1/redirect?pref_id=pref-1"}
        )

        session = MercadoPagoAdapter.create_checkout(mercadopago_order)

        assert session.checkout_url.endswith("pref_id=pref-1")
        assert session.external_reference == f"order_{mercadopago_order.id}"
        assert session.client_secret is None

    def test_request_body(self, mercadopago_order, mock_mp_request, mp_response):
        mock_mp_request.return_value = mp_response({"init_point": "https://mp.test/1"})

        MercadoPagoAdapter.create_checkout(mercadopago_order)

        method, url = mock_mp_request.call_args.args
        kwargs = mock_mp_request.call_args.kwargs
        body = kwargs["json"]
        assert method == "POST"
        assert url == "https://api.mercadopago.com/checkout/preferences"
        assert kwargs["headers"]["Authorization"] == "Bearer TEST-mp-access-token"
        assert "X-Idempotency-Key" in kwargs["headers"]
        assert kwargs["timeout"] > 0
        assert body["external_reference"] == external_reference_for(mercadopago_order)
        assert body["items"][0]["unit_price"] == mercadopago_order.amount_cents / 100
        assert body["items"][0]["currency_id"] == "BRL"
        assert body["payer"] == {
            "email": mercadopago_order.user.email,
            "name": mercadopago_order.user.full_name,
        }
        assert body["notification_url"] == (
            "https://api.example.com/api/v1/payments/webhooks/mercadopago/"
        )
        assert body["back_urls"]["success"].startswith("https://app.example.com/payment/success")

    def test_server_error(self, mercadopago_order, mock_mp_request, mp_response):
        mock_mp_request.return_value = mp_response({}, status_code=502)

        with pytest.raises(GatewayUnavailableError):
            MercadoPagoAdapter.create_checkout(mercadopago_order)

    def test_rate_limited(self, mercadopago_order, mock_mp_request, mp_response):
        mock_mp_request.return_value = mp_response({}, status_code=429)

        with pytest.raises(GatewayRateLimitError):
            MercadoPagoAdapter.create_checkout(mercadopago_order)

    def test_rejected(self, mercadopago_order, mock_mp_request, mp_response):
        mock_mp_request.return_value = mp_response(
            {"error": "invalid_items", "message": "items invalid"}, status_code=400
        )

        with pytest.raises(GatewayRejectedError) as exc_info:
            MercadoPagoAdapter.create_checkout(mercadopago_order)

        assert exc_info.value.provider_code == "invalid_items"

    def test_timeout(self, mercadopago_order, mock_mp_request):
        mock_mp_request.side_effect = requests.Timeout("read timed out")

        with pytest.raises(GatewayTimeoutError):
            MercadoPagoAdapter.create_checkout(mercadopago_order)

    def test_connection_error(self, mercadopago_order, mock_mp_request):
        mock_mp_request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(GatewayUnavailableError) as exc_info:
            MercadoPagoAdapter.create_checkout(mercadopago_order)

        assert exc_info.value.provider_code == "connection_error"


# =============================================================================
# create_direct_payment Tests
# =============================================================================


def pix_payment(reference, status="pending"):
    return {
        "id": 1325993001,
        "status": status,
        "status_detail": "pending_waiting_transfer",
        "payment_method_id": "pix",
        "external_reference": reference,
        "point_of_interaction": {
            "transaction_data": {
                "qr_code": "00020126580014br.gov.bcb.pix0136abc",
                "qr_code_base64": "iVBORw0KGgoAAAANSUhEUg==",
                "ticket_url": "https://www.mercadopago.com.br/payments/1325993001/ticket",
            }
        },
    }


@pytest.mark.django_db
class TestCreateDirectPayment:
    def test_pix_returns_qr_code(self, mercadopago_order, mock_mp_request, mp_response):
        reference = external_reference_for(mercadopago_order)
        mock_mp_request.return_value = mp_response(pix_payment(reference), status_code=201)

        payment = MercadoPagoAdapter.create_direct_payment(mercadopago_order, "pix")

        assert payment.payment_id == "1325993001"
        assert payment.external_reference == reference
        assert payment.status == S.PENDING
        assert payment.qr_code.startswith("000201")
        assert payment.qr_code_base64 == "iVBORw0KGgoAAAANSUhEUg=="
        assert payment.ticket_url.endswith("/ticket")

    def test_pix_request_body(self, mercadopago_order, mock_mp_request, mp_response):
        mock_mp_request.return_value = mp_response(
            pix_payment(external_reference_for(mercadopago_order))
        )

        MercadoPagoAdapter.create_direct_payment(mercadopago_order, "pix")

        method, url = mock_mp_request.call_args.args
        kwargs = mock_mp_request.call_args.kwargs
        body = kwargs["json"]
        assert method == "POST"
        assert url == "https://api.mercadopago.com/v1/payments"
        assert kwargs["headers"]["X-Idempotency-Key"].startswith("create_payment_pix:")
        assert body["payment_method_id"] == "pix"
        assert body["transaction_amount"] == mercadopago_order.amount_cents / 100
        assert body["external_reference"] == external_reference_for(mercadopago_order)
        assert body["notification_url"] == (
            "https://api.example.com/api/v1/payments/webhooks/mercadopago/"
        )
        first_name, _, last_name = mercadopago_order.user.full_name.partition(" ")
        assert body["payer"] == {
            "email": mercadopago_order.user.email,
            "first_name": first_name,
            "last_name": last_name,
        }
        assert "token" not in body

    def test_boleto_returns_ticket(self, mercadopago_order, mock_mp_request, mp_response):
        mock_mp_request.return_value = mp_response(
            {
                "id": 1325993002,
                "status": "pending",
                "status_detail": "pending_waiting_payment",
                "payment_method_id": "bolbradesco",
                "external_reference": external_reference_for(mercadopago_order),
                "transaction_details": {
                    "external_resource_url": "https://www.mercadopago.com.br/payments/1325993002/ticket"
                },
                "barcode": {"content": "23791234500000199001234567890123456789012345"},
            }
        )

        payment = MercadoPagoAdapter.create_direct_payment(
            mercadopago_order, "boleto", payer_tax_id="12345678901"
        )

        body = mock_mp_request.call_args.kwargs["json"]
        assert body["payment_method_id"] == "bolbradesco"
        assert body["payer"]["identification"] == {"type": "CPF", "number": "12345678901"}
        assert payment.ticket_url.endswith("/1325993002/ticket")
        assert payment.barcode.startswith("2379")
        assert payment.qr_code is None

    def test_boleto_requires_tax_id(self, mercadopago_order, mock_mp_request):
        with pytest.raises(PaymentValidationError) as exc_info:
            MercadoPagoAdapter.create_direct_payment(mercadopago_order, "boleto")

        assert exc_info.value.error_code == "INVALID_PAYMENT_DATA"
        mock_mp_request.assert_not_called()

    @pytest.mark.parametrize(
        ("mp_status", "expected"),
        [("approved", S.SUCCEEDED), ("rejected", S.FAILED), ("in_process", S.PROCESSING)],
    )
    def test_card_payment(self, mercadopago_order, mock_mp_request, mp_response, mp_status, expected):
        mock_mp_request.return_value = mp_response(
            {
                "id": 1325993003,
                "status": mp_status,
                "status_detail": "accredited",
                "payment_method_id": "visa",
                "external_reference": external_reference_for(mercadopago_order),
            }
        )

        payment = MercadoPagoAdapter.create_direct_payment(
            mercadopago_order,
            "card",
            card_token="ff8080814c11e237014c1ff593b57b4d",
            payment_method_id="visa",
            installments=3,
        )

        body = mock_mp_request.call_args.kwargs["json"]
        assert body["token"] == "ff8080814c11e237014c1ff593b57b4d"
        assert body["payment_method_id"] == "visa"
        assert body["installments"] == 3
        assert payment.status == expected
        assert payment.ticket_url is None

    def test_card_requires_token(self, mercadopago_order, mock_mp_request):
        with pytest.raises(PaymentValidationError):
            MercadoPagoAdapter.create_direct_payment(
                mercadopago_order, "card", payment_method_id="visa"
            )

        mock_mp_request.assert_not_called()

    def test_unknown_method(self, mercadopago_order, mock_mp_request):
        with pytest.raises(PaymentValidationError) as exc_info:
            MercadoPagoAdapter.create_direct_payment(mercadopago_order, "crypto")

        assert exc_info.value.error_code == "INVALID_PAYMENT_METHOD"

    def test_rejected_request(self, mercadopago_order, mock_mp_request, mp_response):
        mock_mp_request.return_value = mp_response(
            {"error": "bad_request", "message": "invalid payer"}, status_code=400
        )

        with pytest.raises(GatewayRejectedError):
            MercadoPagoAdapter.create_direct_payment(mercadopago_order, "pix")


# =============================================================================
# query_status Tests
# =============================================================================


class TestQueryStatus:
    @pytest.mark.parametrize(
        ("mp_status", "expected"),
        [
            ("pending", S.PENDING),
            ("in_process", S.PROCESSING),
            ("in_mediation", S.PROCESSING),
            ("approved", S.SUCCEEDED),
            ("authorized", S.SUCCEEDED),
            ("rejected", S.FAILED),
            ("charged_back", S.FAILED),
            ("cancelled", S.CANCELLED),
            ("refunded", None),
        ],
    )
    def test_maps_latest_payment(self, mock_mp_request, mp_response, mp_status, expected):
        mock_mp_request.return_value = mp_response({"results": [{"id": 1, "status": mp_status}]})

        assert MercadoPagoAdapter.query_status("order_abc") == expected

    def test_searches_by_reference_newest_first(self, mock_mp_request, mp_response, settings):
        settings.PAYMENT_STATUS_QUERY_TIMEOUT_SECONDS = 4
        mock_mp_request.return_value = mp_response({"results": []})

        MercadoPagoAdapter.query_status("order_abc")

        method, url = mock_mp_request.call_args.args
        kwargs = mock_mp_request.call_args.kwargs
        assert method == "GET"
        assert url.endswith("/v1/payments/search")
        assert kwargs["params"]["external_reference"] == "order_abc"
        assert kwargs["params"]["criteria"] == "desc"
        assert kwargs["timeout"] == 4

    def test_no_payment_yet(self, mock_mp_request, mp_response):
        mock_mp_request.return_value = mp_response({"results": []})

        assert MercadoPagoAdapter.query_status("order_abc") is None


# =============================================================================
# Webhook Tests
# =============================================================================


class TestVerifyWebhook:
    def _headers(self, data_id="123456", request_id="req-1", secret="mp_test_secret"):
        return {
            "x-signature": mercadopago_signature(data_id, request_id, secret),
            "x-request-id": request_id,
        }

    def test_valid_signature(self, mp_settings):
        body = json.dumps(notification()).encode()

        event = MercadoPagoAdapter.verify_webhook(body, self._headers())

        assert event.gateway == "mercadopago"
        assert event.event_type == "payment"
        assert event.provider_object_id == "123456"
        assert event.provider_event_id == "987"
        assert event.external_reference is None
        assert event.declared_status is None

    def test_uppercase_data_id(self, mp_settings):
        body = json.dumps(notification(data_id="ABC123")).encode()

        event = MercadoPagoAdapter.verify_webhook(body, self._headers(data_id="ABC123"))

        assert event.provider_object_id == "ABC123"

    def test_wrong_secret(self, mp_settings):
        body = json.dumps(notification()).encode()

        with pytest.raises(SignatureInvalidError, match="Invalid"):
            MercadoPagoAdapter.verify_webhook(body, self._headers(secret="other"))

    def test_signature_for_other_payment(self, mp_settings):
        body = json.dumps(notification(data_id="999")).encode()

        with pytest.raises(SignatureInvalidError):
            MercadoPagoAdapter.verify_webhook(body, self._headers(data_id="123456"))

    def test_missing_request_id(self, mp_settings):
        body = json.dumps(notification()).encode()
        headers = self._headers()
        del headers["x-request-id"]

        with pytest.raises(SignatureInvalidError, match="Missing"):
            MercadoPagoAdapter.verify_webhook(body, headers)

    def test_missing_secret(self, mp_settings):
        mp_settings.MERCADOPAGO_WEBHOOK_SECRET = ""
        body = json.dumps(notification()).encode()

        with pytest.raises(SignatureInvalidError):
            MercadoPagoAdapter.verify_webhook(body, self._headers())

    def test_malformed_body(self, mp_settings):
        with pytest.raises(SignatureInvalidError, match="Malformed"):
            MercadoPagoAdapter.verify_webhook(b"{not json", self._headers())


class TestResolveEvent:
    def _event(self, event_type="payment", object_id="123456"):
        return ParsedEvent(
            gateway="mercadopago",
            event_type=event_type,
            provider_object_id=object_id,
            payload=notification(data_id=object_id),
        )

    def test_fetches_payment(self, mock_mp_request, mp_response):
        mock_mp_request.return_value = mp_response(
            {"id": 123456, "status": "approved", "external_reference": "order_abc"}
        )

        resolved = MercadoPagoAdapter.resolve_event(self._event())

        assert resolved.external_reference == "order_abc"
        assert resolved.declared_status == S.SUCCEEDED
        assert resolved.provider_object_id == "123456"
        method, url = mock_mp_request.call_args.args
        assert method == "GET"
        assert url.endswith("/v1/payments/123456")

    def test_non_payment_topic_is_unchanged(self, mock_mp_request):
        event = self._event(event_type="merchant_order")

        assert MercadoPagoAdapter.resolve_event(event) is event
        mock_mp_request.assert_not_called()

    def test_provider_down(self, mock_mp_request, mp_response):
        mock_mp_request.return_value = mp_response({}, status_code=503)

        with pytest.raises(GatewayUnavailableError):
            MercadoPagoAdapter.resolve_event(self._event())
