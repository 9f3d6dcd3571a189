"""
URL configuration for the payments app.

Routes:
    - POST /checkout/ - Start or resume a checkout
    - POST /mercadopago/pay/ - PIX, boleto or card payment (transparent checkout)
    - GET /status/<course_id>/ - Poll payment status
    - POST /webhooks/stripe/ - Stripe webhook endpoint
    - POST /webhooks/mercadopago/ - Mercado Pago webhook endpoint

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments.views import CheckoutView, MercadoPagoDirectPaymentView, PaymentStatusView
from payments.webhooks.views import mercadopago_webhook, stripe_webhook

app_name = "payments"

urlpatterns = [
    path("checkout/", CheckoutView.as_view(), name="checkout"),
    path(
        "mercadopago/pay/",
        MercadoPagoDirectPaymentView.as_view(),
        name="mercadopago_direct_payment",
    ),
    path("status/<uuid:course_id>/", PaymentStatusView.as_view(), name="status"),
    # Webhook endpoints
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    path("webhooks/mercadopago/", mercadopago_webhook, name="mercadopago_webhook"),
]
