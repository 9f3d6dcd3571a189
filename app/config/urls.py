"""
URL configuration for the Django application.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/token/            - JWT obtain/refresh (simplejwt)
    /api/v1/enrollments/           - Enrollment endpoints
        (GET, POST)                - List enrollments, enroll in a free course
    /api/v1/payments/              - Payment endpoints
        checkout/                  - Start or resume a checkout (POST)
        status/{course_id}/        - Poll payment status (GET)
        webhooks/stripe/           - Stripe webhook endpoint (POST)
        webhooks/mercadopago/      - Mercado Pago webhook endpoint (POST)
    /api/v1/external/              - External checkout endpoints
        save-cpf/                  - Record tax id before redirect checkout (POST)
        enroll/                    - Confirm external purchase, bearer token (POST)
        check-enrollment/          - Query enrollment, bearer token (POST)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Authentication (JWT)
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    # Enrollments
    path("enrollments/", include("enrollments.urls")),
    # Payments
    path("payments/", include("payments.urls")),
    # External checkout
    path("external/", include("payments.external_urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Course Payments Admin"
admin.site.site_title = "Course Payments"
admin.site.index_title = "Payments & Enrollments"
