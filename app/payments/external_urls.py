"""
URL configuration for the external-checkout endpoints.

Routes:
    - POST /save-cpf/ - Record tax id before a redirect checkout (JWT)
    - POST /enroll/ - Confirm an external purchase (bearer token)
    - POST /check-enrollment/ - Query enrollment by tax id (bearer token)

All routes are prefixed with /api/v1/external/ when included in the main URLconf.
"""

from django.urls import path

from payments.views import ExternalCheckEnrollmentView, ExternalEnrollView, SaveTaxIdView

app_name = "external"

urlpatterns = [
    path("save-cpf/", SaveTaxIdView.as_view(), name="save_cpf"),
    path("enroll/", ExternalEnrollView.as_view(), name="enroll"),
    path("check-enrollment/", ExternalCheckEnrollmentView.as_view(), name="check_enrollment"),
]
