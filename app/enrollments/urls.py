"""
URL configuration for the enrollments app.

Routes:
    - GET/POST / - List enrollments, enroll in a free course

All routes are prefixed with /api/v1/enrollments/ when included in the main URLconf.
"""

from django.urls import path

from enrollments.views import EnrollmentListCreateView

app_name = "enrollments"

urlpatterns = [
    path("", EnrollmentListCreateView.as_view(), name="list_create"),
]
