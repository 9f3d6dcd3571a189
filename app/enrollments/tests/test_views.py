"""
Tests for enrollment API views.

Tests cover:
- Free course enrollment (201 created, 200 already enrolled)
- Paid and unknown courses
- Listing the caller's enrollments
"""

import uuid

import pytest
from rest_framework import status

from catalog.tests.factories import CourseFactory
from enrollments.models import Enrollment

URL = "/api/v1/enrollments/"


@pytest.mark.django_db
class TestEnrollInFreeCourse:
    def test_requires_authentication(self, api_client, free_course):
        response = api_client.post(URL, {"course_id": str(free_course.id)}, format="json")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_creates_enrollment(self, authenticated_client, user, free_course):
        response = authenticated_client.post(URL, {"course_id": str(free_course.id)}, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["course"] == free_course.id
        assert response.data["course_title"] == "Free Sketching Basics"
        assert response.data["payment_order"] is None
        assert Enrollment.objects.filter(user=user, course=free_course).exists()

    def test_second_request_returns_200(self, authenticated_client, free_course):
        authenticated_client.post(URL, {"course_id": str(free_course.id)}, format="json")

        response = authenticated_client.post(URL, {"course_id": str(free_course.id)}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert Enrollment.objects.count() == 1

    def test_paid_course_requires_payment(self, authenticated_client, stripe_course):
        response = authenticated_client.post(URL, {"course_id": str(stripe_course.id)}, format="json")

        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        assert response.data["error_code"] == "PAYMENT_REQUIRED"

    def test_unknown_course(self, authenticated_client):
        response = authenticated_client.post(URL, {"course_id": str(uuid.uuid4())}, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "COURSE_NOT_FOUND"

    def test_invalid_course_id(self, authenticated_client):
        response = authenticated_client.post(URL, {"course_id": "abc"}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestListEnrollments:
    def test_lists_only_own_enrollments(self, authenticated_client, user, other_user):
        mine = CourseFactory(title="Oil Painting")
        theirs = CourseFactory()
        Enrollment.objects.create(user=user, course=mine)
        Enrollment.objects.create(user=other_user, course=theirs)

        response = authenticated_client.get(URL)

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 1
        assert response.data[0]["course_title"] == "Oil Painting"

    def test_empty(self, authenticated_client):
        response = authenticated_client.get(URL)

        assert response.data == []
