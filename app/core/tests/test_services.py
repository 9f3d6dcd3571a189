"""
Tests for the service layer primitives.
"""

from core.exceptions import NotFoundError
from core.services import BaseService, ServiceResult


class TestServiceResult:
    def test_success(self):
        result = ServiceResult.success({"id": 1})

        assert result.success is True
        assert result.data == {"id": 1}
        assert result.error is None
        assert bool(result) is True

    def test_failure(self):
        result = ServiceResult.failure("Course not found", error_code="COURSE_NOT_FOUND")

        assert result.success is False
        assert result.data is None
        assert result.error_code == "COURSE_NOT_FOUND"
        assert bool(result) is False

    def test_from_domain_exception_uses_its_code(self):
        result = ServiceResult.from_exception(NotFoundError("Course not found"))

        assert result.error == "Course not found"
        assert result.error_code == NotFoundError.default_error_code

    def test_from_exception_with_override(self):
        result = ServiceResult.from_exception(NotFoundError("gone"), error_code="COURSE_NOT_FOUND")

        assert result.error_code == "COURSE_NOT_FOUND"

    def test_from_plain_exception(self):
        result = ServiceResult.from_exception(ValueError("bad value"))

        assert result.error == "bad value"
        assert result.error_code == "VALUEERROR"

    def test_error_body(self):
        result = ServiceResult.failure("Already enrolled", error_code="ALREADY_ENROLLED")

        assert result.error_body() == {
            "error": "Already enrolled",
            "error_code": "ALREADY_ENROLLED",
        }


class TestBaseService:
    def test_logger_named_after_service(self):
        class CheckoutLikeService(BaseService):
            pass

        assert CheckoutLikeService.get_logger().name.endswith(".CheckoutLikeService")
