"""
Tests for ExternalCheckoutService (Hotmart/Kiwify intake and confirmation).

Tests cover:
- Tax id normalization
- save-cpf validation, ownership and order opening
- Out-of-band confirmation through the ledger
- Enrollment lookup by tax id
"""

import logging
import uuid

import pytest

from authentication.tests.factories import UserFactory
from catalog.tests.factories import CourseFactory
from enrollments.models import Enrollment
from payments.models import ExternalCheckoutRecord, PaymentOrder
from payments.services import ExternalCheckoutService, normalize_tax_id
from payments.services.order_ledger import OrderLedger
from payments.state_machines import PaymentGateway, PaymentOrderState
from payments.tests.factories import ExternalCheckoutRecordFactory

S = PaymentOrderState


@pytest.fixture
def payments_log(caplog):
    """INFO records from the payments logger, which does not propagate to root."""
    logger = logging.getLogger("payments")
    logger.addHandler(caplog.handler)
    with caplog.at_level(logging.INFO, logger="payments"):
        yield caplog
    logger.removeHandler(caplog.handler)


class TestNormalizeTaxId:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("123.456.789-01", "12345678901"),
            ("12345678901", "12345678901"),
            (" 123 456 789 01 ", "12345678901"),
            ("1234567890", None),
            ("123456789012", None),
            ("abc", None),
            ("", None),
            (None, None),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_tax_id(raw) == expected


@pytest.mark.django_db
class TestSaveTaxId:
    """Tests for ExternalCheckoutService.save_tax_id."""

    def test_records_tax_id_and_opens_order(self, user, hotmart_course):
        result = ExternalCheckoutService.save_tax_id(user, "123.456.789-01", hotmart_course.id)

        assert result.success
        assert result.data.course == hotmart_course
        assert result.data.checkout_url == hotmart_course.external_checkout_url

        record = ExternalCheckoutRecord.objects.get(user=user, course=hotmart_course)
        assert record.tax_id == "12345678901"

        order = result.data.order
        assert order.gateway == PaymentGateway.HOTMART
        assert order.status == S.PENDING

    def test_does_not_grant_access(self, user, hotmart_course):
        ExternalCheckoutService.save_tax_id(user, "12345678901", hotmart_course.id)

        assert not Enrollment.objects.exists()

    def test_resubmission_overwrites_and_reuses_order(self, user, hotmart_course):
        first = ExternalCheckoutService.save_tax_id(user, "12345678901", hotmart_course.id)
        second = ExternalCheckoutService.save_tax_id(user, "98765432100", hotmart_course.id)

        assert second.success
        assert second.data.order.id == first.data.order.id
        assert ExternalCheckoutRecord.objects.get(user=user).tax_id == "98765432100"
        assert PaymentOrder.objects.count() == 1

    def test_invalid_tax_id(self, user, hotmart_course):
        result = ExternalCheckoutService.save_tax_id(user, "123", hotmart_course.id)

        assert result.error_code == "INVALID_TAX_ID"
        assert not ExternalCheckoutRecord.objects.exists()

    def test_unknown_course(self, user):
        result = ExternalCheckoutService.save_tax_id(user, "12345678901", uuid.uuid4())

        assert result.error_code == "COURSE_NOT_FOUND"

    def test_integrated_course_not_supported(self, user, stripe_course):
        result = ExternalCheckoutService.save_tax_id(user, "12345678901", stripe_course.id)

        assert result.error_code == "EXTERNAL_CHECKOUT_NOT_SUPPORTED"

    def test_redirect_course_without_url_not_supported(self, user):
        course = CourseFactory(payment_gateway=PaymentGateway.KIWIFY, external_checkout_url="")

        result = ExternalCheckoutService.save_tax_id(user, "12345678901", course.id)

        assert result.error_code == "EXTERNAL_CHECKOUT_NOT_SUPPORTED"

    def test_tax_id_owned_by_other_user(self, user, other_user, hotmart_course):
        ExternalCheckoutService.save_tax_id(other_user, "12345678901", hotmart_course.id)

        result = ExternalCheckoutService.save_tax_id(user, "123.456.789-01", hotmart_course.id)

        assert result.error_code == "TAX_ID_IN_USE"
        assert not ExternalCheckoutRecord.objects.filter(user=user).exists()

    def test_tax_id_claimed_without_a_record(self, user, hotmart_course):
        UserFactory(tax_id="12345678901")

        result = ExternalCheckoutService.save_tax_id(user, "12345678901", hotmart_course.id)

        assert result.error_code == "TAX_ID_IN_USE"
        user.refresh_from_db()
        assert user.tax_id is None
        assert not PaymentOrder.objects.filter(user=user).exists()

    def test_claims_tax_id_for_the_user(self, user, hotmart_course):
        ExternalCheckoutService.save_tax_id(user, "123.456.789-01", hotmart_course.id)

        user.refresh_from_db()
        assert user.tax_id == "12345678901"

    def test_logs_record_creation(self, user, hotmart_course, payments_log):
        first = ExternalCheckoutService.save_tax_id(user, "12345678901", hotmart_course.id)
        second = ExternalCheckoutService.save_tax_id(user, "12345678901", hotmart_course.id)

        assert first.success
        assert second.success
        recorded = [
            r for r in payments_log.records if r.getMessage() == "External checkout tax id recorded"
        ]
        assert [r.record_created for r in recorded] == [True, False]
        assert recorded[0].tax_id == "***8901"

    def test_same_user_may_reuse_tax_id_across_courses(self, user, hotmart_course):
        other_course = CourseFactory(kiwify=True)
        ExternalCheckoutService.save_tax_id(user, "12345678901", hotmart_course.id)

        result = ExternalCheckoutService.save_tax_id(user, "12345678901", other_course.id)

        assert result.success
        assert ExternalCheckoutRecord.objects.filter(user=user).count() == 2

    def test_already_enrolled(self, user, hotmart_course):
        Enrollment.objects.create(user=user, course=hotmart_course)

        result = ExternalCheckoutService.save_tax_id(user, "12345678901", hotmart_course.id)

        assert result.error_code == "ALREADY_ENROLLED"


@pytest.mark.django_db
class TestConfirmEnrollment:
    """Tests for ExternalCheckoutService.confirm_enrollment."""

    def test_confirms_open_order_and_enrolls(self, user, hotmart_course):
        saved = ExternalCheckoutService.save_tax_id(user, "12345678901", hotmart_course.id)

        result = ExternalCheckoutService.confirm_enrollment("123.456.789-01", hotmart_course.id)

        assert result.success
        assert result.data.user_id == user.id
        assert result.data.created is True
        assert result.data.payment_order_id == saved.data.order.id

        order = PaymentOrder.objects.get(pk=saved.data.order.id)
        assert order.status == S.SUCCEEDED
        assert order.raw_last_event["confirmed_by"] == "external_api"
        assert order.enrollment_pending is False

        enrollment = Enrollment.objects.get(user=user, course=hotmart_course)
        assert enrollment.id == result.data.enrollment_id
        assert enrollment.payment_order_id == order.id

    def test_repeat_confirmation_is_idempotent(self, user, hotmart_course):
        ExternalCheckoutService.save_tax_id(user, "12345678901", hotmart_course.id)
        first = ExternalCheckoutService.confirm_enrollment("12345678901", hotmart_course.id)

        second = ExternalCheckoutService.confirm_enrollment("12345678901", hotmart_course.id)

        assert second.success
        assert second.data.created is False
        assert second.data.enrollment_id == first.data.enrollment_id
        assert second.data.payment_order_id is None
        assert Enrollment.objects.filter(user=user).count() == 1

    def test_without_open_order_grants_directly(self, user, hotmart_course):
        ExternalCheckoutRecordFactory(user=user, course=hotmart_course, tax_id="12345678901")

        result = ExternalCheckoutService.confirm_enrollment("12345678901", hotmart_course.id)

        assert result.success
        assert result.data.created is True
        assert result.data.payment_order_id is None
        assert Enrollment.objects.get(user=user).payment_order_id is None

    def test_order_confirmed_by_admin_first(self, user, hotmart_course):
        saved = ExternalCheckoutService.save_tax_id(user, "12345678901", hotmart_course.id)
        OrderLedger.confirm_manually(saved.data.order.id, source="admin")

        result = ExternalCheckoutService.confirm_enrollment("12345678901", hotmart_course.id)

        assert result.success
        assert result.data.created is False
        assert Enrollment.objects.filter(user=user).count() == 1

    def test_unknown_tax_id(self, hotmart_course):
        result = ExternalCheckoutService.confirm_enrollment("12345678901", hotmart_course.id)

        assert result.error_code == "EXTERNAL_CHECKOUT_NOT_FOUND"
        assert not Enrollment.objects.exists()

    def test_tax_id_recorded_for_another_course(self, user, hotmart_course):
        ExternalCheckoutRecordFactory(user=user, tax_id="12345678901")

        result = ExternalCheckoutService.confirm_enrollment("12345678901", hotmart_course.id)

        assert result.error_code == "EXTERNAL_CHECKOUT_NOT_FOUND"

    def test_invalid_tax_id(self, hotmart_course):
        result = ExternalCheckoutService.confirm_enrollment("12", hotmart_course.id)

        assert result.error_code == "INVALID_TAX_ID"

    def test_unknown_course(self):
        result = ExternalCheckoutService.confirm_enrollment("12345678901", uuid.uuid4())

        assert result.error_code == "COURSE_NOT_FOUND"


@pytest.mark.django_db
class TestCheckEnrollment:
    def test_active(self, user, hotmart_course):
        ExternalCheckoutRecordFactory(user=user, course=hotmart_course, tax_id="12345678901")
        Enrollment.objects.create(user=user, course=hotmart_course)

        result = ExternalCheckoutService.check_enrollment("123.456.789-01", hotmart_course.id)

        assert result.data.user_id == user.id
        assert result.data.active is True
        assert result.data.course_id == str(hotmart_course.id)

    def test_not_enrolled(self, user, hotmart_course):
        ExternalCheckoutRecordFactory(user=user, course=hotmart_course, tax_id="12345678901")

        result = ExternalCheckoutService.check_enrollment("12345678901", hotmart_course.id)

        assert result.data.user_id == user.id
        assert result.data.active is False

    def test_unknown_tax_id(self, hotmart_course):
        result = ExternalCheckoutService.check_enrollment("12345678901", hotmart_course.id)

        assert result.success
        assert result.data.user_id is None
        assert result.data.active is False

    def test_invalid_tax_id(self, hotmart_course):
        result = ExternalCheckoutService.check_enrollment("not-a-cpf", hotmart_course.id)

        assert result.error_code == "INVALID_TAX_ID"
