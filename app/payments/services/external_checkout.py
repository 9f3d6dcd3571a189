"""
External-checkout intake for redirect gateways (Hotmart, Kiwify).

Before the browser is sent to the provider's hosted page the user's tax
id (CPF) is recorded against the course, and a pending PaymentOrder is
opened so the status endpoint has a ledger row to report. Neither step
grants access. Access is granted only by an out-of-band confirmation:
the admin action or the token-authenticated external enroll call.

Usage:
    from payments.services.external_checkout import ExternalCheckoutService

    result = ExternalCheckoutService.save_tax_id(request.user, cpf, course_id)
    if result.success:
        result.data.checkout_url

    # Provider automation (bearer token)
    result = ExternalCheckoutService.confirm_enrollment(cpf, course_id)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.utils import timezone

from catalog.services import CatalogService, CourseNotFoundError
from core.helpers import digits_only
from core.services import BaseService, ServiceResult
from enrollments.services import EnrollmentGranter
from payments.exceptions import DuplicateEventError, StaleTransitionError
from payments.models import ExternalCheckoutRecord, PaymentOrder, mask_tax_id
from payments.services.checkout_service import CheckoutService
from payments.services.order_ledger import OrderLedger
from payments.state_machines import PaymentGateway

if TYPE_CHECKING:
    import uuid

    from authentication.models import User
    from catalog.models import Course


TAX_ID_LENGTH = 11


@dataclass
class SaveTaxIdResult:
    """
    Response data for save-cpf.

    Attributes:
        course: Course being bought externally
        checkout_url: Hosted checkout the browser should open
        order: Pending redirect-gateway order
    """

    course: Course
    checkout_url: str
    order: PaymentOrder


@dataclass
class ExternalEnrollmentResult:
    """
    Outcome of an out-of-band confirmation.

    Attributes:
        user_id: User matched through the tax id
        enrollment_id: The (new or existing) enrollment
        created: False when the user was already enrolled
        payment_order_id: Order that was confirmed, if one was open
    """

    user_id: int
    enrollment_id: uuid.UUID
    created: bool
    payment_order_id: uuid.UUID | None = None


@dataclass
class EnrollmentCheckResult:
    user_id: int | None
    course_id: str
    active: bool


def normalize_tax_id(raw: str | None) -> str | None:
    """Strip punctuation; None unless exactly 11 digits remain."""
    cleaned = digits_only(raw or "")
    if len(cleaned) != TAX_ID_LENGTH:
        return None
    return cleaned


class ExternalCheckoutService(BaseService):
    """Tax id intake and out-of-band confirmation for redirect gateways."""

    # =========================================================================
    # Intake
    # =========================================================================

    @classmethod
    def save_tax_id(
        cls, user: User, raw_tax_id: str, course_id: uuid.UUID | str
    ) -> ServiceResult[SaveTaxIdResult]:
        """
        Record the user's tax id and open the redirect-gateway order.

        Returns:
            ServiceResult with SaveTaxIdResult; failure codes
            INVALID_TAX_ID, COURSE_NOT_FOUND, EXTERNAL_CHECKOUT_NOT_SUPPORTED,
            TAX_ID_IN_USE, plus any CheckoutService failure code
        """
        logger = cls.get_logger()

        tax_id = normalize_tax_id(raw_tax_id)
        if tax_id is None:
            return ServiceResult.failure("Invalid CPF", error_code="INVALID_TAX_ID")

        try:
            course = CatalogService.get_course(course_id)
        except CourseNotFoundError as e:
            return ServiceResult.from_exception(e)

        if not course.uses_redirect_checkout or not course.external_checkout_url:
            return ServiceResult.failure(
                "This course does not support external checkout",
                error_code="EXTERNAL_CHECKOUT_NOT_SUPPORTED",
            )

        if user.tax_id != tax_id:
            try:
                with transaction.atomic():
                    type(user).objects.filter(pk=user.pk).update(tax_id=tax_id)
            except IntegrityError:
                logger.warning(
                    "Tax id already claimed by another user",
                    extra={"user_id": user.id, "tax_id": mask_tax_id(tax_id)},
                )
                return ServiceResult.failure(
                    "This CPF is already in use by another user",
                    error_code="TAX_ID_IN_USE",
                )
            user.tax_id = tax_id

        _, record_created = ExternalCheckoutRecord.objects.update_or_create(
            user=user,
            course=course,
            defaults={"tax_id": tax_id, "captured_at": timezone.now()},
        )
        logger.info(
            "External checkout tax id recorded",
            extra={
                "user_id": user.id,
                "course_id": str(course.id),
                "gateway": course.payment_gateway,
                "tax_id": mask_tax_id(tax_id),
                "record_created": record_created,
            },
        )

        checkout = CheckoutService.start_checkout(user, course.id)
        if not checkout.success:
            return ServiceResult.failure(checkout.error, error_code=checkout.error_code)

        return ServiceResult.success(
            SaveTaxIdResult(
                course=course,
                checkout_url=checkout.data.checkout_url or course.external_checkout_url,
                order=checkout.data.order,
            )
        )

    # =========================================================================
    # Out-of-band confirmation (bearer token)
    # =========================================================================

    @classmethod
    def confirm_enrollment(
        cls, raw_tax_id: str, course_id: uuid.UUID | str
    ) -> ServiceResult[ExternalEnrollmentResult]:
        """
        Confirm an external purchase for the user behind a tax id.

        The open redirect order is moved to succeeded through the ledger;
        with no open order the grant is made directly.

        Returns:
            ServiceResult with ExternalEnrollmentResult; failure codes
            INVALID_TAX_ID, COURSE_NOT_FOUND, EXTERNAL_CHECKOUT_NOT_FOUND
        """
        logger = cls.get_logger()

        tax_id = normalize_tax_id(raw_tax_id)
        if tax_id is None:
            return ServiceResult.failure("Invalid CPF", error_code="INVALID_TAX_ID")

        try:
            course = CatalogService.get_course(course_id, published_only=False)
        except CourseNotFoundError as e:
            return ServiceResult.from_exception(e)

        record = (
            ExternalCheckoutRecord.objects.filter(tax_id=tax_id, course=course)
            .order_by("-captured_at")
            .first()
        )
        if record is None:
            logger.warning(
                "External confirmation without a recorded checkout",
                extra={"course_id": str(course.id), "tax_id": mask_tax_id(tax_id)},
            )
            return ServiceResult.failure(
                "No external checkout recorded for this CPF and course",
                error_code="EXTERNAL_CHECKOUT_NOT_FOUND",
            )

        order = (
            PaymentOrder.objects.open()
            .for_user_course(record.user_id, course.id)
            .filter(gateway__in=PaymentGateway.redirect_only())
            .first()
        )
        created = False
        if order is not None:
            try:
                applied = OrderLedger.confirm_manually(
                    order.id, source="external", confirmed_by="external_api"
                )
                created = applied.enrollment_created
            except (DuplicateEventError, StaleTransitionError):
                logger.info(
                    "Order moved before external confirmation",
                    extra={"payment_order_id": str(order.id)},
                )

        grant = EnrollmentGranter.grant(
            record.user_id, course.id, order.id if order is not None else None
        )
        return ServiceResult.success(
            ExternalEnrollmentResult(
                user_id=record.user_id,
                enrollment_id=grant.enrollment.id,
                created=created or grant.created,
                payment_order_id=order.id if order is not None else None,
            )
        )

    @classmethod
    def check_enrollment(
        cls, raw_tax_id: str, course_id: uuid.UUID | str
    ) -> ServiceResult[EnrollmentCheckResult]:
        """
        Report whether the user behind a tax id is enrolled in a course.

        An unknown tax id is not an error; it reports no user and no
        enrollment.
        """
        tax_id = normalize_tax_id(raw_tax_id)
        if tax_id is None:
            return ServiceResult.failure("Invalid CPF", error_code="INVALID_TAX_ID")

        record = (
            ExternalCheckoutRecord.objects.filter(tax_id=tax_id)
            .order_by("-captured_at")
            .first()
        )
        if record is None:
            return ServiceResult.success(
                EnrollmentCheckResult(user_id=None, course_id=str(course_id), active=False)
            )

        return ServiceResult.success(
            EnrollmentCheckResult(
                user_id=record.user_id,
                course_id=str(course_id),
                active=EnrollmentGranter.is_enrolled(record.user_id, course_id),
            )
        )
