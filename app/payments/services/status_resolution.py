"""
Status resolution for the polling client.

Answers "has my payment for course X gone through?" with one of
pending / succeeded / failed. For integrated gateways an open order is
refreshed from the provider before answering; the provider result is
merged through OrderLedger.apply_status with an optimistic version
check, so the poll path and the webhook path apply the same rule.

Redirect gateways cannot be queried. Their orders report pending until
an out-of-band confirmation moves them.

Usage:
    from payments.services.status_resolution import StatusResolutionService

    result = StatusResolutionService.resolve(request.user, course_id)
    if result.success:
        result.data.status  # "pending" | "succeeded" | "failed"
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from catalog.services import CatalogService, CourseNotFoundError
from core.services import BaseService, ServiceResult
from enrollments.services import EnrollmentGranter
from payments.adapters import get_adapter
from payments.exceptions import (
    DuplicateEventError,
    GatewayError,
    InvalidStateTransitionError,
    StaleRecordError,
    StaleTransitionError,
)
from payments.models import PaymentOrder
from payments.services.order_ledger import OrderLedger
from payments.state_machines import PaymentOrderState, PublicPaymentStatus

if TYPE_CHECKING:
    import uuid

    from authentication.models import User


@dataclass
class StatusResolution:
    """
    Public answer for the polling client.

    Attributes:
        status: PublicPaymentStatus value
        order: The order the answer was derived from (None when the
            answer came from an existing enrollment)
    """

    status: str
    order: PaymentOrder | None = None


class StatusResolutionService(BaseService):
    """Resolves the public payment status for a (user, course) pair."""

    # Initial attempt plus one re-read after a concurrent write.
    MAX_MERGE_ATTEMPTS = 2

    @classmethod
    def resolve(
        cls, user: User, course_id: uuid.UUID | str
    ) -> ServiceResult[StatusResolution]:
        """
        Resolve the caller's payment status for a course.

        Returns:
            ServiceResult with StatusResolution; failure codes
            COURSE_NOT_FOUND and PAYMENT_NOT_FOUND
        """
        try:
            course = CatalogService.get_course(course_id, published_only=False)
        except CourseNotFoundError as e:
            return ServiceResult.from_exception(e)

        # An enrollment is the final word, whatever the orders say
        if EnrollmentGranter.is_enrolled(user.id, course.id):
            return ServiceResult.success(
                StatusResolution(status=PublicPaymentStatus.SUCCEEDED)
            )

        order = cls._select_order(user.id, course.id)
        if order is None:
            return ServiceResult.failure(
                "No payment found for this course",
                error_code="PAYMENT_NOT_FOUND",
            )

        if not order.is_terminal:
            order = cls._refresh_from_provider(order)

        return ServiceResult.success(
            StatusResolution(status=order.public_status, order=order)
        )

    @staticmethod
    def _select_order(user_id: int, course_id) -> PaymentOrder | None:
        """The open order if there is one, otherwise the most recent."""
        orders = PaymentOrder.objects.for_user_course(user_id, course_id)
        open_order = orders.open().order_by("-created_at").first()
        if open_order is not None:
            return open_order
        return orders.order_by("-created_at").first()

    @classmethod
    def _refresh_from_provider(cls, order: PaymentOrder) -> PaymentOrder:
        """
        Query the provider and merge a forward move into the ledger.

        Never raises for provider trouble: the last known local status
        is returned instead.
        """
        logger = cls.get_logger()
        adapter = get_adapter(order.gateway)
        if not adapter.supports_status_query or not order.external_reference:
            return order

        log_context = {
            "payment_order_id": str(order.id),
            "gateway": order.gateway,
            "external_reference": order.external_reference,
        }

        try:
            candidate = adapter.query_status(order.external_reference)
        except GatewayError as e:
            logger.warning(
                "Status query failed, answering with local status",
                extra={**log_context, "status": order.status, "error_code": e.error_code},
            )
            return order

        if candidate is None or candidate == PaymentOrderState.PENDING:
            return order

        for _ in range(cls.MAX_MERGE_ATTEMPTS):
            try:
                result = OrderLedger.apply_status(
                    order.id,
                    candidate,
                    source="poll",
                    event_payload={
                        "source": "poll",
                        "gateway": order.gateway,
                        "provider_status": candidate,
                    },
                    expected_version=order.version,
                )
                return result.order
            except StaleRecordError:
                logger.info("Order changed during status query, re-reading", extra=log_context)
                order = PaymentOrder.objects.get(pk=order.pk)
            except (DuplicateEventError, StaleTransitionError, InvalidStateTransitionError):
                return PaymentOrder.objects.get(pk=order.pk)

        return order
