"""
Order ledger: the single writer of PaymentOrder state.

Every status change, whatever its source (webhook, status poll, sweeper,
manual confirmation, checkout failure), goes through
OrderLedger.apply_status. It locks the row, classifies the candidate
status against the stored one, advances the FSM and, on success, grants
enrollment in the same unit of work.

Usage:
    from payments.services.order_ledger import OrderLedger

    order = OrderLedger.open_order(user, course, PaymentGateway.STRIPE)

    result = OrderLedger.apply_status(
        order.id,
        PaymentOrderState.SUCCEEDED,
        source="webhook",
        event_payload=event.payload,
    )
    result.order.status        # "succeeded"
    result.enrollment_created  # True the first time

Concurrency:
    - Webhook, drain and sweeper lock with select_for_update (lock_row)
    - The poller passes expected_version and locks with check_version,
      so it cannot overwrite a change it did not observe
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.db import DatabaseError, IntegrityError, transaction
from django_fsm import TransitionNotAllowed

from core.services import BaseService
from enrollments.services import EnrollmentGranter
from payments.exceptions import (
    DuplicateEventError,
    InvalidStateTransitionError,
    OpenOrderConflictError,
    PaymentValidationError,
    StaleTransitionError,
)
from payments.locks import check_version, lock_row
from payments.models import PaymentOrder
from payments.state_machines import (
    PaymentGateway,
    PaymentOrderState,
    TransitionKind,
    classify_transition,
)

if TYPE_CHECKING:
    import uuid

    from authentication.models import User
    from catalog.models import Course
    from payments.adapters import CheckoutSession


@dataclass
class ApplyResult:
    """
    Outcome of a forward transition.

    Attributes:
        order: The order after the transition (fresh from the database)
        previous_status: Status before the transition
        enrollment_created: Whether this call created the Enrollment
        enrollment_pending: Whether the grant failed and was deferred
    """

    order: PaymentOrder
    previous_status: str
    enrollment_created: bool = False
    enrollment_pending: bool = False


class OrderLedger(BaseService):
    """
    Owner of PaymentOrder creation and state transitions.

    All methods are class methods - no instance state is maintained.
    """

    # =========================================================================
    # Creation
    # =========================================================================

    @classmethod
    def open_order(cls, user: User, course: Course, gateway: str) -> PaymentOrder:
        """
        Create a pending order for (user, course).

        Raises:
            OpenOrderConflictError: Another pending/processing order exists
        """
        try:
            with transaction.atomic():
                order = PaymentOrder.objects.create(
                    user=user,
                    course=course,
                    gateway=gateway,
                    amount_cents=course.price_cents,
                    currency=course.currency,
                )
        except IntegrityError as e:
            raise OpenOrderConflictError(
                "A payment for this course is already in progress",
                details={"course_id": str(course.id)},
            ) from e

        cls.get_logger().info(
            "Payment order opened",
            extra={
                "payment_order_id": str(order.id),
                "user_id": user.id,
                "course_id": str(course.id),
                "gateway": gateway,
                "amount_cents": order.amount_cents,
            },
        )
        return order

    @classmethod
    def attach_checkout(
        cls, order_id: uuid.UUID | str, session: CheckoutSession
    ) -> PaymentOrder:
        """Store the provider reference and checkout handle on a pending order."""
        with transaction.atomic():
            order = lock_row(PaymentOrder, order_id)
            order.external_reference = session.external_reference or order.external_reference
            order.checkout_url = session.checkout_url or ""
            order.client_secret = session.client_secret or ""
            order.save(
                update_fields=[
                    "external_reference",
                    "checkout_url",
                    "client_secret",
                    "updated_at",
                ]
            )

        cls.get_logger().info(
            "Checkout attached to payment order",
            extra={
                "payment_order_id": str(order.id),
                "gateway": order.gateway,
                "external_reference": order.external_reference,
            },
        )
        return order

    # =========================================================================
    # Transitions
    # =========================================================================

    @classmethod
    def apply_status(
        cls,
        order_id: uuid.UUID | str,
        candidate: str,
        source: str,
        event_payload: dict[str, Any] | None = None,
        expected_version: int | None = None,
        reason: str | None = None,
    ) -> ApplyResult:
        """
        Move an order to ``candidate`` if that is a forward transition.

        A terminal candidate on a pending order passes through processing
        first, so the recorded path is always pending -> processing ->
        terminal. A provider cancellation of a processing order is
        recorded as a failure.

        Args:
            order_id: PaymentOrder to update
            candidate: PaymentOrderState value reported by the source
            source: Who observed it (webhook, poll, sweeper, admin, external)
            event_payload: Provider payload stored in raw_last_event
            expected_version: Lock optimistically at this version (poller)
            reason: Failure reason for failed/cancelled outcomes

        Returns:
            ApplyResult with the updated order

        Raises:
            DuplicateEventError: Order is already in ``candidate``
            StaleTransitionError: Backward move or terminal exit
            StaleRecordError: expected_version no longer current
            PaymentNotFoundError: Order does not exist
        """
        logger = cls.get_logger()
        log_context = {
            "payment_order_id": str(order_id),
            "candidate_status": candidate,
            "source": source,
        }

        with transaction.atomic():
            if expected_version is None:
                order = lock_row(PaymentOrder, order_id)
            else:
                order = check_version(PaymentOrder, order_id, expected_version)

            previous = order.status
            log_context.update(
                {
                    "current_status": previous,
                    "gateway": order.gateway,
                    "external_reference": order.external_reference,
                }
            )

            kind = classify_transition(previous, candidate)
            if kind is TransitionKind.DUPLICATE:
                logger.info("Duplicate status ignored", extra=log_context)
                raise DuplicateEventError(
                    f"Order already {candidate}",
                    details={"payment_order_id": str(order.id), "status": candidate},
                )
            if kind is TransitionKind.STALE:
                logger.warning("Stale transition discarded", extra=log_context)
                raise StaleTransitionError(
                    f"Cannot move order from {previous} to {candidate}",
                    details={
                        "payment_order_id": str(order.id),
                        "current_status": previous,
                        "candidate_status": candidate,
                    },
                )

            cls._advance(order, candidate, reason)
            if event_payload is not None:
                order.raw_last_event = event_payload
            if candidate == PaymentOrderState.SUCCEEDED:
                order.enrollment_pending = True
            order.save()

            logger.info(
                "Payment order transitioned",
                extra={**log_context, "new_status": order.status},
            )

            result = ApplyResult(order=order, previous_status=previous)
            if candidate == PaymentOrderState.SUCCEEDED:
                cls._grant_enrollment(order, result)

            result.order = PaymentOrder.objects.get(pk=order.pk)
            return result

    @classmethod
    def _advance(cls, order: PaymentOrder, candidate: str, reason: str | None) -> None:
        """Run the django-fsm transition(s) that reach ``candidate``."""
        try:
            if candidate == PaymentOrderState.PROCESSING:
                order.mark_processing()
            elif candidate == PaymentOrderState.SUCCEEDED:
                if order.status == PaymentOrderState.PENDING:
                    order.mark_processing()
                order.succeed()
            elif candidate == PaymentOrderState.FAILED:
                if order.status == PaymentOrderState.PENDING:
                    order.mark_processing()
                order.fail(reason)
            elif candidate == PaymentOrderState.CANCELLED:
                if order.status == PaymentOrderState.PENDING:
                    order.cancel()
                else:
                    order.fail(reason or "Cancelled by payment provider")
            elif candidate == PaymentOrderState.EXPIRED:
                if order.status == PaymentOrderState.PENDING:
                    order.mark_processing()
                order.expire()
            else:
                raise TransitionNotAllowed(f"No transition to {candidate}")
        except TransitionNotAllowed as e:
            raise InvalidStateTransitionError(
                f"Cannot move order from '{order.status}' to '{candidate}'",
                details={
                    "current_state": order.status,
                    "target_state": candidate,
                    "payment_order_id": str(order.id),
                },
            ) from e

    @classmethod
    def _grant_enrollment(cls, order: PaymentOrder, result: ApplyResult) -> None:
        """
        Grant enrollment inside a savepoint.

        If granting fails the order still commits as succeeded with
        enrollment_pending=True and a retry is queued after commit.
        """
        try:
            with transaction.atomic():
                grant = EnrollmentGranter.grant(order.user_id, order.course_id, order.id)
        except DatabaseError:
            cls.get_logger().error(
                "Enrollment grant failed, deferring",
                extra={
                    "payment_order_id": str(order.id),
                    "user_id": order.user_id,
                    "course_id": str(order.course_id),
                },
                exc_info=True,
            )
            result.enrollment_pending = True
            order_id = str(order.id)
            transaction.on_commit(lambda: cls._schedule_grant_retry(order_id))
            return

        result.enrollment_created = grant.created

    @staticmethod
    def _schedule_grant_retry(order_id: str) -> None:
        from payments.tasks import grant_pending_enrollment

        grant_pending_enrollment.delay(order_id)

    # =========================================================================
    # Out-of-band confirmation
    # =========================================================================

    @classmethod
    def confirm_manually(
        cls,
        order_id: uuid.UUID | str,
        source: str,
        confirmed_by: str | None = None,
    ) -> ApplyResult:
        """
        Confirm a redirect-gateway order that the provider cannot report.

        Args:
            order_id: Pending Hotmart/Kiwify order
            source: "admin" or "external"
            confirmed_by: Operator email or caller label (audit)

        Raises:
            PaymentValidationError: Order belongs to an integrated gateway
            DuplicateEventError / StaleTransitionError: Order not open
        """
        order = PaymentOrder.objects.get(pk=order_id)
        if order.gateway not in PaymentGateway.redirect_only():
            raise PaymentValidationError(
                "Only redirect-gateway orders can be confirmed manually",
                error_code="MANUAL_CONFIRMATION_NOT_ALLOWED",
                details={"payment_order_id": str(order.id), "gateway": order.gateway},
            )

        cls.get_logger().info(
            "Manual payment confirmation",
            extra={
                "payment_order_id": str(order.id),
                "gateway": order.gateway,
                "source": source,
                "confirmed_by": confirmed_by,
            },
        )
        return cls.apply_status(
            order.id,
            PaymentOrderState.SUCCEEDED,
            source=source,
            event_payload={"source": source, "confirmed_by": confirmed_by},
        )
