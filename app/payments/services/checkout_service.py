"""
Checkout initiation.

Turns "user wants to buy course X" into a pending PaymentOrder plus a
provider checkout handle. The order row is the only record of an
in-progress checkout; nothing is kept in the session.

Rules:
    - Free course                        -> PAYMENT_NOT_REQUIRED (use /enrollments/)
    - Already enrolled                   -> ALREADY_ENROLLED
    - Open order, same gateway, pending  -> stored handle returned, no provider call
    - Open order, other gateway, pending -> cancelled, new order opened
    - Open order, processing             -> PAYMENT_IN_PROGRESS
    - Provider unavailable               -> GATEWAY_UNAVAILABLE, order stays pending
    - Provider rejected                  -> order failed, GATEWAY_REJECTED

Mercado Pago courses can also be paid in place (start_direct_payment): a
PIX code, a boleto or a tokenized card charged through /v1/payments on
the same pending order.

Usage:
    from payments.services.checkout_service import CheckoutService

    result = CheckoutService.start_checkout(request.user, course_id)
    if result.success:
        result.data.checkout_url or result.data.client_secret

    result = CheckoutService.start_direct_payment(request.user, course_id, "pix")
    if result.success:
        result.data.qr_code
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from catalog.services import CatalogService, CourseNotFoundError
from core.services import BaseService, ServiceResult
from enrollments.services import EnrollmentGranter
from payments.adapters import CheckoutSession, MercadoPagoAdapter, get_adapter
from payments.exceptions import (
    DuplicateEventError,
    GatewayRejectedError,
    GatewayUnavailableError,
    OpenOrderConflictError,
    PaymentValidationError,
    StaleTransitionError,
)
from payments.models import PaymentOrder
from payments.services.order_ledger import OrderLedger
from payments.state_machines import PaymentGateway, PaymentOrderState

if TYPE_CHECKING:
    import uuid

    from authentication.models import User
    from catalog.models import Course


@dataclass
class CheckoutResult:
    """
    Checkout handle returned to the client.

    Attributes:
        order: The pending PaymentOrder
        gateway: Provider handling the checkout
        checkout_url: Hosted checkout page, when the provider uses one
        client_secret: Embedded checkout secret (Stripe)
        reused: True when an existing pending order was returned
    """

    order: PaymentOrder
    gateway: str
    checkout_url: str | None = None
    client_secret: str | None = None
    reused: bool = False


@dataclass
class DirectPaymentResult:
    """
    Outcome of a transparent-checkout payment.

    Attributes:
        order: The order the payment belongs to
        method: DirectPaymentMethod value
        provider_payment_id: Mercado Pago payment id
        status: Public tri-state after applying the provider status
        status_detail: Provider detail, shown to the buyer on refusal
        qr_code / qr_code_base64: PIX code and image
        ticket_url: Boleto or PIX page
        barcode: Boleto digitable line
    """

    order: PaymentOrder
    method: str
    provider_payment_id: str
    status: str
    status_detail: str = ""
    qr_code: str | None = None
    qr_code_base64: str | None = None
    ticket_url: str | None = None
    barcode: str | None = None


class CheckoutService(BaseService):
    """Starts or resumes a checkout for a (user, course) pair."""

    @classmethod
    def start_checkout(
        cls, user: User, course_id: uuid.UUID | str
    ) -> ServiceResult[CheckoutResult]:
        """
        Start a checkout for a paid course.

        Returns:
            ServiceResult with CheckoutResult on success. Failure codes:
            COURSE_NOT_FOUND, PAYMENT_NOT_REQUIRED, ALREADY_ENROLLED,
            PAYMENT_IN_PROGRESS, GATEWAY_UNAVAILABLE, GATEWAY_REJECTED
            (or a more specific code such as CARD_DECLINED)
        """
        logger = cls.get_logger()

        try:
            course = CatalogService.get_course(course_id)
        except CourseNotFoundError as e:
            return ServiceResult.from_exception(e)

        blocked = cls._purchase_blocked(user, course)
        if blocked is not None:
            return blocked

        gateway = course.payment_gateway
        existing = PaymentOrder.objects.open().for_user_course(user.id, course.id).first()
        if existing is not None:
            if existing.status == PaymentOrderState.PROCESSING:
                return ServiceResult.failure(
                    "A payment for this course is already being processed",
                    error_code=OpenOrderConflictError.default_error_code,
                )
            if existing.gateway == gateway and cls._has_handle(existing):
                logger.info(
                    "Reusing pending checkout",
                    extra={"payment_order_id": str(existing.id), "gateway": gateway},
                )
                return ServiceResult.success(cls._result(existing, reused=True))
            if existing.gateway != gateway:
                cls._cancel_superseded(existing, gateway)
            else:
                order = existing
                return cls._create_provider_checkout(order)

        try:
            order = OrderLedger.open_order(user, course, gateway)
        except OpenOrderConflictError as e:
            return ServiceResult.from_exception(e)

        return cls._create_provider_checkout(order)

    # =========================================================================
    # Transparent checkout (Mercado Pago PIX, boleto, card)
    # =========================================================================

    @classmethod
    def start_direct_payment(
        cls,
        user: User,
        course_id: uuid.UUID | str,
        method: str,
        payer_tax_id: str | None = None,
        card_token: str | None = None,
        payment_method_id: str | None = None,
        installments: int = 1,
    ) -> ServiceResult[DirectPaymentResult]:
        """
        Pay for a Mercado Pago course without the hosted checkout page.

        PIX and boleto leave the order pending until the webhook reports
        the transfer; a card comes back settled or refused and is applied
        to the ledger immediately.

        Returns:
            ServiceResult with DirectPaymentResult. Failure codes: those of
            start_checkout plus DIRECT_PAYMENT_NOT_SUPPORTED,
            INVALID_PAYMENT_METHOD and INVALID_PAYMENT_DATA
        """
        try:
            course = CatalogService.get_course(course_id)
        except CourseNotFoundError as e:
            return ServiceResult.from_exception(e)

        if course.payment_gateway != PaymentGateway.MERCADOPAGO:
            return ServiceResult.failure(
                "This course does not accept direct payments",
                error_code="DIRECT_PAYMENT_NOT_SUPPORTED",
            )
        blocked = cls._purchase_blocked(user, course)
        if blocked is not None:
            return blocked

        order = PaymentOrder.objects.open().for_user_course(user.id, course.id).first()
        if order is not None:
            if order.status == PaymentOrderState.PROCESSING:
                return ServiceResult.failure(
                    "A payment for this course is already being processed",
                    error_code=OpenOrderConflictError.default_error_code,
                )
            if order.gateway != course.payment_gateway:
                cls._cancel_superseded(order, course.payment_gateway)
                order = None

        if order is None:
            try:
                order = OrderLedger.open_order(user, course, course.payment_gateway)
            except OpenOrderConflictError as e:
                return ServiceResult.from_exception(e)

        return cls._create_direct_payment(
            order,
            method,
            payer_tax_id=payer_tax_id,
            card_token=card_token,
            payment_method_id=payment_method_id,
            installments=installments,
        )

    @classmethod
    def _create_direct_payment(
        cls, order: PaymentOrder, method: str, **payment_data
    ) -> ServiceResult[DirectPaymentResult]:
        logger = cls.get_logger()
        log_context = {"payment_order_id": str(order.id), "method": method}

        try:
            payment = MercadoPagoAdapter.create_direct_payment(order, method, **payment_data)
        except PaymentValidationError as e:
            return ServiceResult.from_exception(e)
        except GatewayUnavailableError as e:
            logger.warning("Direct payment deferred, gateway unavailable", extra=log_context)
            return ServiceResult.failure(
                "The payment provider is temporarily unavailable. Please try again.",
                error_code=e.error_code,
            )
        except GatewayRejectedError as e:
            OrderLedger.apply_status(
                order.id,
                PaymentOrderState.FAILED,
                source="checkout",
                reason=e.message,
            )
            return ServiceResult.failure(
                "The payment provider rejected this payment.",
                error_code=e.error_code,
            )

        order = OrderLedger.attach_checkout(
            order.id,
            CheckoutSession(
                checkout_url=payment.ticket_url,
                external_reference=payment.external_reference,
                raw_response=payment.raw_response,
            ),
        )

        if payment.status not in (None, PaymentOrderState.PENDING):
            try:
                order = OrderLedger.apply_status(
                    order.id,
                    payment.status,
                    source="checkout",
                    event_payload=payment.raw_response,
                    reason=payment.status_detail or None,
                ).order
            except (DuplicateEventError, StaleTransitionError):
                logger.info(
                    "Order moved before the direct payment result was applied",
                    extra={**log_context, "provider_status": payment.status},
                )
                order = PaymentOrder.objects.get(pk=order.pk)

        logger.info(
            "Direct payment created",
            extra={
                **log_context,
                "provider_payment_id": payment.payment_id,
                "provider_status": payment.status,
            },
        )
        return ServiceResult.success(
            DirectPaymentResult(
                order=order,
                method=method,
                provider_payment_id=payment.payment_id,
                status=order.public_status,
                status_detail=payment.status_detail,
                qr_code=payment.qr_code,
                qr_code_base64=payment.qr_code_base64,
                ticket_url=payment.ticket_url,
                barcode=payment.barcode,
            )
        )

    @staticmethod
    def _purchase_blocked(user: User, course: Course) -> ServiceResult | None:
        """Failure for a course that cannot be bought, otherwise None."""
        if course.is_free:
            return ServiceResult.failure(
                "This course is free; enroll directly",
                error_code="PAYMENT_NOT_REQUIRED",
            )
        if EnrollmentGranter.is_enrolled(user.id, course.id):
            return ServiceResult.failure(
                "You are already enrolled in this course",
                error_code="ALREADY_ENROLLED",
            )
        return None

    @classmethod
    def _create_provider_checkout(cls, order: PaymentOrder) -> ServiceResult[CheckoutResult]:
        adapter = get_adapter(order.gateway)
        try:
            session: CheckoutSession = adapter.create_checkout(order)
        except GatewayUnavailableError as e:
            cls.get_logger().warning(
                "Checkout deferred, gateway unavailable",
                extra={"payment_order_id": str(order.id), "gateway": order.gateway},
            )
            return ServiceResult.failure(
                "The payment provider is temporarily unavailable. Please try again.",
                error_code=e.error_code,
            )
        except GatewayRejectedError as e:
            OrderLedger.apply_status(
                order.id,
                PaymentOrderState.FAILED,
                source="checkout",
                reason=e.message,
            )
            return ServiceResult.failure(
                "The payment provider rejected this checkout.",
                error_code=e.error_code,
            )

        order = OrderLedger.attach_checkout(order.id, session)
        return ServiceResult.success(cls._result(order))

    @classmethod
    def _cancel_superseded(cls, order: PaymentOrder, new_gateway: str) -> None:
        try:
            OrderLedger.apply_status(
                order.id,
                PaymentOrderState.CANCELLED,
                source="checkout",
                event_payload={"superseded_by_gateway": new_gateway},
            )
        except (DuplicateEventError, StaleTransitionError):
            # Moved on concurrently; the open-order constraint guards the insert.
            pass

    @staticmethod
    def _has_handle(order: PaymentOrder) -> bool:
        return bool(order.checkout_url or order.client_secret)

    @staticmethod
    def _result(order: PaymentOrder, reused: bool = False) -> CheckoutResult:
        return CheckoutResult(
            order=order,
            gateway=order.gateway,
            checkout_url=order.checkout_url or None,
            client_secret=order.client_secret or None,
            reused=reused,
        )
