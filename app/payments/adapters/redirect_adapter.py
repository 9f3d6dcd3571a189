"""
Redirect-only adapters for Hotmart and Kiwify.

These providers only host a static checkout page per course. Nothing maps
the purchase back to a PaymentOrder, so confirmation arrives out of band
(admin action or the token-authenticated external enroll endpoint).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

from payments.adapters.base import CheckoutSession, GatewayAdapter, ParsedEvent
from payments.exceptions import GatewayRejectedError
from payments.state_machines import PaymentGateway

if TYPE_CHECKING:
    from payments.models import PaymentOrder


class RedirectGatewayAdapter(GatewayAdapter):
    """
    Hands out the course's external checkout URL.

    Only create_checkout is supported; every other operation raises
    GatewayOperationNotSupportedError.
    """

    supports_status_query = False

    @classmethod
    def create_checkout(cls, order: PaymentOrder) -> CheckoutSession:
        """
        Return the course's hosted checkout URL.

        Raises:
            GatewayRejectedError: The course has no external checkout URL
        """
        url = order.course.external_checkout_url
        if not url:
            cls.get_logger().error(
                "Course has no external checkout URL",
                extra={
                    "payment_order_id": str(order.id),
                    "course_id": str(order.course_id),
                    "gateway": cls.gateway,
                },
            )
            raise GatewayRejectedError(
                "Course has no external checkout URL configured",
                gateway=cls.gateway,
                provider_code="missing_checkout_url",
                details={"course_id": str(order.course_id)},
            )
        return CheckoutSession(checkout_url=url)

    @classmethod
    def verify_webhook(cls, raw_body: bytes, headers: Mapping[str, str]) -> ParsedEvent:
        raise cls._not_supported("verify_webhook")

    @classmethod
    def resolve_event(cls, event: ParsedEvent) -> ParsedEvent:
        raise cls._not_supported("resolve_event")

    @classmethod
    def query_status(cls, external_reference: str) -> str | None:
        raise cls._not_supported("query_status")


class HotmartAdapter(RedirectGatewayAdapter):
    gateway = PaymentGateway.HOTMART


class KiwifyAdapter(RedirectGatewayAdapter):
    gateway = PaymentGateway.KIWIFY
