"""
Payment-specific exceptions for checkout, webhook and reconciliation flows.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - Order/event lookup failures
    ├── PaymentValidationError - Invalid input (tax id, course setup)
    ├── SignatureInvalidError - Webhook authenticity check failed
    └── PaymentProcessingError - Gateway call failures
        └── GatewayError - Base for all provider errors
            ├── GatewayUnavailableError - Network/5xx (transient, retry)
            │   ├── GatewayTimeoutError - Request timed out
            │   └── GatewayRateLimitError - Provider throttled us
            ├── GatewayRejectedError - Provider refused (permanent)
            │   └── CardDeclinedError - Card declined by issuer
            └── GatewayOperationNotSupportedError - Redirect-only gateway

    DuplicateEventError - Same status already recorded (inherits ConflictError)
    StaleTransitionError - Backward/terminal-exit move (inherits ConflictError)
    EnrollmentConflictError - (user, course) already enrolled (inherits ConflictError)
    StaleRecordError - Optimistic locking conflict (inherits ConflictError)
    InvalidStateTransitionError - FSM transition not allowed (inherits ConflictError)
    OpenOrderConflictError - A payment is already in flight (inherits ConflictError)

Usage:
    from payments.exceptions import GatewayUnavailableError, GatewayRejectedError

    try:
        session = adapter.create_checkout(order)
    except GatewayUnavailableError:
        # order stays pending, client may retry
        ...
    except GatewayRejectedError as e:
        OrderLedger.apply_status(order.id, "failed", source="checkout", reason=e.message)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    All payment-specific exceptions inherit from this class,
    which itself inherits from BaseApplicationError for
    consistent API error responses.
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError):
    """
    Raised when a payment entity cannot be found.

    Use for:
    - PaymentOrder lookup fails
    - WebhookEvent lookup fails
    - No order and no enrollment for a status query
    """

    default_error_code: str = "PAYMENT_NOT_FOUND"


class PaymentValidationError(PaymentError):
    """
    Raised when payment input validation fails.

    Use for:
    - Malformed tax id (CPF)
    - Course not sold through a redirect gateway
    - Free course sent to the checkout endpoint
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class SignatureInvalidError(PaymentError):
    """
    Raised when a webhook fails authenticity verification.

    The event is recorded with signature_valid=False for audit and
    never processed.
    """

    default_error_code: str = "SIGNATURE_INVALID"


class PaymentProcessingError(PaymentError):
    """
    Raised when payment processing fails.

    Use for:
    - Provider API errors
    - Payment gateway failures
    - Processing timeouts
    """

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"


# =============================================================================
# Gateway Exceptions
# =============================================================================


class GatewayError(PaymentProcessingError):
    """
    Base exception for all payment-provider errors.

    Provides common attributes for provider error handling:
    - gateway: Provider tag (stripe, mercadopago, hotmart, kiwify)
    - provider_code: The provider's own error code, when it sent one
    - is_retryable: Whether the operation can be retried

    Use is_retryable to determine retry behavior:
    - True: Transient error, order stays as it was
    - False: Permanent error, the checkout attempt fails

    Example:
        try:
            adapter.query_status(order.external_reference)
        except GatewayError as e:
            if e.is_retryable:
                return local_status
            raise
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        gateway: str | None = None,
        provider_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if gateway:
            details["gateway"] = gateway
        if provider_code:
            details["provider_code"] = provider_code
        super().__init__(message, error_code=error_code, details=details)
        self.gateway = gateway
        self.provider_code = provider_code


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry with backoff)
# -----------------------------------------------------------------------------


class GatewayUnavailableError(GatewayError):
    """
    Provider is temporarily unreachable.

    This covers:
    - Network connectivity issues
    - Provider server errors (5xx)
    - DNS resolution failures
    - SSL/TLS errors

    The order is left as it was; the status endpoint answers with
    the last known local status.
    """

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True


class GatewayTimeoutError(GatewayUnavailableError):
    """
    Provider call timed out.

    The request was sent but no response was received within
    PAYMENT_GATEWAY_TIMEOUT_SECONDS.

    IMPORTANT: The operation may have succeeded on the provider's side.
    Checkout creation carries an idempotency key derived from the order
    so a retry returns the original response.
    """

    default_error_code: str = "GATEWAY_TIMEOUT"


class GatewayRateLimitError(GatewayUnavailableError):
    """Rate limited by the provider API."""

    default_error_code: str = "GATEWAY_RATE_LIMITED"


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class GatewayRejectedError(GatewayError):
    """
    Provider refused the request.

    Possible causes:
    - Invalid request parameters (4xx)
    - Authentication misconfiguration
    - Course missing its external checkout URL

    The checkout attempt is moved to failed.
    """

    default_error_code: str = "GATEWAY_REJECTED"
    is_retryable: bool = False


class CardDeclinedError(GatewayRejectedError):
    """
    Card was declined by the issuing bank.

    This is a permanent error - do not retry with the same card.
    """

    default_error_code: str = "CARD_DECLINED"


class GatewayOperationNotSupportedError(GatewayError):
    """
    Raised by redirect-only adapters for webhook and status operations.

    Hotmart and Kiwify only hand out a hosted checkout URL; there is
    nothing to verify or query.
    """

    default_error_code: str = "GATEWAY_OPERATION_NOT_SUPPORTED"
    is_retryable: bool = False


# =============================================================================
# Reconciliation Outcomes
# =============================================================================


class DuplicateEventError(ConflictError):
    """
    Raised when a candidate status equals the order's current status.

    Callers treat this as a no-op and record it on the webhook event.
    """

    default_error_code: str = "DUPLICATE_EVENT"


class StaleTransitionError(ConflictError):
    """
    Raised when a candidate status would move an order backward or out
    of a terminal state.

    Example:
        order.status == "succeeded", webhook reports "failed"
        -> StaleTransitionError, order unchanged
    """

    default_error_code: str = "STALE_TRANSITION"


class EnrollmentConflictError(ConflictError):
    """
    Raised internally when the (user, course) enrollment constraint is hit.

    EnrollmentGranter catches this and treats it as success; it never
    reaches a client.
    """

    default_error_code: str = "ENROLLMENT_EXISTS"


class OpenOrderConflictError(ConflictError):
    """Raised when a checkout starts while a payment is already in flight."""

    default_error_code: str = "PAYMENT_IN_PROGRESS"


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class StaleRecordError(ConflictError):
    """
    Raised when optimistic locking detects concurrent modification.

    This exception indicates that the record was modified by another
    process between read and update operations. The caller should
    either retry the operation with fresh data or abort.

    Attributes:
        details: Contains pk, expected_version, and current_version

    Note:
        This exception inherits from ConflictError (HTTP 409) because
        it represents a state conflict that prevents the operation.
    """

    default_error_code: str = "STALE_RECORD"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a state machine transition is not allowed.

    This exception wraps django-fsm's TransitionNotAllowed to provide
    our standard error format with additional context.

    Example:
        from django_fsm import TransitionNotAllowed

        try:
            order.succeed()
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                f"Cannot succeed payment from '{order.status}' state",
                details={
                    "current_state": order.status,
                    "target_state": "succeeded",
                    "transition": "succeed",
                }
            )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Payment domain
    "PaymentError",
    "PaymentNotFoundError",
    "PaymentValidationError",
    "SignatureInvalidError",
    "PaymentProcessingError",
    # Gateway
    "GatewayError",
    "GatewayUnavailableError",
    "GatewayTimeoutError",
    "GatewayRateLimitError",
    "GatewayRejectedError",
    "CardDeclinedError",
    "GatewayOperationNotSupportedError",
    # Reconciliation outcomes
    "DuplicateEventError",
    "StaleTransitionError",
    "EnrollmentConflictError",
    "OpenOrderConflictError",
    # Concurrency control
    "StaleRecordError",
    "InvalidStateTransitionError",
]
