"""
State machine enums and helpers for payment models.

This module defines the state enums used by payment models with django-fsm
and the forward-transition rule every writer goes through.
"""

from payments.state_machines.states import (
    DirectPaymentMethod,
    PaymentGateway,
    PaymentOrderState,
    PublicPaymentStatus,
    TransitionKind,
    WebhookOutcome,
    classify_transition,
)

__all__ = [
    "DirectPaymentMethod",
    "PaymentGateway",
    "PaymentOrderState",
    "PublicPaymentStatus",
    "TransitionKind",
    "WebhookOutcome",
    "classify_transition",
]
