"""
Factory Boy factories for payment test data.

This module provides factories for creating test instances of payment models.
Factories generate realistic test data while allowing easy customization.

Usage:
    from payments.tests.factories import (
        ExternalCheckoutRecordFactory,
        PaymentOrderFactory,
        WebhookEventFactory,
    )

    # A pending Stripe order with a PaymentIntent reference
    order = PaymentOrderFactory()

    # A pending Hotmart order (no provider reference)
    order = PaymentOrderFactory(hotmart=True)

    # Move it with the FSM methods, never by assigning status
    order.mark_processing()
    order.save()
"""

import factory

from authentication.tests.factories import UserFactory
from catalog.tests.factories import CourseFactory
from payments.models import ExternalCheckoutRecord, PaymentOrder, WebhookEvent
from payments.models.webhook_event import build_dedup_key
from payments.state_machines import PaymentGateway, PaymentOrderState, WebhookOutcome


class PaymentOrderFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating PaymentOrder instances.

    Default creates a PENDING Stripe order for the course price, with a
    PaymentIntent reference and client secret already attached.

    Example:
        # Mercado Pago order
        order = PaymentOrderFactory(mercadopago=True)

        # Order without a checkout handle yet
        order = PaymentOrderFactory(external_reference=None, client_secret="")
    """

    class Meta:
        model = PaymentOrder
        skip_postgeneration_save = True

    user = factory.SubFactory(UserFactory)
    course = factory.SubFactory(CourseFactory)
    gateway = PaymentGateway.STRIPE
    amount_cents = factory.SelfAttribute("course.price_cents")
    currency = factory.SelfAttribute("course.currency")
    external_reference = factory.Sequence(lambda n: f"pi_test_{n:06d}")
    client_secret = factory.LazyAttribute(
        lambda o: f"{o.external_reference}_secret_test" if o.external_reference else ""
    )
    checkout_url = ""
    # Note: status is managed by FSM, default is PENDING

    class Params:
        mercadopago = factory.Trait(
            gateway=PaymentGateway.MERCADOPAGO,
            course=factory.SubFactory(CourseFactory, mercadopago=True),
            external_reference=factory.Sequence(lambda n: f"order_mp_{n:06d}"),
            client_secret="",
            checkout_url=factory.LazyAttribute(
                lambda o: f"https://www.mercadopago.com.br/checkout/v1/redirect?pref_id={o.external_reference}"
            ),
        )
        hotmart = factory.Trait(
            gateway=PaymentGateway.HOTMART,
            course=factory.SubFactory(CourseFactory, hotmart=True),
            external_reference=None,
            client_secret="",
            checkout_url=factory.SelfAttribute("course.external_checkout_url"),
        )
        kiwify = factory.Trait(
            gateway=PaymentGateway.KIWIFY,
            course=factory.SubFactory(CourseFactory, kiwify=True),
            external_reference=None,
            client_secret="",
            checkout_url=factory.SelfAttribute("course.external_checkout_url"),
        )


class WebhookEventFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating WebhookEvent instances.

    Default creates a verified, unprocessed Stripe
    payment_intent.succeeded event.

    Example:
        event = WebhookEventFactory(
            external_reference=order.external_reference,
            declared_status=PaymentOrderState.FAILED,
            event_type="payment_intent.payment_failed",
        )
    """

    class Meta:
        model = WebhookEvent

    gateway = PaymentGateway.STRIPE
    event_type = "payment_intent.succeeded"
    external_reference = factory.Sequence(lambda n: f"pi_test_{n:06d}")
    declared_status = PaymentOrderState.SUCCEEDED
    provider_event_id = factory.Sequence(lambda n: f"evt_test_{n:06d}")
    provider_object_id = factory.SelfAttribute("external_reference")
    signature_valid = True
    outcome = WebhookOutcome.RECEIVED
    dedup_key = factory.LazyAttribute(
        lambda o: build_dedup_key(o.gateway, o.external_reference, o.declared_status)
    )
    payload = factory.LazyAttribute(
        lambda o: {
            "id": o.provider_event_id,
            "type": o.event_type,
            "data": {"object": {"id": o.external_reference}},
        }
    )


class ExternalCheckoutRecordFactory(factory.django.DjangoModelFactory):
    """Factory for tax ids captured before a redirect checkout."""

    class Meta:
        model = ExternalCheckoutRecord

    user = factory.SubFactory(UserFactory)
    course = factory.SubFactory(CourseFactory, hotmart=True)
    tax_id = factory.Sequence(lambda n: f"{n:011d}")
