"""
Payments app for course purchases.

This app handles:
- Checkout initiation across four payment gateways
- Webhook ingestion for Stripe and Mercado Pago
- Status polling with provider reconciliation
- External-checkout intake and out-of-band confirmation
- Background sweeps of stale orders and pending enrollments

Related apps:
    - catalog: Course prices and gateway selection
    - enrollments: EnrollmentGranter, called on successful payment

Usage:
    from payments.services import CheckoutService, StatusResolutionService

    result = CheckoutService.start_checkout(user, course_id)
    result = StatusResolutionService.resolve(user, course_id)
"""
