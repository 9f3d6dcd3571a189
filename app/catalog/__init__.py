"""
Catalog boundary.

The course catalog (lessons, release-day visibility, authoring) is owned by
another part of the platform. This app keeps only the columns the payment
core reads when a checkout starts: price, currency, which gateway sells the
course and, for redirect gateways, the external checkout URL.

Usage:
    from catalog.services import CatalogService

    course = CatalogService.get_course(course_id)
    if course.is_free:
        ...
"""
