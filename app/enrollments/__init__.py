"""
Enrollments app: course-access records.

An Enrollment is the only thing that grants a user access to a course.
Rows are created exclusively through EnrollmentGranter, either when a
PaymentOrder reaches succeeded or directly for free courses.

Usage:
    from enrollments.services import EnrollmentGranter

    result = EnrollmentGranter.grant(user.id, course.id, order_id=order.id)
    result.created  # False when the user was already enrolled
"""
