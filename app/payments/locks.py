"""
Row-locking helpers for payment order transitions.

Two writers race on the same PaymentOrder: the webhook processor and
the status poller. Both go through one of these helpers before
applying a transition.

1. **Pessimistic** (lock_row)
   - select_for_update on the current row
   - Use for: webhook processing, the deferred drain, the sweeper

2. **Optimistic** (check_version)
   - Lock the row only if it is still at the version the caller read
   - Use for: the status poller, which talks to the provider between
     reading the order and writing the result

Usage:
    from payments.locks import check_version, lock_row

    with transaction.atomic():
        order = check_version(PaymentOrder, order_id, expected_version=3)
        order.mark_processing()
        order.save()  # version -> 4

Note:
    Both helpers must run inside transaction.atomic(); the row lock is
    held until the outer transaction commits or rolls back.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

from django.db import models

from payments.exceptions import PaymentNotFoundError, StaleRecordError

if TYPE_CHECKING:
    from typing import Any

# Type variable for model classes
T = TypeVar("T", bound=models.Model)


def _not_found(model_class: type[models.Model], pk: Any) -> PaymentNotFoundError:
    model_name = model_class.__name__
    return PaymentNotFoundError(
        f"{model_name} {pk} not found",
        error_code=f"{model_name.upper()}_NOT_FOUND",
        details={"pk": str(pk)},
    )


def lock_row(model_class: type[T], pk: Any) -> T:
    """
    Lock a record for update regardless of its version.

    Args:
        model_class: Django model class
        pk: Primary key of the record

    Returns:
        The locked model instance

    Raises:
        PaymentNotFoundError: If record doesn't exist
    """
    instance = model_class.objects.select_for_update().filter(pk=pk).first()
    if instance is None:
        raise _not_found(model_class, pk)
    return instance


def check_version(
    model_class: type[T],
    pk: Any,
    expected_version: int,
) -> T:
    """
    Atomically check version and lock a record for update.

    Combines optimistic locking (version check) with pessimistic locking
    (select_for_update) for the actual update operation.

    Args:
        model_class: Django model class (must have 'version' field)
        pk: Primary key of the record
        expected_version: Version the caller expects

    Returns:
        The locked model instance

    Raises:
        StaleRecordError: If version doesn't match (concurrent modification)
        PaymentNotFoundError: If record doesn't exist

    Example:
        with transaction.atomic():
            order = check_version(PaymentOrder, order_id, expected_version=3)
            order.succeed()
            order.save()  # Version auto-increments to 4
    """
    instance = (
        model_class.objects.select_for_update()
        .filter(pk=pk, version=expected_version)
        .first()
    )
    if instance is not None:
        return instance

    current_version = (
        model_class.objects.filter(pk=pk).values_list("version", flat=True).first()
    )
    if current_version is None:
        raise _not_found(model_class, pk)

    model_name = model_class.__name__
    raise StaleRecordError(
        f"{model_name} {pk} has been modified "
        f"(expected version {expected_version}, current {current_version})",
        details={
            "pk": str(pk),
            "expected_version": expected_version,
            "current_version": current_version,
        },
    )


__all__ = [
    "check_version",
    "lock_row",
]
