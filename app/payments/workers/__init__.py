"""
Workers for background payment reconciliation.

This module contains Celery tasks for background order maintenance:
- Sweeper: Closes orders the providers never resolved

Usage:
    from payments.workers import sweep_stale_orders

    # Trigger manual processing
    sweep_stale_orders.delay()
"""

from payments.workers.sweeper import sweep_stale_orders

__all__ = [
    "sweep_stale_orders",
]
