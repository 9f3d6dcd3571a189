"""
Add celery-beat schedules for background reconciliation.

- Drain deferred webhook events every 5 minutes
- Sweep stale pending/processing orders every 10 minutes
- Retry pending enrollment grants every 15 minutes
"""

from django.db import migrations

SCHEDULES = [
    {
        "name": "Drain Deferred Payment Webhooks",
        "task": "payments.tasks.drain_deferred_webhooks",
        "every": 5,
        "description": (
            "Re-queues valid webhook events left unprocessed "
            "(queueing failure, orphaned reference, processing error)."
        ),
    },
    {
        "name": "Sweep Stale Payment Orders",
        "task": "payments.workers.sweeper.sweep_stale_orders",
        "every": 10,
        "description": (
            "Fails processing orders past PAYMENT_PROCESSING_CEILING_MINUTES and "
            "expires integrated-gateway pending orders past PAYMENT_PENDING_TTL_HOURS."
        ),
    },
    {
        "name": "Retry Pending Enrollment Grants",
        "task": "payments.tasks.retry_pending_enrollments",
        "every": 15,
        "description": (
            "Grants enrollment for succeeded orders still flagged enrollment_pending."
        ),
    },
]


def create_periodic_tasks(apps, schema_editor):
    """Create the periodic tasks for payment reconciliation."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for entry in SCHEDULES:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=entry["every"],
            period="minutes",
        )
        PeriodicTask.objects.get_or_create(
            name=entry["name"],
            defaults={
                "task": entry["task"],
                "interval": schedule,
                "enabled": True,
                "description": entry["description"],
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(
        name__in=[entry["name"] for entry in SCHEDULES],
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
