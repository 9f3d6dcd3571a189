"""
Celery configuration for the course payments service.

Celery runs the reconciliation work that must not block a request:
- Processing recorded provider webhooks (payments.tasks.process_webhook_event)
- Retrying enrollment grants owed by succeeded orders
- Periodic sweeps of stale orders and deferred webhooks (celery-beat)

Redis is both the message broker and result backend. Tasks are
auto-discovered from all installed Django apps; beat schedules are stored
in the database by django-celery-beat (see payments migration 0002).

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Celery looks for a tasks.py module in each installed app
app.autodiscover_tasks()
