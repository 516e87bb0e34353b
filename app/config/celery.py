"""
Celery configuration for the billing service.

Celery runs the work that must not block a request:
- Notification email delivery (queued on transaction commit)
- Daily subscription expiry
- Daily renewal reminders for subscriptions about to roll over
- Weekly cleanup of processed webhook receipts

Redis is both the message broker and result backend. The periodic schedule
lives in settings.CELERY_BEAT_SCHEDULE; tasks are auto-discovered from the
installed apps.

Usage:
    # Run a worker and the scheduler
    celery -A config worker -l info
    celery -A config beat -l info

    # Trigger a task by hand
    from payments.tasks import expire_subscriptions
    expire_subscriptions.delay(dry_run=True)

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("billing")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Looks for a tasks.py module in each installed app
app.autodiscover_tasks()
