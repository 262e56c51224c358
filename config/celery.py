import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("booking_engine")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

app.conf.beat_schedule = {
    # Hosted checkouts that returned without a final status - every 5 minutes
    "recheck-awaiting-payments": {
        "task": "payments.recheck_awaiting_payments",
        "schedule": 300.0,
        "options": {"expires": 240},
    },
}

app.conf.timezone = "America/Bogota"
