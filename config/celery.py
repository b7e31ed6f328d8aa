import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("hostelhub")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

app.conf.beat_schedule = {
    # Expired holds and unpaid bookings past their payment deadline
    "expire-stale-bookings": {
        "task": "bookings.expire_stale_bookings",
        "schedule": 60.0,
        "options": {"expires": 50},
    },
}
