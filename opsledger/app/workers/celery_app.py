"""Worker and scheduler entry point for the daily rental bill run.

    celery -A opsledger.app.workers.celery_app worker --loglevel=info
    celery -A opsledger.app.workers.celery_app beat --loglevel=info
"""

from __future__ import annotations

from celery import Celery
from celery.schedules import crontab

from opsledger.app.core.config import settings

celery = Celery(
    "opsledger",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

# Beat schedules run on the business calendar
celery.conf.update(timezone=settings.BUSINESS_TIMEZONE, enable_utc=True)

celery.autodiscover_tasks(["opsledger.app.workers.tasks"], related_name="rental_bills")

celery.conf.beat_schedule = {
    "generate-rental-bills-daily": {
        "task": "opsledger.app.workers.tasks.rental_bills.generate_due_rental_bills",
        "schedule": crontab(hour=1, minute=0),
    },
}
