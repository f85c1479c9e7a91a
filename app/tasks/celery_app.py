"""
Celery worker for the forex desk's periodic jobs.

Only rate snapshot refreshes run here; stock is changed exclusively by
order approvals and admin adjustments inside API requests.
"""

from celery import Celery

from app.config import settings

RATES_QUEUE = "rates"

celery_app = Celery(
    "forexdesk",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.tasks.rate_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # A refresh that outlives its interval is superseded by the next one.
    result_expires=settings.RATE_REFRESH_INTERVAL_SECONDS,
    task_routes={"app.tasks.rate_tasks.*": {"queue": RATES_QUEUE}},
)

celery_app.conf.beat_schedule = {
    "refresh-rate-snapshots": {
        "task": "app.tasks.rate_tasks.refresh_rate_snapshots",
        "schedule": settings.RATE_REFRESH_INTERVAL_SECONDS,
        "options": {"expires": settings.RATE_REFRESH_INTERVAL_SECONDS},
    },
}
