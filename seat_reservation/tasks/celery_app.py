"""
Celery application configuration for background tasks.
"""

from celery import Celery
from ..config import get_settings

settings = get_settings()

celery_app = Celery(
    "seat_reservation",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "seat_reservation.tasks.notification_tasks",
    ]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=5 * 60,
    task_soft_time_limit=4 * 60,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    # Reservations are already committed when a task is queued; an unreachable
    # broker must not hold the request open.
    broker_connection_timeout=2,
    task_publish_retry=False,
)
