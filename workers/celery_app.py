"""Celery application: broker, result backend and ETA settings for the monitor tasks."""
from celery import Celery

from core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "thumbwatch",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "workers.tasks_monitor",
    ],
)

# Checks are armed days ahead; Redis must not redeliver an ETA task before it is due.
_visibility_timeout = (settings.check_interval_ceiling_days + 1) * 24 * 60 * 60

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    broker_transport_options={"visibility_timeout": _visibility_timeout},
    result_expires=_visibility_timeout,
)
