"""Durable one-shot scheduling on top of Celery ETA tasks."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from celery import Celery

from core.errors import ScheduleError

logger = logging.getLogger(__name__)


class CeleryTaskScheduler:
    def __init__(self, app: Celery) -> None:
        self.app = app

    def schedule_at(self, run_at: datetime, task_name: str, payload: dict[str, Any]) -> str:
        try:
            result = self.app.send_task(task_name, kwargs=payload, eta=run_at)
        except Exception as error:
            raise ScheduleError(f"Failed to schedule {task_name} at {run_at.isoformat()}: {error}") from error
        logger.debug("Scheduled %s(%s) at %s as %s", task_name, payload, run_at.isoformat(), result.id)
        return result.id

    def cancel(self, task_id: str) -> None:
        # Revoking an unknown or already executed id is a no-op for Celery.
        try:
            self.app.control.revoke(task_id)
        except Exception as error:
            raise ScheduleError(f"Failed to revoke task {task_id}: {error}") from error
