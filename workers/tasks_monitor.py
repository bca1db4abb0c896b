"""Thumbnail monitoring tasks: each check re-arms the next one."""
from core import db
from core.pipeline import CHECK_TASK_NAME
from workers.celery_app import celery_app
from workers.runtime import build_monitor


@celery_app.task(name=CHECK_TASK_NAME, bind=True, rate_limit="60/m")
def check_thumbnail_changes(self, video_id: int) -> dict:
    db.init_db()
    report = build_monitor().run_cycle(video_id, task_id=self.request.id)
    return report.as_dict()


@celery_app.task(name="workers.tasks_monitor.reschedule_all_videos")
def reschedule_all_videos() -> dict:
    db.init_db()
    return build_monitor().reschedule_all()
