"""Thumbnail monitor: one recheck cycle per invocation, re-arming itself.

Each cycle fetches the source thumbnail, re-decorates it when its digest
changed, then cancels the stale task, arms the next one and persists the
outcome inside a single row-locked transaction.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Protocol

from connectors.base import BaseConnector
from core.contracts import MonitoredVideo
from core.db.videos import VideoStore
from core.errors import DecodeError, EntityNotFound, PersistenceError, ScheduleError, StorageError
from core.imaging import ThumbnailDecorator
from rules.interval import DEFAULT_CEILING_DAYS, next_check_interval
from rules.tracker import Changed, CheckError, CheckOutcome, evaluate_change

logger = logging.getLogger(__name__)

CHECK_TASK_NAME = "workers.tasks_monitor.check_thumbnail_changes"
INITIAL_CHECK_DELAY = timedelta(days=1)


class TaskScheduler(Protocol):
    def schedule_at(self, run_at: datetime, task_name: str, payload: dict[str, Any]) -> str:
        ...

    def cancel(self, task_id: str) -> None:
        ...


class ObjectStore(Protocol):
    def put(self, key: str, data: bytes, content_type: str) -> str:
        ...

    def delete(self, key: str) -> None:
        ...

    def get_public_url(self, key: str) -> str:
        ...


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_thumbnail_key() -> str:
    return f"{uuid.uuid4().hex[:8]}.jpg"


@dataclass
class CycleReport:
    """Outcome of a single check cycle."""

    video_id: int
    status: str  # changed | unchanged | error | not_found | schedule_failed | stale
    next_interval_days: Optional[int] = None
    scheduled_task_id: Optional[str] = None
    detail: str = ""

    def as_dict(self) -> dict:
        return asdict(self)


class ThumbnailMonitor:
    def __init__(
        self,
        store: VideoStore,
        scheduler: TaskScheduler,
        object_store: ObjectStore,
        connector: BaseConnector,
        decorator: ThumbnailDecorator,
        ceiling_days: int = DEFAULT_CEILING_DAYS,
        clock: Callable[[], datetime] = utcnow,
        key_factory: Callable[[], str] = new_thumbnail_key,
    ) -> None:
        self.store = store
        self.scheduler = scheduler
        self.object_store = object_store
        self.connector = connector
        self.decorator = decorator
        self.ceiling_days = ceiling_days
        self.clock = clock
        self.key_factory = key_factory

    # ------------------------------------------------------------------
    # Check cycle
    # ------------------------------------------------------------------

    def run_cycle(self, video_id: int, task_id: Optional[str] = None) -> CycleReport:
        """Run one check for ``video_id``.

        ``task_id`` is the id of the delivering task, when there is one. A
        delivery that is not the video's stored task and arrives before the
        video is due is reported as ``stale`` and changes nothing.
        """
        video = self.store.get(video_id)
        if video is None:
            logger.info("Video %s not found for thumbnail check", video_id)
            return CycleReport(video_id=video_id, status="not_found")
        if self._is_stale(video, task_id):
            return self._stale_report(video, task_id)

        outcome = evaluate_change(
            video.original_thumbnail_url, video.last_thumbnail_hash, self.connector
        )
        changed = isinstance(outcome, Changed)
        errored = isinstance(outcome, CheckError)
        thumbnail_key = video.thumbnail_key
        detail = ""

        if isinstance(outcome, CheckError):
            logger.warning("Failed to check thumbnail for video %s: %s", video.video_id, outcome.reason)
            detail = outcome.reason
        elif isinstance(outcome, Changed):
            logger.info("Thumbnail changed for video %s, regenerating", video.video_id)
            try:
                thumbnail_key = self._store_decorated(outcome.raw_bytes, thumbnail_key)
            except (DecodeError, StorageError) as error:
                logger.error("Failed to redecorate thumbnail for video %s: %s", video.video_id, error)
                changed, errored = False, True
                detail = f"decoration_failed: {error}"
        else:
            logger.info("Thumbnail unchanged for video %s, increasing check interval", video.video_id)

        return self._persist_and_reschedule(
            video_id, task_id, outcome, changed, errored, thumbnail_key, video.thumbnail_key, detail
        )

    def _is_stale(self, video: MonitoredVideo, task_id: Optional[str]) -> bool:
        if task_id is None or task_id == video.scheduled_task_id:
            return False
        reference = video.last_checked_at or video.created_at
        if reference is None:
            return False
        return self.clock() < reference + timedelta(days=video.check_interval_days)

    def _stale_report(self, video: MonitoredVideo, task_id: Optional[str]) -> CycleReport:
        logger.info(
            "Ignoring early delivery %s for video %s, pending task is %s",
            task_id,
            video.id,
            video.scheduled_task_id,
        )
        return CycleReport(
            video_id=video.id,
            status="stale",
            scheduled_task_id=video.scheduled_task_id,
            detail=f"superseded task {task_id}",
        )

    def _store_decorated(self, raw_bytes: bytes, thumbnail_key: Optional[str]) -> str:
        decorated = self.decorator.decorate(raw_bytes)
        key = thumbnail_key or self.key_factory()
        self.object_store.put(key, decorated, self.decorator.content_type)
        return key

    def _discard_unsaved_artifact(self, key: Optional[str], saved_key: Optional[str]) -> None:
        if not key or key == saved_key:
            return
        try:
            self.object_store.delete(key)
        except StorageError as error:
            logger.warning("Failed to remove unsaved artifact %s: %s", key, error)

    def _persist_and_reschedule(
        self,
        video_id: int,
        task_id: Optional[str],
        outcome: CheckOutcome,
        changed: bool,
        errored: bool,
        thumbnail_key: Optional[str],
        previous_key: Optional[str],
        detail: str,
    ) -> CycleReport:
        status = "error" if errored else ("changed" if changed else "unchanged")
        new_task_id: Optional[str] = None
        try:
            with self.store.unit_of_work(video_id) as uow:
                current = uow.video
                if current is None:
                    logger.info("Video %s deleted mid-cycle, not rescheduling", video_id)
                    self._discard_unsaved_artifact(thumbnail_key, previous_key)
                    return CycleReport(video_id=video_id, status="not_found")
                if self._is_stale(current, task_id):
                    self._discard_unsaved_artifact(thumbnail_key, current.thumbnail_key)
                    return self._stale_report(current, task_id)

                self._cancel(current.scheduled_task_id)
                next_days = next_check_interval(
                    current.check_interval_days, changed, errored, self.ceiling_days
                )
                now = self.clock()
                try:
                    new_task_id = self.scheduler.schedule_at(
                        now + timedelta(days=next_days), CHECK_TASK_NAME, {"video_id": video_id}
                    )
                except ScheduleError as error:
                    logger.error("Failed to schedule next check for video %s: %s", video_id, error)
                    self._discard_unsaved_artifact(thumbnail_key, current.thumbnail_key)
                    return CycleReport(
                        video_id=video_id,
                        status="schedule_failed",
                        next_interval_days=next_days,
                        detail=str(error),
                    )

                fields: dict[str, Any] = {
                    "check_interval_days": next_days,
                    "last_checked_at": now,
                    "scheduled_task_id": new_task_id,
                }
                if not errored:
                    fields["last_thumbnail_hash"] = outcome.new_hash
                if thumbnail_key != current.thumbnail_key:
                    fields["thumbnail_key"] = thumbnail_key
                uow.patch(**fields)
                uow.log_check_run(status, detail or f"next_interval_days={next_days}")
        except PersistenceError:
            # The armed task reruns the whole cycle once it fires.
            logger.error(
                "Persisting check for video %s failed, task %s stays armed as the retry",
                video_id,
                new_task_id,
            )
            self._discard_unsaved_artifact(thumbnail_key, previous_key)
            raise

        logger.info(
            "Video %s check %s, next check in %d day(s) (task %s)",
            video_id,
            status,
            next_days,
            new_task_id,
        )
        return CycleReport(
            video_id=video_id,
            status=status,
            next_interval_days=next_days,
            scheduled_task_id=new_task_id,
            detail=detail,
        )

    def _cancel(self, task_id: Optional[str]) -> None:
        if not task_id:
            return
        try:
            self.scheduler.cancel(task_id)
        except ScheduleError as error:
            logger.warning("Failed to cancel scheduled task %s: %s", task_id, error)

    # ------------------------------------------------------------------
    # Scheduling maintenance
    # ------------------------------------------------------------------

    def arm_initial_check(self, video: MonitoredVideo) -> Optional[str]:
        """Arm the first check for a newly registered video."""
        try:
            task_id = self.scheduler.schedule_at(
                self.clock() + INITIAL_CHECK_DELAY, CHECK_TASK_NAME, {"video_id": video.id}
            )
        except ScheduleError as error:
            logger.error("Failed to schedule initial check for video %s: %s", video.id, error)
            return None
        self.store.patch(video.id, scheduled_task_id=task_id)
        return task_id

    def reschedule_all(self) -> dict:
        """Cancel and re-arm every video's pending check at its current interval."""
        videos = self.store.list_all()
        logger.info("Rescheduling %d videos", len(videos))

        rescheduled = 0
        errors = 0
        for video in videos:
            try:
                with self.store.unit_of_work(video.id) as uow:
                    current = uow.video
                    if current is None:
                        continue
                    self._cancel(current.scheduled_task_id)
                    task_id = self.scheduler.schedule_at(
                        self.clock() + timedelta(days=current.check_interval_days),
                        CHECK_TASK_NAME,
                        {"video_id": current.id},
                    )
                    uow.patch(scheduled_task_id=task_id)
                rescheduled += 1
            except (ScheduleError, PersistenceError) as error:
                errors += 1
                logger.error("Failed to reschedule video %s (%s): %s", video.video_id, video.id, error)

        logger.info("Rescheduling complete: %d successful, %d errors", rescheduled, errors)
        return {"rescheduled": rescheduled, "errors": errors}

    def schedule_status(self) -> list[dict]:
        now = self.clock()
        statuses = []
        for video in self.store.list_all():
            next_check_in_hours = None
            if video.last_checked_at is not None:
                next_check = video.last_checked_at + timedelta(days=video.check_interval_days)
                # Half hours round up.
                next_check_in_hours = math.floor((next_check - now).total_seconds() / 3600 + 0.5)
            statuses.append(
                {
                    "id": video.id,
                    "video_id": video.video_id,
                    "title": video.title,
                    "scheduled_task_id": video.scheduled_task_id,
                    "check_interval_days": video.check_interval_days,
                    "last_checked_at": video.last_checked_at,
                    "next_check_in_hours": next_check_in_hours,
                    "has_scheduled_task": bool(video.scheduled_task_id),
                }
            )
        return statuses

    def delete_video(self, video_id: int) -> None:
        """Remove a video, its pending check and its decorated artifact."""
        video = self.store.get(video_id)
        if video is None:
            raise EntityNotFound(video_id)

        self._cancel(video.scheduled_task_id)
        if video.thumbnail_key:
            try:
                self.object_store.delete(video.thumbnail_key)
            except StorageError as error:
                logger.warning("Failed to delete artifact %s: %s", video.thumbnail_key, error)
        self.store.delete(video_id)
        logger.info("Deleted video %s (%s)", video.video_id, video_id)
