from __future__ import annotations

import itertools
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

import pytest

from core.contracts import MonitoredVideo
from core.errors import DecodeError, FetchError, PersistenceError, ScheduleError, StorageError
from core.pipeline import ThumbnailMonitor

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class InMemoryUnitOfWork:
    def __init__(self, video: Optional[MonitoredVideo]) -> None:
        self.video = video
        self.staged: dict[str, Any] = {}
        self.runs: list[tuple[str, str]] = []

    def patch(self, **fields: Any) -> None:
        if self.video is None:
            return
        self.staged.update(fields)
        self.video = self.video.model_copy(update=fields)

    def log_check_run(self, status: str, detail: str) -> None:
        self.runs.append((status, detail))


class InMemoryVideoStore:
    def __init__(self) -> None:
        self.videos: dict[int, MonitoredVideo] = {}
        self.check_runs: list[tuple[int, str, str]] = []
        self.fail_commit = False
        self._ids = itertools.count(1)

    def add(self, **fields: Any) -> MonitoredVideo:
        video_pk = fields.pop("id", None) or next(self._ids)
        defaults = {
            "video_id": f"vid{video_pk}",
            "url": f"https://youtu.be/vid{video_pk}",
            "title": f"Video {video_pk}",
            "original_thumbnail_url": f"https://img.example.com/{video_pk}.jpg",
        }
        video = MonitoredVideo(id=video_pk, **{**defaults, **fields})
        self.videos[video.id] = video
        return video

    def get(self, video_id: int) -> Optional[MonitoredVideo]:
        return self.videos.get(video_id)

    def find_by_video_id(self, external_id: str) -> Optional[MonitoredVideo]:
        return next((v for v in self.videos.values() if v.video_id == external_id), None)

    def insert(self, **fields: Any) -> MonitoredVideo:
        existing = self.find_by_video_id(fields["video_id"])
        if existing is not None:
            return existing
        return self.add(created_at=NOW, **fields)

    def patch(self, video_id: int, **fields: Any) -> None:
        if video_id in self.videos:
            self.videos[video_id] = self.videos[video_id].model_copy(update=fields)

    def list_videos(self, limit: int = 10, offset: int = 0) -> list[MonitoredVideo]:
        ordered = sorted(self.videos.values(), key=lambda v: v.id, reverse=True)
        return ordered[offset:offset + limit]

    def list_all(self) -> list[MonitoredVideo]:
        return sorted(self.videos.values(), key=lambda v: v.id)

    def delete(self, video_id: int) -> bool:
        return self.videos.pop(video_id, None) is not None

    @contextmanager
    def unit_of_work(self, video_id: int) -> Iterator[InMemoryUnitOfWork]:
        uow = InMemoryUnitOfWork(self.videos.get(video_id))
        yield uow
        if self.fail_commit and uow.staged:
            raise PersistenceError("commit rejected")
        if uow.video is not None and uow.staged:
            self.videos[video_id] = uow.video
        for status, detail in uow.runs:
            self.check_runs.append((video_id, status, detail))


class FakeScheduler:
    def __init__(self) -> None:
        self.tasks: dict[str, tuple[datetime, str, dict]] = {}
        self.cancelled: list[str] = []
        self.fail_schedule = False
        self.fail_cancel = False
        self._ids = itertools.count(1)

    def schedule_at(self, run_at: datetime, task_name: str, payload: dict[str, Any]) -> str:
        if self.fail_schedule:
            raise ScheduleError("broker unavailable")
        task_id = f"task-{next(self._ids)}"
        self.tasks[task_id] = (run_at, task_name, payload)
        return task_id

    def cancel(self, task_id: str) -> None:
        if self.fail_cancel:
            raise ScheduleError("revoke failed")
        self.cancelled.append(task_id)

    def live_tasks_for(self, video_id: int) -> list[str]:
        return [
            task_id
            for task_id, (_, _, payload) in self.tasks.items()
            if payload.get("video_id") == video_id and task_id not in self.cancelled
        ]


class FakeObjectStore:
    def __init__(self) -> None:
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.fail_put = False

    def put(self, key: str, data: bytes, content_type: str) -> str:
        if self.fail_put:
            raise StorageError("bucket unavailable")
        self.objects[key] = (data, content_type)
        return key

    def delete(self, key: str) -> None:
        self.objects.pop(key, None)

    def get_public_url(self, key: str) -> str:
        return f"https://thumbs.test/{key}"


class FakeConnector:
    def __init__(self) -> None:
        self.responses: dict[str, bytes | Exception] = {}
        self.calls: list[str] = []

    def fetch(self, source_url: str) -> bytes:
        self.calls.append(source_url)
        response = self.responses.get(source_url)
        if response is None:
            raise FetchError(source_url, "404 Not Found", status_code=404)
        if isinstance(response, Exception):
            raise response
        return response


class StubDecorator:
    content_type = "image/jpeg"

    def __init__(self) -> None:
        self.calls = 0

    def decorate(self, image_bytes: bytes) -> bytes:
        self.calls += 1
        if image_bytes.startswith(b"corrupt"):
            raise DecodeError("Unreadable image")
        return b"decorated:" + image_bytes


class FixedClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def store() -> InMemoryVideoStore:
    return InMemoryVideoStore()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def decorator() -> StubDecorator:
    return StubDecorator()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def monitor(store, scheduler, object_store, connector, decorator, clock) -> ThumbnailMonitor:
    keys = (f"key{n:04d}.jpg" for n in itertools.count(1))
    return ThumbnailMonitor(
        store=store,
        scheduler=scheduler,
        object_store=object_store,
        connector=connector,
        decorator=decorator,
        ceiling_days=16,
        clock=clock,
        key_factory=lambda: next(keys),
    )
