from datetime import timedelta

import pytest

from core.errors import FetchError, PersistenceError
from core.pipeline import CHECK_TASK_NAME
from core.processing import hash_content


def _seed(store, connector, content: bytes = b"same", **fields):
    video = store.add(**fields)
    connector.responses[video.original_thumbnail_url] = content
    return video


def test_unchanged_thumbnail_doubles_interval(monitor, store, scheduler, connector, decorator, clock) -> None:
    video = _seed(
        store,
        connector,
        last_thumbnail_hash=hash_content(b"same"),
        check_interval_days=4,
        thumbnail_key="abc.jpg",
        scheduled_task_id="task-old",
    )

    report = monitor.run_cycle(video.id)

    assert report.status == "unchanged"
    assert report.next_interval_days == 8
    saved = store.get(video.id)
    assert saved.check_interval_days == 8
    assert saved.last_thumbnail_hash == hash_content(b"same")
    assert saved.last_checked_at == clock.now
    assert saved.scheduled_task_id == report.scheduled_task_id
    assert scheduler.cancelled == ["task-old"]
    run_at, task_name, payload = scheduler.tasks[report.scheduled_task_id]
    assert run_at == clock.now + timedelta(days=8)
    assert task_name == CHECK_TASK_NAME
    assert payload == {"video_id": video.id}
    assert decorator.calls == 0


def test_changed_thumbnail_resets_interval_and_redecorates_in_place(
    monitor, store, object_store, connector
) -> None:
    video = _seed(
        store,
        connector,
        content=b"fresh",
        last_thumbnail_hash=hash_content(b"stale"),
        check_interval_days=16,
        thumbnail_key="abc.jpg",
    )

    report = monitor.run_cycle(video.id)

    assert report.status == "changed"
    saved = store.get(video.id)
    assert saved.check_interval_days == 1
    assert saved.last_thumbnail_hash == hash_content(b"fresh")
    assert saved.thumbnail_key == "abc.jpg"
    assert object_store.objects["abc.jpg"] == (b"decorated:fresh", "image/jpeg")


def test_changed_thumbnail_without_key_allocates_one(monitor, store, object_store, connector) -> None:
    video = _seed(store, connector, content=b"fresh", last_thumbnail_hash=None)

    monitor.run_cycle(video.id)

    saved = store.get(video.id)
    assert saved.thumbnail_key == "key0001.jpg"
    assert "key0001.jpg" in object_store.objects


def test_fetch_error_holds_interval_and_hash(monitor, store, scheduler, connector, clock) -> None:
    video = store.add(last_thumbnail_hash="h-old", check_interval_days=4)
    connector.responses[video.original_thumbnail_url] = FetchError(
        video.original_thumbnail_url, "connection reset"
    )

    report = monitor.run_cycle(video.id)

    assert report.status == "error"
    assert "connection reset" in report.detail
    saved = store.get(video.id)
    assert saved.check_interval_days == 4
    assert saved.last_thumbnail_hash == "h-old"
    assert saved.last_checked_at == clock.now
    run_at, _, _ = scheduler.tasks[saved.scheduled_task_id]
    assert run_at == clock.now + timedelta(days=4)


def test_decode_failure_is_treated_as_check_error(monitor, store, object_store, connector) -> None:
    video = _seed(
        store,
        connector,
        content=b"corrupt-bytes",
        last_thumbnail_hash="h-old",
        check_interval_days=2,
        thumbnail_key="abc.jpg",
    )

    report = monitor.run_cycle(video.id)

    assert report.status == "error"
    assert report.detail.startswith("decoration_failed")
    saved = store.get(video.id)
    assert saved.check_interval_days == 2
    assert saved.last_thumbnail_hash == "h-old"
    assert object_store.objects == {}


def test_storage_failure_is_treated_as_check_error(monitor, store, object_store, connector) -> None:
    video = _seed(store, connector, content=b"fresh", last_thumbnail_hash="h-old", check_interval_days=8)
    object_store.fail_put = True

    report = monitor.run_cycle(video.id)

    assert report.status == "error"
    saved = store.get(video.id)
    assert saved.check_interval_days == 8
    assert saved.last_thumbnail_hash == "h-old"
    assert saved.thumbnail_key is None


def test_schedule_failure_leaves_entity_untouched(monitor, store, scheduler, connector) -> None:
    video = _seed(
        store,
        connector,
        content=b"fresh",
        last_thumbnail_hash="h-old",
        check_interval_days=4,
        thumbnail_key="abc.jpg",
        scheduled_task_id="task-old",
    )
    before = store.get(video.id)
    scheduler.fail_schedule = True

    report = monitor.run_cycle(video.id)

    assert report.status == "schedule_failed"
    assert report.scheduled_task_id is None
    after = store.get(video.id)
    assert after == before
    assert after.check_interval_days == 4
    assert after.last_thumbnail_hash == "h-old"
    assert after.last_checked_at is None
    assert store.check_runs == []


def test_cancel_failure_does_not_abort_cycle(monitor, store, scheduler, connector) -> None:
    video = _seed(store, connector, last_thumbnail_hash=hash_content(b"same"), scheduled_task_id="task-old")
    scheduler.fail_cancel = True

    report = monitor.run_cycle(video.id)

    assert report.status == "unchanged"
    assert store.get(video.id).scheduled_task_id == report.scheduled_task_id


def test_persistence_failure_keeps_new_task_armed_as_retry(
    monitor, store, scheduler, connector, clock
) -> None:
    video = _seed(
        store,
        connector,
        last_thumbnail_hash=hash_content(b"same"),
        check_interval_days=2,
        last_checked_at=clock.now - timedelta(days=2),
        scheduled_task_id="task-running",
    )
    store.fail_commit = True

    with pytest.raises(PersistenceError):
        monitor.run_cycle(video.id, task_id="task-running")

    assert scheduler.live_tasks_for(video.id) == ["task-1"]
    saved = store.get(video.id)
    assert saved.check_interval_days == 2
    assert saved.scheduled_task_id == "task-running"

    store.fail_commit = False
    clock.now += timedelta(days=4)
    report = monitor.run_cycle(video.id, task_id="task-1")

    assert report.status == "unchanged"
    saved = store.get(video.id)
    assert saved.check_interval_days == 4
    assert saved.scheduled_task_id == report.scheduled_task_id == "task-2"


def test_persistence_failure_discards_unsaved_artifact(monitor, store, object_store, connector) -> None:
    video = _seed(store, connector, content=b"fresh", last_thumbnail_hash="h-old")
    store.fail_commit = True

    with pytest.raises(PersistenceError):
        monitor.run_cycle(video.id)

    assert object_store.objects == {}


def test_early_delivery_of_superseded_task_is_ignored(
    monitor, store, scheduler, connector, decorator, clock
) -> None:
    video = _seed(
        store,
        connector,
        content=b"fresh",
        last_thumbnail_hash="h-old",
        check_interval_days=2,
        last_checked_at=clock.now - timedelta(hours=1),
        scheduled_task_id="task-current",
    )
    before = store.get(video.id)

    report = monitor.run_cycle(video.id, task_id="task-revoked")

    assert report.status == "stale"
    assert report.scheduled_task_id == "task-current"
    assert store.get(video.id) == before
    assert scheduler.tasks == {}
    assert scheduler.cancelled == []
    assert connector.calls == []
    assert decorator.calls == 0
    assert store.check_runs == []


def test_repeat_delivery_after_completed_cycle_is_ignored(monitor, store, scheduler, connector) -> None:
    video = _seed(store, connector, last_thumbnail_hash=hash_content(b"same"), scheduled_task_id="task-0")

    first = monitor.run_cycle(video.id, task_id="task-0")
    second = monitor.run_cycle(video.id, task_id="task-0")

    assert first.next_interval_days == 2
    assert second.status == "stale"
    assert store.get(video.id).check_interval_days == 2
    assert scheduler.live_tasks_for(video.id) == [first.scheduled_task_id]


def test_cycle_superseded_while_fetching_writes_nothing(
    monitor, store, scheduler, object_store, connector, clock
) -> None:
    video = store.add(last_thumbnail_hash="h-old", scheduled_task_id="task-mine")

    class OvertakenConnector:
        def fetch(self, source_url: str) -> bytes:
            store.patch(video.id, scheduled_task_id="task-other", last_checked_at=clock.now)
            return b"fresh"

    monitor.connector = OvertakenConnector()

    report = monitor.run_cycle(video.id, task_id="task-mine")

    assert report.status == "stale"
    assert scheduler.tasks == {}
    assert object_store.objects == {}
    assert store.get(video.id).last_thumbnail_hash == "h-old"


def test_overdue_delivery_is_accepted_even_if_not_stored(monitor, store, connector, clock) -> None:
    video = _seed(
        store,
        connector,
        last_thumbnail_hash=hash_content(b"same"),
        check_interval_days=2,
        last_checked_at=clock.now - timedelta(days=3),
        scheduled_task_id="task-spent",
    )

    report = monitor.run_cycle(video.id, task_id="task-retry")

    assert report.status == "unchanged"
    assert report.next_interval_days == 4


def test_missing_video_is_terminal(monitor, scheduler) -> None:
    report = monitor.run_cycle(999)

    assert report.status == "not_found"
    assert scheduler.tasks == {}


def test_video_deleted_during_fetch_is_not_rescheduled(monitor, store, scheduler) -> None:
    video = store.add(last_thumbnail_hash="h-old")

    class DeletingConnector:
        def fetch(self, source_url: str) -> bytes:
            store.delete(video.id)
            return b"pixels"

    monitor.connector = DeletingConnector()

    report = monitor.run_cycle(video.id)

    assert report.status == "not_found"
    assert scheduler.tasks == {}


def test_consecutive_cycles_keep_exactly_one_pending_task(monitor, store, scheduler, connector) -> None:
    video = _seed(store, connector, last_thumbnail_hash=hash_content(b"same"))

    for _ in range(5):
        monitor.run_cycle(video.id)

    saved = store.get(video.id)
    assert scheduler.live_tasks_for(video.id) == [saved.scheduled_task_id]
    assert len(scheduler.cancelled) == 4
    assert saved.check_interval_days == 16


def test_missing_interval_defaults_to_one_day(monitor, store, connector) -> None:
    video = _seed(store, connector, last_thumbnail_hash=hash_content(b"same"), check_interval_days=None)
    assert video.check_interval_days == 1

    report = monitor.run_cycle(video.id)

    assert report.next_interval_days == 2


def test_completed_cycle_is_logged(monitor, store, connector) -> None:
    video = _seed(store, connector, last_thumbnail_hash=hash_content(b"same"))

    monitor.run_cycle(video.id)

    assert store.check_runs == [(video.id, "unchanged", "next_interval_days=2")]


def test_schedule_failure_removes_newly_allocated_artifact(monitor, store, scheduler, object_store, connector) -> None:
    video = _seed(store, connector, content=b"fresh", last_thumbnail_hash="h-old")
    scheduler.fail_schedule = True

    report = monitor.run_cycle(video.id)

    assert report.status == "schedule_failed"
    assert object_store.objects == {}
    assert store.get(video.id).thumbnail_key is None


def test_schedule_failure_keeps_existing_artifact_key(monitor, store, scheduler, object_store, connector) -> None:
    video = _seed(store, connector, content=b"fresh", last_thumbnail_hash="h-old", thumbnail_key="abc.jpg")
    scheduler.fail_schedule = True

    monitor.run_cycle(video.id)

    assert "abc.jpg" in object_store.objects
