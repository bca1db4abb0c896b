"""Monitored videos: entity storage, check-run log and the per-cycle unit of work."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Optional

import psycopg2
from psycopg2 import sql
from psycopg2.extras import RealDictCursor

from core.contracts import MonitoredVideo
from core.db.connection import get_connection
from core.errors import PersistenceError

VIDEO_COLUMNS = (
    "id, video_id, url, title, original_thumbnail_url, thumbnail_key, "
    "last_thumbnail_hash, check_interval_days, last_checked_at, "
    "scheduled_task_id, markdown_code, created_at"
)

INSERTABLE_COLUMNS = frozenset(
    {
        "video_id",
        "url",
        "title",
        "original_thumbnail_url",
        "thumbnail_key",
        "last_thumbnail_hash",
        "check_interval_days",
        "markdown_code",
    }
)

PATCHABLE_COLUMNS = frozenset(
    {
        "thumbnail_key",
        "last_thumbnail_hash",
        "check_interval_days",
        "last_checked_at",
        "scheduled_task_id",
        "markdown_code",
    }
)


def _patch_statement(fields: dict[str, Any]) -> sql.Composed:
    unknown = set(fields) - PATCHABLE_COLUMNS
    if unknown:
        raise ValueError(f"Cannot patch columns: {sorted(unknown)}")
    assignments = sql.SQL(", ").join(
        sql.SQL("{} = {}").format(sql.Identifier(column), sql.Placeholder(column))
        for column in fields
    )
    return sql.SQL("UPDATE monitored_videos SET {} WHERE id = {}").format(
        assignments, sql.Placeholder("id")
    )


def _insert_audit_event(cursor, event_type: str, video_id: int, detail: str) -> None:
    cursor.execute(
        """
        INSERT INTO audit_events (event_type, entity_type, entity_id, detail)
        VALUES (%s, %s, %s, %s)
        """,
        (event_type, "video", str(video_id), detail),
    )


class VideoUnitOfWork:
    """Row-locked view of one video for the duration of a transaction."""

    def __init__(self, cursor, video: Optional[MonitoredVideo]) -> None:
        self._cursor = cursor
        self.video = video

    def patch(self, **fields: Any) -> None:
        if self.video is None or not fields:
            return
        self._cursor.execute(_patch_statement(fields), {**fields, "id": self.video.id})
        self.video = self.video.model_copy(update=fields)

    def log_check_run(self, status: str, detail: str) -> None:
        if self.video is None:
            return
        self._cursor.execute(
            """
            INSERT INTO check_runs (video_id, status, detail)
            VALUES (%s, %s, %s)
            """,
            (self.video.id, status, detail[:2000]),
        )
        _insert_audit_event(self._cursor, "thumbnail_check", self.video.id, f"status={status}")


class VideoStore:
    """Postgres-backed store for :class:`MonitoredVideo` records."""

    @contextmanager
    def _transaction(self) -> Iterator[Any]:
        try:
            connection = get_connection()
        except psycopg2.Error as error:
            raise PersistenceError(f"Database unavailable: {error}") from error
        try:
            with connection.cursor(cursor_factory=RealDictCursor) as cursor:
                yield cursor
            connection.commit()
        except psycopg2.Error as error:
            connection.rollback()
            raise PersistenceError(str(error)) from error
        except BaseException:
            connection.rollback()
            raise
        finally:
            connection.close()

    def get(self, video_id: int) -> Optional[MonitoredVideo]:
        with self._transaction() as cursor:
            cursor.execute(
                f"SELECT {VIDEO_COLUMNS} FROM monitored_videos WHERE id = %s",
                (video_id,),
            )
            row = cursor.fetchone()
            return MonitoredVideo.from_row(dict(row)) if row else None

    def find_by_video_id(self, external_id: str) -> Optional[MonitoredVideo]:
        with self._transaction() as cursor:
            cursor.execute(
                f"SELECT {VIDEO_COLUMNS} FROM monitored_videos WHERE video_id = %s",
                (external_id,),
            )
            row = cursor.fetchone()
            return MonitoredVideo.from_row(dict(row)) if row else None

    def insert(self, **fields: Any) -> MonitoredVideo:
        unknown = set(fields) - INSERTABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot insert columns: {sorted(unknown)}")
        columns = list(fields)
        statement = sql.SQL(
            "INSERT INTO monitored_videos ({}) VALUES ({}) "
            "ON CONFLICT (video_id) DO NOTHING RETURNING id"
        ).format(
            sql.SQL(", ").join(sql.Identifier(column) for column in columns),
            sql.SQL(", ").join(sql.Placeholder(column) for column in columns),
        )
        with self._transaction() as cursor:
            cursor.execute(statement, fields)
            row = cursor.fetchone()
            if row is not None:
                _insert_audit_event(cursor, "video_registered", row["id"], f"video_id={fields.get('video_id')}")
        if row is None:
            # Lost a race with a concurrent registration of the same video.
            existing = self.find_by_video_id(fields["video_id"])
            if existing is None:
                raise PersistenceError(f"Insert of video {fields.get('video_id')} returned no row")
            return existing
        created = self.get(row["id"])
        if created is None:
            raise PersistenceError(f"Video {row['id']} vanished after insert")
        return created

    def patch(self, video_id: int, **fields: Any) -> None:
        if not fields:
            return
        with self._transaction() as cursor:
            cursor.execute(_patch_statement(fields), {**fields, "id": video_id})

    def list_videos(self, limit: int = 10, offset: int = 0) -> list[MonitoredVideo]:
        with self._transaction() as cursor:
            cursor.execute(
                f"""
                SELECT {VIDEO_COLUMNS}
                FROM monitored_videos
                ORDER BY created_at DESC, id DESC
                LIMIT %s OFFSET %s
                """,
                (limit, offset),
            )
            return [MonitoredVideo.from_row(dict(row)) for row in cursor.fetchall()]

    def list_all(self) -> list[MonitoredVideo]:
        with self._transaction() as cursor:
            cursor.execute(f"SELECT {VIDEO_COLUMNS} FROM monitored_videos ORDER BY id")
            return [MonitoredVideo.from_row(dict(row)) for row in cursor.fetchall()]

    def delete(self, video_id: int) -> bool:
        with self._transaction() as cursor:
            cursor.execute("DELETE FROM monitored_videos WHERE id = %s", (video_id,))
            deleted = cursor.rowcount > 0
            if deleted:
                _insert_audit_event(cursor, "video_deleted", video_id, "deleted")
            return deleted

    @contextmanager
    def unit_of_work(self, video_id: int) -> Iterator[VideoUnitOfWork]:
        """Lock one video row; commit every patch together or none of them."""
        with self._transaction() as cursor:
            cursor.execute(
                f"SELECT {VIDEO_COLUMNS} FROM monitored_videos WHERE id = %s FOR UPDATE",
                (video_id,),
            )
            row = cursor.fetchone()
            video = MonitoredVideo.from_row(dict(row)) if row else None
            yield VideoUnitOfWork(cursor, video)
