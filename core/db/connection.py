"""
Postgres connection helper and schema bootstrap.

``init_db`` is safe to call on every worker and API start; it only creates
what is missing.
"""

from __future__ import annotations

import psycopg2

from core.config import get_settings


def get_connection():
    """Return a new psycopg2 connection using the app settings."""
    settings = get_settings()
    return psycopg2.connect(settings.postgres_dsn)


def init_db() -> None:
    """Create all tables and indexes (idempotent)."""
    with get_connection() as connection:
        with connection.cursor() as cursor:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS monitored_videos (
                    id SERIAL PRIMARY KEY,
                    video_id TEXT NOT NULL UNIQUE,
                    url TEXT NOT NULL,
                    title TEXT NOT NULL,
                    original_thumbnail_url TEXT NOT NULL,
                    thumbnail_key TEXT,
                    last_thumbnail_hash TEXT,
                    check_interval_days INTEGER NOT NULL DEFAULT 1,
                    last_checked_at TIMESTAMPTZ,
                    scheduled_task_id TEXT,
                    markdown_code TEXT NOT NULL DEFAULT '',
                    created_at TIMESTAMPTZ DEFAULT NOW()
                );
                """
            )
            cursor.execute(
                """
                ALTER TABLE monitored_videos
                ADD COLUMN IF NOT EXISTS scheduled_task_id TEXT;
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS check_runs (
                    id SERIAL PRIMARY KEY,
                    video_id INTEGER NOT NULL REFERENCES monitored_videos(id) ON DELETE CASCADE,
                    status TEXT NOT NULL,
                    detail TEXT,
                    created_at TIMESTAMPTZ DEFAULT NOW()
                );
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS audit_events (
                    id SERIAL PRIMARY KEY,
                    event_type TEXT NOT NULL,
                    entity_type TEXT NOT NULL,
                    entity_id TEXT,
                    detail TEXT,
                    created_at TIMESTAMPTZ DEFAULT NOW()
                );
                """
            )
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_monitored_videos_created
                ON monitored_videos (created_at DESC);
                """
            )
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_check_runs_video
                ON check_runs (video_id, created_at DESC);
                """
            )
        connection.commit()
