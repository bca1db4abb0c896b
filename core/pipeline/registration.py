"""Video registration: turn a YouTube URL into a monitored, decorated entity."""

from __future__ import annotations

import logging

from connectors.youtube import (
    OEmbedClient,
    canonical_video_url,
    extract_video_id,
    thumbnail_url_for,
)
from core.contracts import DEFAULT_CHECK_INTERVAL_DAYS, MonitoredVideo
from core.errors import InvalidVideoUrl
from core.pipeline.monitor import ThumbnailMonitor
from core.processing import build_markdown_embed, hash_content

logger = logging.getLogger(__name__)


class VideoRegistrar:
    def __init__(self, monitor: ThumbnailMonitor, metadata: OEmbedClient) -> None:
        self.monitor = monitor
        self.metadata = metadata

    def register(self, url: str) -> MonitoredVideo:
        """Create the entity for ``url``, or return the existing one.

        Raises ``InvalidVideoUrl`` for unparseable input, ``FetchError`` when
        the title or thumbnail cannot be fetched and ``DecodeError`` when the
        thumbnail is not a readable image. A failure to arm the first check
        is logged and leaves the video without a pending task.
        """
        video_id = extract_video_id(url)
        if not video_id:
            raise InvalidVideoUrl(url)

        store = self.monitor.store
        existing = store.find_by_video_id(video_id)
        if existing is not None:
            logger.info("Video %s already registered as %s", video_id, existing.id)
            return existing

        title = self.metadata.fetch_title(video_id)
        thumbnail_url = thumbnail_url_for(video_id)
        original = self.monitor.connector.fetch(thumbnail_url)
        initial_hash = hash_content(original)

        decorated = self.monitor.decorator.decorate(original)
        thumbnail_key = self.monitor.key_factory()
        self.monitor.object_store.put(thumbnail_key, decorated, self.monitor.decorator.content_type)

        clean_url = canonical_video_url(video_id)
        markdown_code = build_markdown_embed(
            title, self.monitor.object_store.get_public_url(thumbnail_key), clean_url
        )
        video = store.insert(
            video_id=video_id,
            url=clean_url,
            title=title,
            original_thumbnail_url=thumbnail_url,
            thumbnail_key=thumbnail_key,
            last_thumbnail_hash=initial_hash,
            check_interval_days=DEFAULT_CHECK_INTERVAL_DAYS,
            markdown_code=markdown_code,
        )
        if video.thumbnail_key != thumbnail_key:
            # A concurrent registration won; drop our duplicate artifact.
            self.monitor.object_store.delete(thumbnail_key)
            return video

        task_id = self.monitor.arm_initial_check(video)
        logger.info("Registered video %s as %s (task %s)", video_id, video.id, task_id)
        return video.model_copy(update={"scheduled_task_id": task_id})
