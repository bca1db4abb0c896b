"""YouTube helpers: video id parsing, canonical URLs and oEmbed title lookup."""

from __future__ import annotations

import logging
import re
from typing import Optional

import httpx

from core.config import get_settings
from core.errors import FetchError

logger = logging.getLogger(__name__)

_VIDEO_ID_PATTERNS = (
    re.compile(r"(?:https?://)?(?:www\.)?youtube\.com/watch\?v=([^&\n?#]+)"),
    re.compile(r"(?:https?://)?(?:www\.)?youtu\.be/([^&\n?#]+)"),
    re.compile(r"(?:https?://)?(?:www\.)?youtube\.com/embed/([^&\n?#]+)"),
)

OEMBED_URL = "https://www.youtube.com/oembed"


def extract_video_id(url: str) -> Optional[str]:
    for pattern in _VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def canonical_video_url(video_id: str) -> str:
    return f"https://youtu.be/{video_id}"


def thumbnail_url_for(video_id: str) -> str:
    return f"https://img.youtube.com/vi/{video_id}/maxresdefault.jpg"


class OEmbedClient:
    """Resolves video titles through the public oEmbed endpoint."""

    def fetch_title(self, video_id: str) -> str:
        settings = get_settings()
        watch_url = f"https://www.youtube.com/watch?v={video_id}"
        try:
            response = httpx.get(
                OEMBED_URL,
                params={"url": watch_url, "format": "json"},
                timeout=settings.fetch_timeout_seconds,
                headers={"User-Agent": settings.fetch_user_agent},
            )
            response.raise_for_status()
            metadata = response.json()
        except httpx.HTTPStatusError as error:
            raise FetchError(
                watch_url,
                "Failed to fetch video metadata",
                status_code=error.response.status_code,
            ) from error
        except (httpx.HTTPError, ValueError) as error:
            raise FetchError(watch_url, f"Failed to fetch video metadata: {error}") from error

        title = metadata.get("title") if isinstance(metadata, dict) else None
        if not title:
            raise FetchError(watch_url, "Invalid YouTube metadata")
        logger.info("Resolved title for video %s: %r", video_id, title)
        return title
