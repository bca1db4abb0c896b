"""Error taxonomy shared by the monitor, its collaborators and the API."""

from __future__ import annotations


class MonitorError(Exception):
    """Base class for every failure raised by the thumbnail monitor."""


class FetchError(MonitorError):
    """Network failure or non-success response while fetching a resource."""

    def __init__(self, url: str, reason: str, status_code: int | None = None) -> None:
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason
        self.status_code = status_code


class DecodeError(MonitorError):
    """Image bytes could not be decoded, or decoded to an empty raster."""


class StorageError(MonitorError):
    """The object store rejected a write or delete."""


class ScheduleError(MonitorError):
    """The task scheduler rejected a schedule or cancel request."""


class PersistenceError(MonitorError):
    """The entity store rejected a read or an update."""


class EntityNotFound(MonitorError):
    def __init__(self, video_id: int) -> None:
        super().__init__(f"Video {video_id} not found")
        self.video_id = video_id


class InvalidVideoUrl(MonitorError, ValueError):
    def __init__(self, url: str) -> None:
        super().__init__(f"Invalid YouTube URL: {url}")
        self.url = url
