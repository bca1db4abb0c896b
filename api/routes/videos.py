import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.auth import require_write_access
from api.dependencies import get_monitor, get_registrar
from core.contracts import MonitoredVideo, VideoCreate
from core.errors import DecodeError, EntityNotFound, FetchError, InvalidVideoUrl, StorageError
from core.pipeline import ThumbnailMonitor, VideoRegistrar

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/videos", tags=["videos"])


def _present(video: MonitoredVideo, monitor: ThumbnailMonitor) -> dict:
    thumbnail_url = video.original_thumbnail_url
    if video.thumbnail_key:
        thumbnail_url = monitor.object_store.get_public_url(video.thumbnail_key)
    return {**video.model_dump(), "thumbnail_url": thumbnail_url}


@router.post("", dependencies=[Depends(require_write_access)])
def register_video(
    payload: VideoCreate,
    registrar: VideoRegistrar = Depends(get_registrar),
) -> dict:
    try:
        video = registrar.register(payload.url)
    except InvalidVideoUrl as error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error)) from error
    except (FetchError, DecodeError) as error:
        logger.warning("Registration failed for %r: %s", payload.url, error)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(error)) from error
    except StorageError as error:
        logger.error("Registration storage failure for %r: %s", payload.url, error)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error)) from error
    return {"video": _present(video, registrar.monitor)}


@router.get("")
def list_videos(
    limit: int = Query(default=10, ge=1, le=100),
    page: int = Query(default=1, ge=1),
    monitor: ThumbnailMonitor = Depends(get_monitor),
) -> dict:
    offset = (page - 1) * limit
    videos = monitor.store.list_videos(limit=limit, offset=offset)
    return {
        "page": page,
        "limit": limit,
        "videos": [_present(video, monitor) for video in videos],
    }


@router.get("/{video_id}")
def get_video(video_id: int, monitor: ThumbnailMonitor = Depends(get_monitor)) -> dict:
    video = monitor.store.get(video_id)
    if video is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Video {video_id} not found")
    return {"video": _present(video, monitor)}


@router.delete("/{video_id}", dependencies=[Depends(require_write_access)])
def delete_video(video_id: int, monitor: ThumbnailMonitor = Depends(get_monitor)) -> dict:
    try:
        monitor.delete_video(video_id)
    except EntityNotFound as error:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error)) from error
    return {"deleted": video_id}
