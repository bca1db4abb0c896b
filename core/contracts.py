from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_CHECK_INTERVAL_DAYS = 1


class VideoCreate(BaseModel):
    url: str = Field(min_length=1, max_length=2048)


class MonitoredVideo(BaseModel):
    """One externally hosted thumbnail under periodic recheck."""

    id: int
    video_id: str
    url: str
    title: str
    original_thumbnail_url: str
    thumbnail_key: Optional[str] = None
    last_thumbnail_hash: Optional[str] = None
    check_interval_days: int = DEFAULT_CHECK_INTERVAL_DAYS
    last_checked_at: Optional[datetime] = None
    scheduled_task_id: Optional[str] = None
    markdown_code: str = ""
    created_at: Optional[datetime] = None

    @field_validator("check_interval_days", mode="before")
    @classmethod
    def default_interval(cls, value: Optional[int]) -> int:
        if value is None or value < 1:
            return DEFAULT_CHECK_INTERVAL_DAYS
        return value

    @classmethod
    def from_row(cls, row: dict) -> "MonitoredVideo":
        return cls(**row)
