"""
core.pipeline: Thumbnail monitoring pipeline.

Re-exports the check-cycle orchestrator and the registration flow.
"""

from core.pipeline.monitor import (  # noqa: F401
    CHECK_TASK_NAME,
    CycleReport,
    ThumbnailMonitor,
)
from core.pipeline.registration import VideoRegistrar  # noqa: F401

__all__ = [
    "CHECK_TASK_NAME",
    "CycleReport",
    "ThumbnailMonitor",
    "VideoRegistrar",
]
