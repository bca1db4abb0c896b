from fastapi import APIRouter, Depends

from api.auth import require_write_access
from api.dependencies import get_monitor
from core.pipeline import ThumbnailMonitor

router = APIRouter(prefix="/ops", tags=["ops"])


@router.get("/schedule-status")
def schedule_status(monitor: ThumbnailMonitor = Depends(get_monitor)) -> dict:
    return {"videos": monitor.schedule_status()}


@router.post("/reschedule-all", dependencies=[Depends(require_write_access)])
def reschedule_all(monitor: ThumbnailMonitor = Depends(get_monitor)) -> dict:
    return monitor.reschedule_all()
