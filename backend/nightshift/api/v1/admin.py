from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from nightshift.core.errors import InvalidScheduleError
from nightshift.services.pipeline import get_registry, get_scheduler
from nightshift.services.registry import Registry
from nightshift.services.scheduler import SETTING_START, SETTING_STOP, Scheduler, parse_hhmm
from typing import Optional

router = APIRouter()

class ScheduleRequest(BaseModel):
    start: Optional[str] = None
    stop: Optional[str] = None

@router.get("/schedule")
def get_schedule(scheduler: Scheduler = Depends(get_scheduler)):
    """effective processing window and whether we're inside it"""
    window = scheduler.current_window()
    return {
        **window.to_dict(),
        "default": scheduler.default_window.to_dict(),
        "open": scheduler.within_window(),
    }

@router.put("/schedule")
def update_schedule(
    request: ScheduleRequest,
    registry: Registry = Depends(get_registry),
    scheduler: Scheduler = Depends(get_scheduler),
):
    """override the window; an empty string clears that end back to the default"""
    updates = []
    for key, value in ((SETTING_START, request.start), (SETTING_STOP, request.stop)):
        if value is None:
            continue
        if value:
            try:
                value = parse_hhmm(value).strftime("%H:%M")
            except InvalidScheduleError as e:
                raise HTTPException(status_code=422, detail=str(e))
        updates.append((key, value or None))

    if updates:
        registry.set_settings(updates)
    return get_schedule(scheduler)

@router.post("/drain")
async def trigger_drain(scheduler: Scheduler = Depends(get_scheduler)):
    """manually wake the scheduler; folds into a running drain"""
    already_running = scheduler.active
    scheduler.wake()
    return {
        "success": True,
        "coalesced": already_running,
    }

@router.get("/drain/last")
def last_drain(scheduler: Scheduler = Depends(get_scheduler)):
    if not scheduler.last_drain:
        return {"last_drain": None}
    return {"last_drain": scheduler.last_drain.to_dict()}
