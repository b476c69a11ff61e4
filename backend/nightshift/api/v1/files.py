from fastapi import APIRouter, Depends, HTTPException, Query
from nightshift.services.pipeline import get_notifier, get_registry
from nightshift.services.registry import Registry
from nightshift.services.status_notifier import StatusNotifier
from typing import Optional
import math

router = APIRouter()

@router.get("/status")
def list_files(
    registry: Registry = Depends(get_registry),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
    sort_by: str = Query(default="created_at", alias="sortBy"),
    sort_order: str = Query(default="DESC", alias="sortOrder"),
    status: str = "pending",
    search: Optional[str] = None,
):
    """
    paged registry listing for the dashboard
    status "pending" means any track still has work, "all" disables the filter
    """
    db_status = None if status == "all" else status
    offset = (page - 1) * limit

    files = registry.query_files(
        limit=limit,
        offset=offset,
        sort_by=sort_by,
        sort_order=sort_order,
        status=db_status,
        search=search,
    )
    total = registry.count_files(status=db_status, search=search)

    return {
        "files": [f.to_dict() for f in files],
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit),
    }

@router.get("/status/summary")
def status_summary(notifier: StatusNotifier = Depends(get_notifier)):
    """same payload the websocket pushes, on demand"""
    return notifier.snapshot()

@router.get("/files/{file_id}")
def get_file(file_id: int, registry: Registry = Depends(get_registry)):
    record = registry.get(file_id)
    if not record:
        raise HTTPException(status_code=404, detail="file not found")
    return record.to_dict()

@router.get("/files/{file_id}/logs")
def get_file_logs(file_id: int, registry: Registry = Depends(get_registry)):
    if not registry.get(file_id):
        raise HTTPException(status_code=404, detail="file not found")
    return [log.to_dict() for log in registry.logs_for(file_id)]
