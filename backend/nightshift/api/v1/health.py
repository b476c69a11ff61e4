from fastapi import APIRouter, Depends
from nightshift.services.pipeline import get_registry, get_scheduler
from nightshift.services.registry import Registry
from nightshift.services.scheduler import Scheduler
from datetime import datetime

router = APIRouter()

@router.get("/")
def health_check():
    """basic liveness check"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "service": "nightshift"
    }

@router.get("/ready")
def readiness_check(
    registry: Registry = Depends(get_registry),
    scheduler: Scheduler = Depends(get_scheduler),
):
    """readiness check - verifies the registry and reports worker state"""
    checks = {}
    all_healthy = True

    # check database
    if registry.ping():
        checks["database"] = {"status": "healthy", "message": "connected"}
    else:
        checks["database"] = {"status": "unhealthy", "message": "registry unreachable"}
        all_healthy = False

    checks["scheduler"] = {
        "status": "healthy",
        "message": "draining" if scheduler.active else "idle",
        "window_open": scheduler.within_window() if all_healthy else None,
    }

    return {
        "status": "healthy" if all_healthy else "unhealthy",
        "timestamp": datetime.utcnow().isoformat(),
        "checks": checks
    }
