"""
routers/system — Health check.
"""
from __future__ import annotations
from fastapi import APIRouter, Depends

from ...playlist import utc_now_iso
from ...scheduler import PlaylistMaintenance
from ..deps import get_maintenance
from ..schemas import HealthResponse

router = APIRouter(prefix="/api", tags=["system"])


@router.get("/health", response_model=HealthResponse)
def health(maintenance: PlaylistMaintenance = Depends(get_maintenance)):
    scheduler = maintenance.scheduler
    return HealthResponse(
        status="ok",
        timestamp=utc_now_iso(),
        scheduler_running=bool(scheduler and scheduler.running),
    )
