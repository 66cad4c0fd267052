# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.

"""
Observability API — Health check and metrics.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from synctimer.api.deps import get_timer_service
from synctimer.core.metrics import timer_metrics
from synctimer.kernel.timer_service import TimerService
from synctimer.version import __version__

router = APIRouter(tags=["observability"])


@router.get("/health")
@router.get("/api/health")
async def health_check(service: TimerService = Depends(get_timer_service)):
    return {
        "status": "ok",
        "success": True,
        "message": "Timer API Server is running",
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(timer_metrics.uptime, 1),
        "timers": len(service.registry),
        "running": len(service.ticks),
        "subscribers": service.hub.count(),
        "snapshot": service.store.name,
    }


@router.get("/api/metrics")
async def get_metrics():
    return timer_metrics.snapshot()
