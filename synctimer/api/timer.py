# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.

"""
Timer API — Control endpoints and the SSE status stream.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from synctimer.api.deps import (
    get_access_code,
    get_settings,
    get_stream_access_code,
    get_timer_service,
    read_json_body,
)
from synctimer.api.sse import SSE_HEADERS, sse_comment, sse_data, sse_retry
from synctimer.core.config import TimerSettings
from synctimer.kernel.hub import QueueSink
from synctimer.kernel.timer_service import TimerService
from synctimer.protocols.schema import validate_key

router = APIRouter(prefix="/timer", tags=["timer"])
logger = logging.getLogger("synctimer.api.timer")

SSE_RETRY_MS = 3000


@router.post("/start")
async def start_timer(
    body: Dict[str, Any] = Depends(read_json_body),
    access_code: Any = Depends(get_access_code),
    service: TimerService = Depends(get_timer_service),
):
    """Start (or restart) the timer for an access code. Body: ``{duration}`` in seconds."""
    timer = await service.start(access_code, body.get("duration"))
    return {"message": "Timer started successfully", "timer": timer}


@router.post("/stop")
async def stop_timer(
    access_code: Any = Depends(get_access_code),
    service: TimerService = Depends(get_timer_service),
):
    timer = await service.stop(access_code)
    return {"message": "Timer stopped successfully", "timer": timer}


@router.post("/pause")
async def pause_timer(
    access_code: Any = Depends(get_access_code),
    service: TimerService = Depends(get_timer_service),
):
    timer = await service.pause(access_code)
    return {"message": "Timer paused successfully", "timer": timer}


@router.post("/continue")
@router.post("/resume")
async def resume_timer(
    access_code: Any = Depends(get_access_code),
    service: TimerService = Depends(get_timer_service),
):
    timer = await service.resume(access_code)
    return {"message": "Timer resumed successfully", "timer": timer}


@router.post("/set-elapsed")
async def set_elapsed(
    body: Dict[str, Any] = Depends(read_json_body),
    access_code: Any = Depends(get_access_code),
    service: TimerService = Depends(get_timer_service),
):
    """Seek. Body: ``{elapsedTime}`` in seconds since the timer started."""
    timer = await service.set_elapsed(access_code, body.get("elapsedTime"))
    return {"message": "Elapsed time set successfully", "timer": timer}


@router.get("/status")
async def timer_status(
    access_code: Any = Depends(get_access_code),
    service: TimerService = Depends(get_timer_service),
):
    return {"timer": service.status(access_code)}


@router.get("/active")
async def active_timers(service: TimerService = Depends(get_timer_service)):
    """All timers that have been started (admin/debug)."""
    timers = service.list_active()
    return {
        "message": "Active timers retrieved successfully",
        "count": len(timers),
        "timers": timers,
    }


@router.get("/stream")
async def timer_stream(
    request: Request,
    access_code: str = Depends(get_stream_access_code),
    service: TimerService = Depends(get_timer_service),
    settings: TimerSettings = Depends(get_settings),
):
    """
    Live status stream (text/event-stream).

    The current status is sent immediately, then one ``data:`` event per
    tick or control operation.
    """
    key = validate_key(access_code)
    sink = QueueSink(maxsize=settings.SSE_QUEUE_SIZE)
    await service.subscribe(key, sink)
    return StreamingResponse(
        status_event_stream(
            service, key, sink,
            keepalive=settings.SSE_KEEPALIVE,
            is_disconnected=request.is_disconnected,
        ),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


async def status_event_stream(
    service: TimerService,
    key: str,
    sink: QueueSink,
    keepalive: float,
    is_disconnected: Callable[[], Awaitable[bool]],
) -> AsyncIterator[str]:
    """Drain ``sink`` into SSE frames until the client leaves or the hub drops it."""
    try:
        yield sse_retry(SSE_RETRY_MS)
        while True:
            try:
                message = await sink.receive(timeout=keepalive)
            except asyncio.TimeoutError:
                if await is_disconnected():
                    break
                yield sse_comment()
                continue
            if message is None:
                break
            yield sse_data(message)
    finally:
        sink.close()
        await service.unsubscribe(key, sink)
        logger.info("SSE stream closed for %s", key, extra={"access_code": key})
