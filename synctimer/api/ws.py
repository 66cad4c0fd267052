# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.

"""
WebSocket Status Push — Same live stream as /api/timer/stream, one JSON
text frame per update.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from synctimer.core.errors import InvalidAccessCode
from synctimer.kernel.hub import WebSocketSink
from synctimer.kernel.timer_service import TimerService
from synctimer.protocols.schema import validate_key

router = APIRouter()
logger = logging.getLogger("synctimer.ws")


@router.websocket("/ws/timer/{access_code}")
async def timer_websocket(websocket: WebSocket, access_code: str):
    """
    Subscribe to a timer over WebSocket.

    - Rejects malformed access codes with close code 1008
    - Pushes the current status right after accept
    - Client messages are read only to detect disconnects
    """
    service: TimerService = websocket.app.state.timer_service
    try:
        key = validate_key(access_code)
    except InvalidAccessCode:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    sink = WebSocketSink(websocket)
    await service.subscribe(key, sink)
    logger.info("WS connected for %s", key, extra={"access_code": key})

    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("WS disconnected for %s", key, extra={"access_code": key})
    finally:
        sink.close()
        await service.unsubscribe(key, sink)
