# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.

"""
API Dependencies — FastAPI dependency injection.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from fastapi import Depends, Header, Request

from synctimer.api.errors import AccessCodeRequiredError
from synctimer.core.config import TimerSettings
from synctimer.kernel.timer_service import TimerService

ACCESS_CODE_FIELD = "accessCode"
ACCESS_CODE_HEADER = "X-Access-Code"


def get_timer_service(request: Request) -> TimerService:
    """The process-wide TimerService, attached to the app by create_app()."""
    return request.app.state.timer_service


def get_settings(request: Request) -> TimerSettings:
    return request.app.state.settings


async def read_json_body(request: Request) -> Dict[str, Any]:
    """Request JSON object, or {} when the body is empty or not an object."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


async def get_access_code(
    request: Request,
    body: Dict[str, Any] = Depends(read_json_body),
    x_access_code: Optional[str] = Header(None, alias=ACCESS_CODE_HEADER),
) -> Any:
    """
    Extract the raw access code.

    Precedence: body ``accessCode`` → query ``accessCode`` → ``X-Access-Code``
    header. Format validation happens in the TimerService.
    """
    for candidate in (
        body.get(ACCESS_CODE_FIELD),
        request.query_params.get(ACCESS_CODE_FIELD),
        x_access_code,
    ):
        if candidate not in (None, ""):
            return candidate
    raise AccessCodeRequiredError()


async def get_stream_access_code(
    request: Request,
    x_access_code: Optional[str] = Header(None, alias=ACCESS_CODE_HEADER),
) -> str:
    """Streams are GET-only: query ``accessCode`` → ``X-Access-Code`` header."""
    code = request.query_params.get(ACCESS_CODE_FIELD) or x_access_code
    if not code:
        raise AccessCodeRequiredError("query parameters or x-access-code header")
    return code
