# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.

"""
API Error Handling — Unified error structure.

Both transport-level errors (``APIError``) and timer control rejections
(``TimerError``) render as:

    {"code": ..., "message": ..., "error": ..., "trace_id": ..., "details": {...}}

``error`` repeats ``message`` for clients written against the plain
``{"error": "..."}`` shape.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from synctimer.core.errors import TimerError


class APIError(Exception):
    """Base API error with structured response."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None,
        trace_id: Optional[str] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.trace_id = trace_id
        super().__init__(message)


class AccessCodeRequiredError(APIError):
    def __init__(self, sources: str = "request body, query parameters, or x-access-code header"):
        super().__init__(
            code="ACCESS_CODE_REQUIRED",
            message=f"Access code is required. Please provide it in {sources}.",
            status_code=400,
        )


def _trace_id(request: Request, explicit: Optional[str] = None) -> str:
    return explicit or getattr(request.state, "trace_id", None) or str(uuid.uuid4())


def error_body(code: str, message: str, trace_id: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "code": code,
        "message": message,
        "error": message,
        "trace_id": trace_id,
        "details": details or {},
    }


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Global exception handler for APIError."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.code, exc.message, _trace_id(request, exc.trace_id), exc.details),
    )


async def timer_error_handler(request: Request, exc: TimerError) -> JSONResponse:
    """Global exception handler for timer control rejections."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.code, exc.message, _trace_id(request)),
    )
