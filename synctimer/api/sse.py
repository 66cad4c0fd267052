# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.

"""
SSE (Server-Sent Events) utilities for the timer stream.

Status updates go out as unnamed ``data:`` events so a browser
``EventSource.onmessage`` handler receives them directly.
"""

from __future__ import annotations

import json
from typing import Any

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def sse_data(data: Any) -> str:
    """
    Format an unnamed SSE event.

    Args:
        data: Payload — JSON-serialized unless already a string.
    """
    if isinstance(data, str):
        serialized = data
    else:
        serialized = json.dumps(data, ensure_ascii=False)
    return f"data: {serialized}\n\n"


def sse_retry(retry_ms: int) -> str:
    """Reconnect delay hint for EventSource clients."""
    return f"retry: {retry_ms}\n\n"


def sse_comment(text: str = "keepalive") -> str:
    """A comment line; ignored by clients, keeps proxies from timing out."""
    return f": {text}\n\n"
