# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.

"""
Broadcast Hub — Live status fan-out per access code.

Sinks are owned by the transport layer (an SSE response, a WebSocket);
the hub only keeps weak references for pushing. A sink whose push fails or
times out is dropped on the spot, so membership heals itself without a
separate heartbeat.
"""

from __future__ import annotations

import asyncio
import json
import logging
import weakref
from typing import Any, Dict, List, Optional

from fastapi import WebSocket

from synctimer.core.metrics import timer_metrics

logger = logging.getLogger("synctimer.hub")

_CLOSED = None


class QueueSink:
    """
    Bounded in-memory buffer drained by a streaming response.

    A full buffer means the reader has fallen behind; the push fails and the
    hub drops the sink.
    """

    def __init__(self, maxsize: int = 32) -> None:
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    async def send(self, message: str) -> None:
        if self.closed:
            raise ConnectionError("sink closed")
        self._queue.put_nowait(message)

    async def receive(self, timeout: Optional[float] = None) -> Optional[str]:
        """
        Next message, or None once closed.

        Raises asyncio.TimeoutError when nothing arrives within ``timeout``.
        """
        if timeout is None:
            return await self._queue.get()
        return await asyncio.wait_for(self._queue.get(), timeout)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)


class WebSocketSink:
    """Pushes each status as one text frame."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self.closed = False

    async def send(self, message: str) -> None:
        await self._websocket.send_text(message)

    def close(self) -> None:
        self.closed = True


class _Subscription:
    """Hub-side record of one sink: weak handle, push lock, last version sent."""

    __slots__ = ("ref", "lock", "version")

    def __init__(self, ref: weakref.ref) -> None:
        self.ref = ref
        self.lock = asyncio.Lock()
        self.version = -1


class BroadcastHub:
    """
    Per-key, insertion-ordered sets of live-update sinks.

    Every status carries a per-key version stamped when it was built. Pushes
    to one sink are serialized and a push older than what the sink already
    received is skipped, so each sink's last message is the newest status
    even when publishes finish out of order.
    """

    def __init__(self, send_timeout: float = 5.0) -> None:
        self._send_timeout = send_timeout
        self._sinks: Dict[str, Dict[int, _Subscription]] = {}
        self._versions: Dict[str, int] = {}

    # ── Versions ────────────────────────────────────────────────

    def next_version(self, key: str) -> int:
        """Stamp a freshly built status for ``key``."""
        version = self._versions.get(key, 0) + 1
        self._versions[key] = version
        return version

    def current_version(self, key: str) -> int:
        return self._versions.get(key, 0)

    # ── Membership ──────────────────────────────────────────────

    def add(self, key: str, sink: Any) -> None:
        ident = id(sink)
        ref = weakref.ref(sink, lambda r, k=key, i=ident: self._forget(k, i, r))
        self._sinks.setdefault(key, {})[ident] = _Subscription(ref)
        self._update_gauge()

    def remove(self, key: str, sink: Any) -> bool:
        """Explicit disconnect. Returns True if the sink was registered."""
        return self._discard(key, id(sink))

    def sinks(self, key: str) -> List[Any]:
        live = []
        for sub in list(self._sinks.get(key, {}).values()):
            sink = sub.ref()
            if sink is not None:
                live.append(sink)
        return live

    def count(self, key: Optional[str] = None) -> int:
        if key is not None:
            return len(self._sinks.get(key, {}))
        return sum(len(s) for s in self._sinks.values())

    def keys(self) -> List[str]:
        return list(self._sinks)

    # ── Push ────────────────────────────────────────────────────

    async def subscribe(self, key: str, sink: Any, status: Dict[str, Any]) -> bool:
        """Register ``sink`` and push the current status to it right away."""
        self.add(key, sink)
        logger.info("Subscriber added for %s (%d total)", key, self.count(key))
        return await self._push(key, id(sink), sink, _encode(status), self.current_version(key))

    async def unsubscribe(self, key: str, sink: Any) -> None:
        if self.remove(key, sink):
            logger.info("Subscriber removed for %s (%d left)", key, self.count(key))

    async def publish(self, key: str, status: Dict[str, Any], version: Optional[int] = None) -> int:
        """
        Push ``status`` to every sink for ``key`` concurrently.

        ``version`` should come from ``next_version`` at the time the status
        was built; one is stamped now if omitted. Returns the number of sinks
        that accepted the push. Never raises for a failed sink.
        """
        if version is None:
            version = self.next_version(key)
        live = []
        for ident, sub in list(self._sinks.get(key, {}).items()):
            sink = sub.ref()
            if sink is None:
                self._discard(key, ident)
            else:
                live.append((ident, sink))
        if not live:
            return 0
        message = _encode(status)
        results = await asyncio.gather(
            *(self._push(key, ident, sink, message, version) for ident, sink in live)
        )
        return sum(results)

    async def _push(self, key: str, ident: int, sink: Any, message: str, version: int) -> bool:
        sub = self._sinks.get(key, {}).get(ident)
        if sub is None:
            return False
        async with sub.lock:
            if self._sinks.get(key, {}).get(ident) is not sub or version <= sub.version:
                return False
            sub.version = version
            try:
                await asyncio.wait_for(sink.send(message), self._send_timeout)
            except Exception as exc:
                logger.info("Dropping subscriber for %s: %s", key, exc.__class__.__name__)
                timer_metrics.inc("broadcast_dropped")
                self._discard(key, ident)
                close = getattr(sink, "close", None)
                if close is not None:
                    close()
                return False
        timer_metrics.inc("broadcast_sent")
        return True

    # ── Removal ─────────────────────────────────────────────────

    def _discard(self, key: str, ident: int) -> bool:
        """Single removal path for explicit, failed and collected sinks."""
        sinks = self._sinks.get(key)
        if not sinks or ident not in sinks:
            return False
        del sinks[ident]
        if not sinks:
            del self._sinks[key]
        self._update_gauge()
        return True

    def _forget(self, key: str, ident: int, ref: weakref.ref) -> None:
        sub = self._sinks.get(key, {}).get(ident)
        if sub is not None and sub.ref is ref:
            self._discard(key, ident)

    def _update_gauge(self) -> None:
        timer_metrics.set_gauge("subscribers", self.count())


def _encode(status: Dict[str, Any]) -> str:
    return json.dumps(status, ensure_ascii=False)
