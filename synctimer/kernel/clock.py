# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.

"""
TickDriver — Per-timer periodic countdown ticks.

Owns the runtime-only side table ``access code -> asyncio.Task``. A timer
never has more than one live ticker: starting a ticker for a key cancels the
previous one first.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine, Dict, Optional

from synctimer.protocols.schema import TICK_INTERVAL

logger = logging.getLogger("synctimer.clock")

TickCallback = Callable[[str], Coroutine[Any, Any, None]]


class TickDriver:
    """
    Fixed-period ticker, one task per running timer.

    The callback is awaited to completion before the next sleep begins,
    so ticks for the same key never overlap. Ticks are scheduled against
    the loop clock, so the period does not drift by the callback's
    duration.
    """

    def __init__(self, interval: float = TICK_INTERVAL) -> None:
        """
        Args:
            interval: Tick period in seconds.
        """
        self._interval = interval
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def interval(self) -> float:
        return self._interval

    def is_active(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def active_keys(self) -> list[str]:
        return [key for key in self._tasks if self.is_active(key)]

    def __len__(self) -> int:
        return len(self.active_keys())

    def start(self, key: str, callback: TickCallback) -> asyncio.Task:
        """Cancel any ticker for ``key`` and start a fresh one."""
        self.cancel(key)
        task = asyncio.create_task(self._loop(key, callback), name=f"tick:{key}")
        self._tasks[key] = task
        logger.debug("Ticker started for %s (interval=%.2fs)", key, self._interval)
        return task

    def cancel(self, key: str) -> bool:
        """
        Drop the ticker for ``key``. Idempotent.

        Safe to call from inside the key's own tick callback: the running
        task is unregistered rather than cancelled, and its loop exits after
        the callback returns.
        """
        task = self._tasks.pop(key, None)
        if task is None:
            return False
        if task is not _current_task() and not task.done():
            task.cancel()
        logger.debug("Ticker cancelled for %s", key)
        return True

    async def cancel_all(self) -> None:
        """Cancel every ticker and wait for them to unwind."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        if tasks:
            logger.info("Cancelled %d tickers", len(tasks))

    async def _loop(self, key: str, callback: TickCallback) -> None:
        me = _current_task()
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        while self._tasks.get(key) is me:
            # An overrun tick fires immediately.
            deadline += self._interval
            await asyncio.sleep(max(0.0, deadline - loop.time()))
            if self._tasks.get(key) is not me:
                break
            try:
                await callback(key)
            except Exception:
                logger.exception("Tick callback error for %s", key)


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
