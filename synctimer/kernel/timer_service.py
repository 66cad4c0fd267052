# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.

"""
Timer Service — Control operations on per-access-code timers.

Handles:
  - Access-code validation (before anything touches the registry)
  - start / stop / pause / resume / set-elapsed transitions
  - The per-tick countdown
  - Persist + broadcast after every mutation

Everything runs on one event loop. Each operation finishes its in-memory
mutation before its first ``await``, so two mutations never interleave and
no lock is needed.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

from synctimer.core.errors import (
    ElapsedExceedsDuration,
    InvalidDuration,
    InvalidElapsed,
    TimerNotFound,
)
from synctimer.core.metrics import timer_metrics
from synctimer.kernel.clock import TickDriver
from synctimer.kernel.fsm import (
    COMPLETE, EXPIRE, PAUSE, RESUME, SEEK, START, STOP,
    Phase, TimerFSM, default_fsm,
)
from synctimer.kernel.hub import BroadcastHub
from synctimer.kernel.registry import TimerRegistry
from synctimer.protocols.schema import (
    UNITS_PER_SECOND,
    UNITS_PER_TICK,
    TimerEntry,
    build_status,
    now_ms,
    validate_key,
)
from synctimer.storage.snapshot import SnapshotStore

logger = logging.getLogger("synctimer.timer_service")


def to_number(value: Any) -> Optional[float]:
    """Coerce a JSON number or numeric string; None if not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def seconds_to_units(seconds: float) -> Optional[int]:
    """Round half up to whole tenths; None if the result is not finite."""
    scaled = seconds * UNITS_PER_SECOND
    if not math.isfinite(scaled):
        return None
    return int(math.floor(scaled + 0.5))


class TimerService:
    """
    Owns the registry, the tick driver, the snapshot store and the hub.

    Constructed once per process and handed to the HTTP layer.
    """

    def __init__(
        self,
        registry: TimerRegistry,
        store: SnapshotStore,
        hub: BroadcastHub,
        ticks: Optional[TickDriver] = None,
        fsm: TimerFSM = default_fsm,
    ) -> None:
        self._registry = registry
        self._store = store
        self._hub = hub
        self._ticks = ticks or TickDriver()
        self._fsm = fsm
        self._last_id = 0

    @property
    def registry(self) -> TimerRegistry:
        return self._registry

    @property
    def hub(self) -> BroadcastHub:
        return self._hub

    @property
    def ticks(self) -> TickDriver:
        return self._ticks

    @property
    def store(self) -> SnapshotStore:
        return self._store

    # ── Control Operations ──────────────────────────────────────

    async def start(self, raw_key: Any, duration_seconds: Any) -> Dict[str, Any]:
        """Create (or replace) the timer for ``raw_key`` and start counting down."""
        key = validate_key(raw_key)
        seconds = to_number(duration_seconds)
        units = seconds_to_units(seconds) if seconds is not None and seconds > 0 else None
        if units is None:
            raise InvalidDuration(duration_seconds)
        units = max(1, units)

        previous = self._registry.get(key)
        if self._ticks.cancel(key):
            logger.info("Stopping existing timer for %s", key, extra={"access_code": key})

        entry = TimerEntry(
            key=key,
            id=self._next_id(),
            total_units=units,
            remaining_units=units,
            phase=self._fsm.transition(previous.phase if previous else Phase.IDLE, START),
            created_at_ms=now_ms(),
        )
        self._registry.set(key, entry)
        self._ticks.start(key, self.tick)
        timer_metrics.inc("timer_started")
        logger.info(
            "Timer %s started for %s: %ss -> %d tenths",
            entry.id, key, duration_seconds, units, extra={"access_code": key},
        )
        return await self._commit(key)

    async def stop(self, raw_key: Any) -> Dict[str, Any]:
        """Stop and reset remaining time to zero. Total duration is kept."""
        key = validate_key(raw_key)
        entry = self._require(key)

        self._ticks.cancel(key)
        entry.phase = self._fsm.transition(entry.phase, STOP)
        entry.remaining_units = 0
        entry.paused_at_ms = 0
        logger.info("Timer stopped for %s", key, extra={"access_code": key})
        return await self._commit(key)

    async def pause(self, raw_key: Any) -> Dict[str, Any]:
        key = validate_key(raw_key)
        entry = self._require(key)

        next_phase = self._fsm.transition(entry.phase, PAUSE)
        self._ticks.cancel(key)
        entry.phase = next_phase
        entry.paused_at_ms = now_ms()
        logger.info(
            "Timer paused for %s at %d tenths", key, entry.remaining_units,
            extra={"access_code": key},
        )
        return await self._commit(key)

    async def resume(self, raw_key: Any) -> Dict[str, Any]:
        key = validate_key(raw_key)
        entry = self._require(key)

        entry.phase = self._fsm.transition(entry.phase, RESUME)
        entry.paused_at_ms = 0
        self._ticks.start(key, self.tick)
        logger.info(
            "Timer resumed for %s at %d tenths", key, entry.remaining_units,
            extra={"access_code": key},
        )
        return await self._commit(key)

    async def set_elapsed(self, raw_key: Any, elapsed_seconds: Any) -> Dict[str, Any]:
        """
        Seek: set remaining time to ``duration - elapsed``.

        Elapsed equal to the full duration completes the timer. A running
        timer restarts its ticker so the next tick counts from the new
        position.
        """
        key = validate_key(raw_key)
        entry = self._registry.get(key)
        if entry is None:
            raise TimerNotFound(key)
        if not entry.id:
            raise TimerNotFound(key, "No timer is currently active for this access code")

        seconds = to_number(elapsed_seconds)
        if seconds is None or not math.isfinite(seconds) or seconds < 0:
            raise InvalidElapsed(elapsed_seconds)
        elapsed_units = seconds_to_units(seconds)
        if elapsed_units is None or elapsed_units > entry.total_units:
            raise ElapsedExceedsDuration(elapsed_units, entry.total_units)

        if elapsed_units >= entry.total_units:
            self._ticks.cancel(key)
            entry.phase = self._fsm.transition(entry.phase, COMPLETE)
            entry.remaining_units = 0
            entry.paused_at_ms = 0
        else:
            entry.phase = self._fsm.transition(entry.phase, SEEK)
            entry.set_remaining(entry.total_units - elapsed_units)
            if entry.running:
                self._ticks.start(key, self.tick)
        logger.info(
            "Elapsed set for %s: %d/%d tenths", key, elapsed_units, entry.total_units,
            extra={"access_code": key},
        )

        status = await self._commit(key)
        return {
            **status,
            "elapsedTime": elapsed_units,
            "elapsedSeconds": elapsed_units / UNITS_PER_SECOND,
        }

    def status(self, raw_key: Any) -> Dict[str, Any]:
        """Current status; a default empty status if no timer exists."""
        key = validate_key(raw_key)
        return build_status(key, self._registry.get(key))

    def list_active(self) -> List[Dict[str, Any]]:
        """Every timer that has ever been started (admin/debug listing)."""
        return [
            {
                "accessCode": key,
                "id": entry.id,
                "isRunning": entry.running,
                "isPaused": entry.paused,
                "remainingSeconds": entry.remaining_units / UNITS_PER_SECOND,
            }
            for key, entry in self._registry.all()
            if entry.id
        ]

    # ── Subscribers ─────────────────────────────────────────────

    async def subscribe(self, raw_key: Any, sink: Any) -> str:
        """Register a live-update sink and push it the current status."""
        key = validate_key(raw_key)
        await self._hub.subscribe(key, sink, self.status(key))
        return key

    async def unsubscribe(self, key: str, sink: Any) -> None:
        if key:
            await self._hub.unsubscribe(key, sink)

    # ── Lifecycle ───────────────────────────────────────────────

    async def restore(self) -> int:
        """
        Seed the registry from the snapshot store.

        Timers that were running when saved resume ticking from their saved
        remaining time.
        """
        entries = await self._store.load()
        self._registry.load(entries)
        for key, entry in entries.items():
            if entry.id and entry.id.isdigit():
                self._last_id = max(self._last_id, int(entry.id))
            if entry.running:
                self._ticks.start(key, self.tick)
        self._update_gauges()
        return len(entries)

    async def shutdown(self) -> None:
        """Cancel every ticker and write a final snapshot."""
        await self._ticks.cancel_all()
        await self._store.save(entry for _, entry in self._registry.all())
        logger.info("Timer service cleanup completed")

    # ── Countdown ───────────────────────────────────────────────

    async def tick(self, key: str) -> None:
        """One countdown step, invoked by the TickDriver every second."""
        entry = self._registry.get(key)
        if entry is None or not entry.running:
            self._ticks.cancel(key)
            return

        timer_metrics.inc("ticks")
        entry.set_remaining(entry.remaining_units - UNITS_PER_TICK)
        if entry.remaining_units == 0:
            self._ticks.cancel(key)
            entry.phase = self._fsm.transition(entry.phase, EXPIRE)
            timer_metrics.inc("timer_finished")
            logger.info("Timer finished for %s", key, extra={"access_code": key})
        await self._commit(key)

    # ── Internals ───────────────────────────────────────────────

    async def _commit(self, key: str) -> Dict[str, Any]:
        """
        Persist the whole registry, then broadcast ``key``'s status.

        The status is versioned as it is built, so a broadcast that resumes
        after a later one never leaves a subscriber on the older state.
        """
        status = build_status(key, self._registry.get(key))
        version = self._hub.next_version(key)
        self._update_gauges()
        await self._store.save(entry for _, entry in self._registry.all())
        await self._hub.publish(key, status, version)
        return status

    def _require(self, key: str) -> TimerEntry:
        entry = self._registry.get(key)
        if entry is None:
            raise TimerNotFound(key)
        return entry

    def _next_id(self) -> str:
        candidate = now_ms()
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        self._last_id = candidate
        return str(candidate)

    def _update_gauges(self) -> None:
        timer_metrics.set_gauge("timers", len(self._registry))
        timer_metrics.set_gauge("timers_running", len(self._ticks))
