# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.

"""
SyncTimer Protocol Schema — Timer state and its wire projections.

Three shapes of the same timer:
  - ``TimerEntry``: mutable runtime state held in the registry.
  - ``TimerSnapshot``: persisted projection (no scheduling handle).
  - status dict: the payload pushed to subscribers and returned by the API.

All durations are integer tenths of a second. Seconds appear only in the
status projection.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from synctimer.core.errors import InvalidAccessCode
from synctimer.kernel.fsm import Phase

UNITS_PER_SECOND = 10
UNITS_PER_TICK = 10
TICK_INTERVAL = 1.0
MS_PER_UNIT = 1000 // UNITS_PER_SECOND
PRECISION = 1.0

ACCESS_CODE_PATTERN = re.compile(r"[0-9]{6,}")


def now_ms() -> int:
    return int(time.time() * 1000)


def validate_key(raw: Any) -> str:
    """Return the access code as a string, or raise InvalidAccessCode."""
    if isinstance(raw, bool):
        raise InvalidAccessCode(raw)
    if isinstance(raw, int):
        raw = str(raw)
    if not isinstance(raw, str) or not ACCESS_CODE_PATTERN.fullmatch(raw):
        raise InvalidAccessCode(raw)
    return raw


@dataclass
class TimerEntry:
    """Runtime state of one timer, keyed by access code."""

    key: str
    id: Optional[str]
    total_units: int
    remaining_units: int
    phase: Phase = Phase.IDLE
    created_at_ms: int = 0
    paused_at_ms: int = 0

    @property
    def running(self) -> bool:
        return self.phase.is_running

    @property
    def paused(self) -> bool:
        return self.phase.is_paused

    def set_remaining(self, units: int) -> None:
        self.remaining_units = max(0, min(units, self.total_units))

    def to_snapshot(self) -> TimerSnapshot:
        return TimerSnapshot(
            id=self.id,
            access_code=self.key,
            duration=self.total_units,
            remaining_time=self.remaining_units,
            is_running=self.running,
            is_paused=self.paused,
            start_time=self.created_at_ms,
            paused_time=self.paused_at_ms,
            phase=self.phase,
        )

    @classmethod
    def from_snapshot(cls, snap: TimerSnapshot) -> TimerEntry:
        return cls(
            key=snap.access_code,
            id=snap.id,
            total_units=snap.duration,
            remaining_units=snap.remaining_time,
            phase=snap.phase,
            created_at_ms=snap.start_time,
            paused_at_ms=snap.paused_time,
        )


class TimerSnapshot(BaseModel):
    """Persisted projection of a TimerEntry."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    access_code: str = Field(..., alias="accessCode", min_length=1)
    duration: int = Field(default=0, ge=0)
    remaining_time: int = Field(default=0, ge=0, alias="remainingTime")
    is_running: bool = Field(default=False, alias="isRunning")
    is_paused: bool = Field(default=False, alias="isPaused")
    start_time: int = Field(default=0, alias="startTime")
    paused_time: int = Field(default=0, alias="pausedTime")
    phase: Optional[Phase] = None

    @model_validator(mode="after")
    def fill_phase_and_clamp(self) -> TimerSnapshot:
        if self.phase is None:
            self.phase = Phase.from_flags(self.is_running, self.is_paused)
        if self.remaining_time > self.duration:
            self.remaining_time = self.duration
        return self

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


def build_status(key: str, entry: Optional[TimerEntry], now: Optional[int] = None) -> Dict[str, Any]:
    """Project a timer (or its absence) into the client-facing status payload."""
    now = now_ms() if now is None else now
    if entry is None:
        return {
            "id": None,
            "accessCode": key,
            "duration": 0,
            "remainingTime": 0,
            "durationSeconds": 0,
            "remainingSeconds": 0,
            "isRunning": False,
            "isPaused": False,
            "timestamp": now,
            "serverTime": now,
            "targetEndTime": None,
            "precision": PRECISION,
        }
    return {
        "id": entry.id,
        "accessCode": key,
        "duration": entry.total_units,
        "remainingTime": entry.remaining_units,
        "durationSeconds": entry.total_units / UNITS_PER_SECOND,
        "remainingSeconds": entry.remaining_units / UNITS_PER_SECOND,
        "isRunning": entry.running,
        "isPaused": entry.paused,
        "timestamp": now,
        "serverTime": now,
        # Lets clients extrapolate locally between pushes.
        "targetEndTime": now + entry.remaining_units * MS_PER_UNIT if entry.running else None,
        "precision": PRECISION,
    }
