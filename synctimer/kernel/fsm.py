# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.

"""
Timer Phase Machine — Legal transitions for a single timer.

A timer is always in exactly one phase. ``running`` and ``paused`` flags
exposed to clients are derived from the phase, so a timer that is both
running and paused cannot be represented.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, List, Tuple

from synctimer.core.errors import InvalidTransition

logger = logging.getLogger("synctimer.fsm")


class Phase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    FINISHED = "finished"

    @property
    def is_running(self) -> bool:
        return self is Phase.RUNNING

    @property
    def is_paused(self) -> bool:
        return self is Phase.PAUSED

    @classmethod
    def from_flags(cls, is_running: bool, is_paused: bool) -> Phase:
        """Recover a phase from legacy running/paused flags."""
        if is_running and not is_paused:
            return cls.RUNNING
        if is_paused:
            return cls.PAUSED
        return cls.IDLE


# --- Events ---
START = "START"
PAUSE = "PAUSE"
RESUME = "RESUME"
STOP = "STOP"
EXPIRE = "EXPIRE"
COMPLETE = "COMPLETE"
SEEK = "SEEK"

_ANY = tuple(Phase)

TRANSITIONS: List[Tuple[Tuple[Phase, ...], str, Phase]] = [
    (_ANY, START, Phase.RUNNING),
    ((Phase.RUNNING,), PAUSE, Phase.PAUSED),
    ((Phase.PAUSED,), RESUME, Phase.RUNNING),
    (_ANY, STOP, Phase.IDLE),
    ((Phase.RUNNING,), EXPIRE, Phase.FINISHED),
    (_ANY, COMPLETE, Phase.FINISHED),
    ((Phase.RUNNING,), SEEK, Phase.RUNNING),
    ((Phase.PAUSED,), SEEK, Phase.PAUSED),
    ((Phase.IDLE, Phase.FINISHED), SEEK, Phase.IDLE),
]

_REJECTIONS = {
    PAUSE: "Timer is not running or already paused",
    RESUME: "Timer is not paused",
    EXPIRE: "Timer is not running",
}


class TimerFSM:
    """Table-driven transition lookup: (phase, event) -> phase."""

    def __init__(self, transitions=TRANSITIONS) -> None:
        self._lookup: Dict[Tuple[Phase, str], Phase] = {}
        for sources, event, target in transitions:
            for source in sources:
                self._lookup[(source, event)] = target

    def transition(self, current: Phase, event: str) -> Phase:
        """
        Compute the next phase for ``event``.

        Raises InvalidTransition if no matching rule exists.
        """
        key = (current, event)
        if key not in self._lookup:
            raise InvalidTransition(
                _REJECTIONS.get(
                    event, f"No transition from phase '{current.value}' on '{event}'"
                )
            )
        next_phase = self._lookup[key]
        logger.debug("Timer transition: %s -[%s]-> %s", current.value, event, next_phase.value)
        return next_phase


default_fsm = TimerFSM()
