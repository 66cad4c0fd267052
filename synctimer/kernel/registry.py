# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.

"""
Timer Registry — In-memory store of timer state per access code.

Pure storage: no validation, no scheduling. Entries are replaced by a new
start but never removed while the process runs.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Tuple

from synctimer.protocols.schema import TimerEntry

logger = logging.getLogger("synctimer.registry")


class TimerRegistry:
    """Key-unique mapping from access code to TimerEntry."""

    def __init__(self) -> None:
        self._timers: Dict[str, TimerEntry] = {}

    def get(self, key: str) -> Optional[TimerEntry]:
        return self._timers.get(key)

    def set(self, key: str, entry: TimerEntry) -> None:
        self._timers[key] = entry

    def all(self) -> List[Tuple[str, TimerEntry]]:
        return list(self._timers.items())

    def load(self, entries: Dict[str, TimerEntry]) -> None:
        """Seed the registry from a restored snapshot."""
        self._timers.update(entries)
        logger.info("Registry seeded with %d timers", len(entries))

    def clear(self) -> None:
        self._timers.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._timers

    def __len__(self) -> int:
        return len(self._timers)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._timers))
