# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.

"""
Snapshot Stores — Best-effort persistence of the whole timer registry.

The full mapping is rewritten after every mutation and read once at
startup. A missing or malformed snapshot yields an empty (or partial)
registry; neither is fatal.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Dict, Iterable, Optional

import redis.asyncio as aioredis
from pydantic import ValidationError

from synctimer.core.errors import InvalidAccessCode
from synctimer.core.metrics import timer_metrics
from synctimer.protocols.schema import TimerEntry, TimerSnapshot, validate_key

logger = logging.getLogger("synctimer.snapshot")


def dump_snapshot(entries: Iterable[TimerEntry]) -> str:
    """Serialize entries as ``{accessCode: snapshot}`` JSON."""
    doc = {entry.key: entry.to_snapshot().to_dict() for entry in entries}
    return json.dumps(doc, indent=2, ensure_ascii=False)


def parse_snapshot(text: str) -> Dict[str, TimerEntry]:
    """
    Rebuild entries from snapshot JSON.

    Entries without an id, or that fail validation, are skipped.
    Raises ValueError if the document itself is not a JSON object.
    """
    doc = json.loads(text)
    if not isinstance(doc, dict):
        raise ValueError("snapshot root must be an object")

    entries: Dict[str, TimerEntry] = {}
    for key, raw in doc.items():
        if not isinstance(raw, dict):
            logger.warning("Skipping malformed snapshot entry %s", key)
            continue
        try:
            validate_key(key)
        except InvalidAccessCode:
            logger.warning("Skipping snapshot entry with malformed access code %r", key)
            continue
        # the mapping key is authoritative
        raw = {**raw, "accessCode": key}
        try:
            snap = TimerSnapshot.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Skipping invalid snapshot entry %s: %s", key, exc.error_count())
            continue
        if not snap.id:
            continue
        entries[key] = TimerEntry.from_snapshot(snap)
    return entries


class SnapshotStore:
    """Base interface: save the full registry, load it back."""

    name = "none"

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    async def save(self, entries: Iterable[TimerEntry]) -> bool:
        """
        Persist ``entries``. Returns False (after logging) on failure.

        Saves run one at a time and each dumps the entries only once it
        holds the lock, so the last save to finish writes the newest state.
        """
        start = time.time()
        try:
            async with self._lock:
                await self._write(dump_snapshot(entries))
        except Exception as exc:
            timer_metrics.inc("snapshot_errors")
            logger.error("Error saving timer states to %s: %s", self.name, exc)
            return False
        timer_metrics.inc("snapshot_saved")
        timer_metrics.observe("snapshot_save_ms", (time.time() - start) * 1000)
        return True

    async def load(self) -> Dict[str, TimerEntry]:
        try:
            text = await self._read()
        except Exception as exc:
            logger.error("Error reading timer states from %s: %s", self.name, exc)
            return {}
        if text is None:
            logger.info("No saved timer states found, starting fresh")
            return {}
        try:
            entries = parse_snapshot(text)
        except ValueError as exc:
            # json.JSONDecodeError is a ValueError
            logger.warning("Malformed timer snapshot in %s, starting fresh: %s", self.name, exc)
            return {}
        logger.info("Loaded %d timer states from %s", len(entries), self.name)
        return entries

    async def _write(self, text: str) -> None:
        raise NotImplementedError

    async def _read(self) -> Optional[str]:
        raise NotImplementedError


class FileSnapshotStore(SnapshotStore):
    """
    JSON file, replaced atomically on every save.

    File I/O runs inline on the event loop: a save completes before the
    mutating call returns.
    """

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def name(self) -> str:
        return f"file:{self._path}"

    async def _write(self, text: str) -> None:
        directory = self._path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp, self._path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    async def _read(self) -> Optional[str]:
        if not self._path.exists():
            return None
        return self._path.read_text(encoding="utf-8")


class RedisSnapshotStore(SnapshotStore):
    """The same JSON document kept under a single Redis key."""

    def __init__(self, redis: aioredis.Redis, key: str = "synctimer:timers") -> None:
        super().__init__()
        self._redis = redis
        self._key = key

    @property
    def name(self) -> str:
        return f"redis:{self._key}"

    async def _write(self, text: str) -> None:
        await self._redis.set(self._key, text)

    async def _read(self) -> Optional[str]:
        return await self._redis.get(self._key)
