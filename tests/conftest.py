# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.

"""
Shared test fixtures for all SyncTimer tests.
"""

import asyncio

import pytest
import fakeredis.aioredis

from synctimer.core.config import TimerSettings
from synctimer.core.metrics import timer_metrics
from synctimer.kernel.clock import TickDriver
from synctimer.kernel.hub import BroadcastHub
from synctimer.kernel.registry import TimerRegistry
from synctimer.kernel.timer_service import TimerService
from synctimer.storage.snapshot import FileSnapshotStore

ACCESS_CODE = "123456"


class RecordingSink:
    """Sink that keeps every message it receives."""

    def __init__(self):
        self.messages = []
        self.closed = False

    async def send(self, message: str) -> None:
        self.messages.append(message)

    def close(self) -> None:
        self.closed = True


class FailingSink(RecordingSink):
    """Sink whose every push raises, like a dropped connection."""

    async def send(self, message: str) -> None:
        raise ConnectionResetError("client went away")


class SlowSink(RecordingSink):
    """Sink that never finishes a push."""

    async def send(self, message: str) -> None:
        await asyncio.sleep(3600)


@pytest.fixture(autouse=True)
def reset_metrics():
    timer_metrics.reset()
    yield


@pytest.fixture
def access_code() -> str:
    return ACCESS_CODE


@pytest.fixture
def sinks():
    """Sink classes: RecordingSink, FailingSink, SlowSink."""
    return RecordingSink, FailingSink, SlowSink


@pytest.fixture
def state_file(tmp_path):
    return tmp_path / "timer.json"


@pytest.fixture
def test_settings(state_file) -> TimerSettings:
    return TimerSettings(
        _env_file=None,
        STATE_FILE=str(state_file),
        LOG_FORMAT="plain",
        SSE_KEEPALIVE=0.05,
        SUBSCRIBER_SEND_TIMEOUT=0.2,
    )


def make_service(state_file, interval: float = 3600.0, send_timeout: float = 0.2) -> TimerService:
    """
    TimerService over a temp snapshot file.

    The default tick interval is long enough that no real tick fires; tests
    drive the countdown with ``service.tick(key)``.
    """
    return TimerService(
        registry=TimerRegistry(),
        store=FileSnapshotStore(state_file),
        hub=BroadcastHub(send_timeout=send_timeout),
        ticks=TickDriver(interval=interval),
    )


@pytest.fixture
async def service(state_file):
    svc = make_service(state_file)
    yield svc
    await svc.ticks.cancel_all()


@pytest.fixture
async def fast_service(state_file):
    """TimerService whose ticker really fires, every 20ms."""
    svc = make_service(state_file, interval=0.02)
    yield svc
    await svc.ticks.cancel_all()


@pytest.fixture
def mock_redis():
    """Provide a FakeRedis async instance."""
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


@pytest.fixture
def service_factory(state_file):
    """Build extra services sharing the same snapshot file (restart scenarios)."""
    def _factory(**kwargs):
        return make_service(state_file, **kwargs)
    return _factory
