# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.

"""
SyncTimer Application Entry Point.

FastAPI app with lifespan, middleware and all API routers. The timer
service is built here and injected through ``app.state``.

Run: uvicorn synctimer.main:app --host 0.0.0.0 --port 45001
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from synctimer.api.errors import APIError, api_error_handler, timer_error_handler
from synctimer.api.middleware import RequestLogMiddleware
from synctimer.api.observability import router as observability_router
from synctimer.api.timer import router as timer_router
from synctimer.api.ws import router as ws_router
from synctimer.core.config import TimerSettings, settings as default_settings
from synctimer.core.errors import TimerError
from synctimer.core.logging import setup_logging
from synctimer.kernel.clock import TickDriver
from synctimer.kernel.hub import BroadcastHub
from synctimer.kernel.redis_client import close_redis_pool, get_redis_pool
from synctimer.kernel.registry import TimerRegistry
from synctimer.kernel.timer_service import TimerService
from synctimer.storage.snapshot import FileSnapshotStore, RedisSnapshotStore, SnapshotStore
from synctimer.version import __version__

logger = logging.getLogger("synctimer.main")


async def build_store(cfg: TimerSettings) -> SnapshotStore:
    if cfg.SNAPSHOT_BACKEND == "redis":
        redis = await get_redis_pool(cfg.REDIS_URL)
        return RedisSnapshotStore(redis, cfg.REDIS_SNAPSHOT_KEY)
    return FileSnapshotStore(cfg.STATE_FILE)


def build_service(cfg: TimerSettings, store: Optional[SnapshotStore] = None) -> TimerService:
    return TimerService(
        registry=TimerRegistry(),
        store=store or FileSnapshotStore(cfg.STATE_FILE),
        hub=BroadcastHub(send_timeout=cfg.SUBSCRIBER_SEND_TIMEOUT),
        ticks=TickDriver(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Restore timers on startup; stop tickers and save on shutdown."""
    cfg: TimerSettings = app.state.settings
    setup_logging(cfg.LOG_LEVEL, cfg.LOG_FORMAT)

    service: Optional[TimerService] = getattr(app.state, "timer_service", None)
    if service is None:
        service = build_service(cfg, await build_store(cfg))
        app.state.timer_service = service

    restored = await service.restore()
    logger.info("[SyncTimer] Ready on %s:%d (%d timers restored)", cfg.HOST, cfg.PORT, restored)
    yield
    await service.shutdown()
    await close_redis_pool()
    logger.info("[SyncTimer] Shutdown complete")


def create_app(
    cfg: Optional[TimerSettings] = None,
    service: Optional[TimerService] = None,
) -> FastAPI:
    """
    Build the FastAPI app.

    ``service`` is normally created by the lifespan from settings; passing
    one in lets callers (and tests) own it.
    """
    cfg = cfg or default_settings
    app = FastAPI(
        title="SyncTimer",
        description="Multi-device synchronized countdown timers",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = cfg
    if service is not None:
        app.state.timer_service = service

    # ── Middleware ───────────────────────────────────────────────
    app.add_middleware(RequestLogMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=cfg.cors_origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Error Handlers ──────────────────────────────────────────
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(TimerError, timer_error_handler)

    # ── Routes ──────────────────────────────────────────────────
    app.include_router(timer_router, prefix="/api")
    app.include_router(ws_router)
    app.include_router(observability_router)
    return app


app = create_app()


def run() -> None:
    """Console entry point: serve ``app`` with uvicorn on HOST/PORT."""
    import uvicorn

    uvicorn.run(
        "synctimer.main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        log_config=None,
    )


if __name__ == "__main__":
    run()
