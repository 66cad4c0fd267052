# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.

"""
SyncTimer Configuration — Environment-driven settings.

All configuration is loaded from environment variables (or .env file).
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class TimerSettings(BaseSettings):
    """Service-wide configuration loaded from environment."""

    # --- Server ---
    HOST: str = Field(default="localhost", description="Bind address")
    PORT: int = Field(default=45001, description="Bind port")
    CORS_ORIGIN: str = Field(
        default="*",
        description="Allowed CORS origin(s), comma separated",
    )

    # --- Persistence ---
    SNAPSHOT_BACKEND: str = Field(
        default="file",
        description="Snapshot store: file | redis",
    )
    STATE_FILE: str = Field(
        default="timer.json",
        description="JSON snapshot path for the file backend",
    )
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL (redis backend only)",
    )
    REDIS_SNAPSHOT_KEY: str = Field(
        default="synctimer:timers",
        description="Redis key holding the JSON snapshot",
    )

    # --- Live updates ---
    SSE_QUEUE_SIZE: int = Field(
        default=32,
        description="Per-subscriber buffer; a full buffer drops the subscriber",
    )
    SSE_KEEPALIVE: float = Field(
        default=15.0,
        description="Seconds of silence before an SSE keepalive comment",
    )
    SUBSCRIBER_SEND_TIMEOUT: float = Field(
        default=5.0,
        description="Max seconds a single push may take before the sink is dropped",
    )

    # --- Platform ---
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(
        default="json",
        description="Log output: json | plain",
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }

    @field_validator("SNAPSHOT_BACKEND")
    @classmethod
    def backend_must_be_known(cls, v: str) -> str:
        if v not in ("file", "redis"):
            raise ValueError(f"SNAPSHOT_BACKEND must be 'file' or 'redis', got '{v}'")
        return v

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGIN.split(",") if o.strip()]


# Global singleton
settings = TimerSettings()
