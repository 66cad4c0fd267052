# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.

"""
Structured Logging — JSON format with trace and access-code context.
"""

from __future__ import annotations

import json
import logging
import sys

PLAIN_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class StructuredFormatter(logging.Formatter):
    """JSON log formatter with trace/access-code context."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        for key in ("trace_id", "access_code"):
            val = getattr(record, key, None)
            if val:
                log_entry[key] = val

        if record.exc_info and record.exc_info[0]:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure root logging for the service."""
    handler = logging.StreamHandler(sys.stdout)
    if fmt == "plain":
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    else:
        handler.setFormatter(StructuredFormatter())

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    root.addHandler(handler)
