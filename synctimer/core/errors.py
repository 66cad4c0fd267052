# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.

"""
Timer Errors — Typed rejections of a single control call.

None of these are fatal to the process. The API layer maps them to HTTP
status codes through ``status_code``.
"""

from __future__ import annotations

from typing import Optional


class TimerError(Exception):
    """Base class for all timer control failures."""

    code = "TIMER_ERROR"
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidAccessCode(TimerError):
    code = "INVALID_ACCESS_CODE"

    def __init__(self, raw: object = None):
        super().__init__(
            "Access code must be at least 6 digits and contain only numbers"
        )
        self.raw = raw


class TimerNotFound(TimerError):
    code = "TIMER_NOT_FOUND"
    status_code = 404

    def __init__(self, access_code: str, message: str = None):
        super().__init__(message or "No timer found for this access code")
        self.access_code = access_code


class InvalidDuration(TimerError):
    code = "INVALID_DURATION"

    def __init__(self, value: object = None):
        super().__init__(
            "Invalid duration. Please provide a positive number of seconds."
        )
        self.value = value


class InvalidElapsed(TimerError):
    code = "INVALID_ELAPSED"

    def __init__(self, value: object = None):
        super().__init__(
            "Invalid elapsed time. Please provide a non-negative number of seconds."
        )
        self.value = value


class ElapsedExceedsDuration(TimerError):
    code = "ELAPSED_EXCEEDS_DURATION"

    def __init__(self, elapsed_units: Optional[int], total_units: int):
        super().__init__("Elapsed time cannot exceed total timer duration")
        self.elapsed_units = elapsed_units
        self.total_units = total_units


class InvalidTransition(TimerError):
    code = "INVALID_TRANSITION"
    status_code = 409
