"""Test-only utilities for deterministic crawl-loop assertions."""

from .time_control import ManualClock, SleepRecorder

__all__ = ["ManualClock", "SleepRecorder"]
