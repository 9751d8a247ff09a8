"""Backoff and pacing arithmetic shared by crawl loops."""

from __future__ import annotations

import random


def backoff_delay_ms(base_ms: int, cap_ms: int, attempt: int) -> int:
    """Exponential backoff ``base * 2**attempt`` clamped to ``cap_ms``."""
    if attempt < 0:
        raise ValueError("attempt must be >= 0.")
    return min(base_ms * (2**attempt), cap_ms)


def human_pause_ms(low_ms: int, high_ms: int, *, rng: random.Random | None = None) -> int:
    """Random pause inside ``[low_ms, high_ms]``."""
    if low_ms > high_ms:
        raise ValueError("low_ms must be <= high_ms.")
    generator = rng or random
    return generator.randint(low_ms, high_ms)


def ms_to_seconds(value_ms: float) -> float:
    return max(0.0, value_ms / 1000.0)
