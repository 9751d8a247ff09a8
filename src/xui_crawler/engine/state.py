"""Mutable per-loop counters."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class SessionState:
    """Counters owned by one crawl loop; reset at loop entry."""

    started_at: float
    stagnant_cycles: int = 0
    same_height_count: int = 0
    last_height: int = 0
    consecutive_timeouts: int = 0
    timeout_count: int = 0
    reach_timeout_count: int = 0
    records_with_credential: int = 0
    retries: int = 0
    paced_count: int = 0
    recovery_jostles: int = 0
    responses: int = 0
    rotations: int = 0

    def elapsed_ms(self, now: float) -> float:
        return (now - self.started_at) * 1000.0

    def record_timeout(self) -> None:
        self.timeout_count += 1
        self.consecutive_timeouts += 1

    def clear_timeouts(self) -> None:
        self.timeout_count = 0
        self.consecutive_timeouts = 0

    def track_height(self, height: int) -> None:
        if height == self.last_height:
            self.same_height_count += 1
        else:
            self.same_height_count = 0
            self.last_height = height
