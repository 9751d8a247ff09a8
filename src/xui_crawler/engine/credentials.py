"""Credential pool with timed blacklist, recovery and rotation."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
import logging
import time as time_module

from ..errors import InvalidCredentialError
from ..progress import ProgressSink, resolve_sink
from .timing import ms_to_seconds

logger = logging.getLogger(__name__)

ClockFn = Callable[[], float]
SleepFn = Callable[[float], None]
CredentialInjector = Callable[[str], None]


@dataclass(frozen=True)
class Availability:
    """Result of scanning the pool for the next usable credential."""

    index: int | None
    wait_ms: int = 0

    @property
    def all_blocked(self) -> bool:
        return self.index is None


class CredentialPool:
    """Ordered credentials owned by one crawl session.

    The primary credential is always present and first. Blacklisted entries
    recover after ``cooldown_ms``. Log text only ever names pool positions.
    """

    def __init__(
        self,
        primary: str,
        extra: Iterable[str] = (),
        *,
        cooldown_ms: int = 60_000,
        safety_margin_ms: int = 5_000,
        rotation_delay_ms: int = 3_000,
        clock: ClockFn | None = None,
        sleep_fn: SleepFn | None = None,
        sink: ProgressSink | None = None,
    ) -> None:
        if not primary or not primary.strip():
            raise InvalidCredentialError(
                "A session credential is required. Pass --token or set XUI_CRAWLER_TOKEN."
            )
        credentials = [primary.strip()]
        for value in extra:
            candidate = value.strip() if value else ""
            if candidate and candidate not in credentials:
                credentials.append(candidate)
        self._credentials = tuple(credentials)
        self._current = 0
        self._blacklist: dict[int, float] = {}
        self._cooldown_s = ms_to_seconds(cooldown_ms)
        self._safety_margin_s = ms_to_seconds(safety_margin_ms)
        self._rotation_delay_s = ms_to_seconds(rotation_delay_ms)
        self._clock = clock or time_module.monotonic
        self._sleep = sleep_fn or time_module.sleep
        self._sink = resolve_sink(sink)

    @property
    def size(self) -> int:
        return len(self._credentials)

    @property
    def current_index(self) -> int:
        return self._current

    @property
    def current(self) -> str:
        return self._credentials[self._current]

    @property
    def blacklisted_indexes(self) -> tuple[int, ...]:
        return tuple(sorted(self._blacklist))

    def is_blacklisted(self, index: int) -> bool:
        recovery = self._blacklist.get(index)
        return recovery is not None and recovery > self._clock()

    def blacklist(self, index: int | None = None, reason: str = "") -> bool:
        """Blacklist ``index`` (default: current); no-op while an entry is active."""
        target = self._current if index is None else index
        if not 0 <= target < len(self._credentials):
            raise IndexError(f"Credential index {target} is outside the pool of {self.size}.")
        if self.is_blacklisted(target):
            return False
        self._blacklist[target] = self._clock() + self._cooldown_s
        suffix = f": {reason}" if reason else ""
        self._sink.on_log(
            f"Credential {target + 1}/{self.size} blacklisted for {self._cooldown_s:.0f}s{suffix}"
        )
        return True

    def cleanup_expired(self) -> int:
        now = self._clock()
        expired = [index for index, recovery in self._blacklist.items() if recovery <= now]
        for index in expired:
            del self._blacklist[index]
            logger.debug("Credential %s recovered from blacklist", index + 1)
        return len(expired)

    def next_available(self) -> Availability:
        """Next non-blacklisted index after the cursor, or the wait until one recovers."""
        size = len(self._credentials)
        for offset in range(1, size + 1):
            candidate = (self._current + offset) % size
            if not self.is_blacklisted(candidate):
                return Availability(index=candidate)

        now = self._clock()
        earliest = min(self._blacklist.values())
        wait_ms = max(0, int(round((earliest - now) * 1000)))
        return Availability(index=None, wait_ms=wait_ms)

    def rotate(self, injector: CredentialInjector, reason: str = "") -> bool:
        """Switch to the next usable credential and re-inject it.

        Blocks while every credential is blacklisted. Returns False when the
        pool has a single entry or when injecting the chosen credential fails
        (that credential is then blacklisted too).
        """
        if len(self._credentials) <= 1:
            return False

        while True:
            self.cleanup_expired()
            availability = self.next_available()
            if not availability.all_blocked:
                break
            wait_s = ms_to_seconds(availability.wait_ms) + self._safety_margin_s
            self._sink.on_log(
                f"All {self.size} credentials blacklisted; waiting {wait_s:.0f}s for recovery"
            )
            self._sleep(wait_s)

        target = availability.index
        assert target is not None
        previous = self._current
        try:
            injector(self._credentials[target])
        except Exception as exc:
            logger.warning("Credential %s injection failed: %s", target + 1, exc)
            self.blacklist(target, reason="injection failed")
            return False

        self._current = target
        suffix = f" ({reason})" if reason else ""
        self._sink.on_log(f"Rotated credential {previous + 1} -> {target + 1}/{self.size}{suffix}")
        self._sleep(self._rotation_delay_s)
        return True
