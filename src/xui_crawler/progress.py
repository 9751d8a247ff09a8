"""Progress and log sinks passed explicitly to each crawl invocation."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from .logging import get_logger


class ProgressSink(Protocol):
    def on_log(self, message: str) -> None:
        """Receive a human-readable progress message."""

    def on_progress(self, collected: int) -> None:
        """Receive the running count of collected records."""


class LoggingSink:
    """Default sink: echo messages through the package logger."""

    def __init__(self, logger_name: str | None = None) -> None:
        self._logger = get_logger(logger_name)

    def on_log(self, message: str) -> None:
        self._logger.info(message)

    def on_progress(self, collected: int) -> None:
        self._logger.debug("collected=%s", collected)


@dataclass
class CallbackSink:
    """Adapt plain callables; a missing ``log`` falls back to the package logger."""

    log: Callable[[str], None] | None = None
    progress: Callable[[int], None] | None = None
    _fallback: LoggingSink = field(default_factory=LoggingSink, repr=False)

    def on_log(self, message: str) -> None:
        if self.log is None:
            self._fallback.on_log(message)
        else:
            self.log(message)

    def on_progress(self, collected: int) -> None:
        if self.progress is not None:
            self.progress(collected)


@dataclass
class RecordingSink:
    """Keep every message and progress value in memory."""

    messages: list[str] = field(default_factory=list)
    counts: list[int] = field(default_factory=list)

    def on_log(self, message: str) -> None:
        self.messages.append(message)

    def on_progress(self, collected: int) -> None:
        self.counts.append(collected)


def resolve_sink(sink: ProgressSink | None) -> ProgressSink:
    return sink if sink is not None else LoggingSink()
