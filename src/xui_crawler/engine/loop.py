"""Single-target crawl loop: search, paginate, terminate."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import logging
import threading
import time as time_module

from ..errors import CrawlAbortedError
from ..extract.timeline import parse_timeline_response
from ..models import PostRecord, SearchTab
from ..profiles import CrawlProfile, TimeoutBudget
from ..progress import ProgressSink, resolve_sink
from .classifier import Classification, ErrorKind, classify_text
from .credentials import CredentialPool
from .dedup import DedupCollector
from .end_detector import EndOfPaginationDetector, EndSignal
from .page import PageAutomation
from .state import SessionState
from .timing import backoff_delay_ms, ms_to_seconds

logger = logging.getLogger(__name__)

ClockFn = Callable[[], float]
SleepFn = Callable[[float], None]


class LoopPhase(str, Enum):
    SEARCHING = "searching"
    PAGINATING = "paginating"
    TERMINATED = "terminated"


class StopReason(str, Enum):
    TARGET_REACHED = "target_reached"
    END_OF_CONTENT = "end_of_content"
    TIMEOUT_BUDGET_EXHAUSTED = "timeout_budget_exhausted"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    RECOVERY_TIMEOUT = "recovery_timeout"
    CANCELLED = "cancelled"


class CancelToken:
    """Cooperative cancellation flag polled at the top of every cycle."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class LoopResult:
    records: tuple[PostRecord, ...]
    stop_reason: StopReason
    end_signal: EndSignal | None = None
    responses: int = 0
    rotations: int = 0


class _Stop(Exception):
    def __init__(self, reason: StopReason, signal: EndSignal | None = None) -> None:
        super().__init__(reason.value)
        self.reason = reason
        self.signal = signal


class CrawlLoop:
    """Drive one target's pagination until a termination condition holds.

    Every wait goes through ``sleep_fn`` and every elapsed-time check through
    ``clock`` (seconds), so the loop runs deterministically under test.
    """

    def __init__(
        self,
        page: PageAutomation,
        pool: CredentialPool,
        profile: CrawlProfile,
        *,
        target_count: int = 10,
        strip_reply_mention: bool = False,
        lower_bound: datetime | None = None,
        sink: ProgressSink | None = None,
        clock: ClockFn | None = None,
        sleep_fn: SleepFn | None = None,
        cancel_token: CancelToken | None = None,
    ) -> None:
        if target_count != -1 and target_count <= 0:
            raise ValueError("target_count must be -1 (unlimited) or > 0.")
        self.page = page
        self.pool = pool
        self.profile = profile
        self.target_count = target_count
        self.budget: TimeoutBudget = profile.budget(unlimited=target_count == -1)
        self.phase = LoopPhase.SEARCHING
        self.collector: DedupCollector[PostRecord] = DedupCollector()
        self._strip_reply_mention = strip_reply_mention
        self._sink = resolve_sink(sink)
        self._clock = clock or time_module.monotonic
        self._sleep = sleep_fn or time_module.sleep
        self._cancel = cancel_token
        self._detector = EndOfPaginationDetector(
            profile.end_detection,
            max_empty_responses=profile.persistence.max_empty_responses,
            lower_bound=lower_bound,
        )
        self.state = SessionState(started_at=self._clock())

    def run(self, *, search_query: str | None = None, tab: SearchTab = SearchTab.LATEST) -> LoopResult:
        self.state = SessionState(started_at=self._clock())
        if search_query:
            self.phase = LoopPhase.SEARCHING
            self._submit_search(search_query, tab)

        self.phase = LoopPhase.PAGINATING
        stop: _Stop
        while True:
            reason = self.termination_reason()
            if reason is not None:
                stop = _Stop(reason)
                break
            try:
                self._cycle()
            except _Stop as exc:
                stop = exc
                break
            except CrawlAbortedError:
                raise
            except Exception as exc:
                classification = classify_text(str(exc))
                if not classification.is_error:
                    raise CrawlAbortedError(
                        f"Crawl aborted after {self.collector.size} records: {exc}",
                        records=self.collector.materialize(),
                    ) from exc
                try:
                    self._handle_classified_error(classification)
                except _Stop as stop_exc:
                    stop = stop_exc
                    break

        self.phase = LoopPhase.TERMINATED
        limit = None if self.target_count == -1 else self.target_count
        records = self.collector.materialize(limit=limit)
        detail = f" ({stop.signal.value})" if stop.signal is not None else ""
        self._sink.on_log(f"Crawl finished: {len(records)} records, reason={stop.reason.value}{detail}")
        return LoopResult(
            records=records,
            stop_reason=stop.reason,
            end_signal=stop.signal,
            responses=self.state.responses,
            rotations=self.state.rotations,
        )

    def termination_reason(self) -> StopReason | None:
        """Single loop-top predicate combining every termination condition."""
        state = self.state
        if self._cancel is not None and self._cancel.cancelled:
            return StopReason.CANCELLED
        if self.target_count != -1 and self.collector.size >= self.target_count:
            return StopReason.TARGET_REACHED
        if (
            state.timeout_count >= self.budget.timeout_limit
            and state.reach_timeout_count >= self.budget.reach_timeout_max
        ):
            return StopReason.TIMEOUT_BUDGET_EXHAUSTED
        if state.elapsed_ms(self._clock()) >= self.budget.max_execution_ms:
            return StopReason.DEADLINE_EXCEEDED
        return None

    def _cycle(self) -> None:
        state = self.state
        if (
            state.timeout_count > self.budget.timeout_limit
            and state.reach_timeout_count < self.budget.reach_timeout_max
        ):
            self._escalate()

        body = self.page.wait_for_next_paginated_response(
            self.profile.scroll.wait_for_response_timeout_ms
        )
        if body is None:
            self._on_timeout()
        else:
            self._on_response(body)

        state.track_height(self._page_height())
        self.page.scroll_forward()
        if state.timeout_count > 0:
            self._consult_detector()

    def _on_timeout(self) -> None:
        self.state.record_timeout()
        logger.debug(
            "No paginated response (timeouts=%s, escalations=%s)",
            self.state.timeout_count,
            self.state.reach_timeout_count,
        )
        if self.state.consecutive_timeouts >= self.profile.end_detection.timeout_check_threshold:
            self._consult_detector()

    def _on_response(self, body: str) -> None:
        state = self.state
        state.responses += 1
        state.clear_timeouts()

        classification = classify_text(body)
        if classification.is_error:
            self._handle_classified_error(classification)
            return

        records = parse_timeline_response(body, strip_reply_mention=self._strip_reply_mention)

        new_count = self.collector.merge(records)
        state.retries = 0
        if new_count:
            state.stagnant_cycles = 0
            state.records_with_credential += new_count
            self._sink.on_log(f"Collected {self.collector.size} records (+{new_count})")
            self._sink.on_progress(self.collector.size)
            self._pace(new_count)
        else:
            state.stagnant_cycles += 1
            if not records:
                self._recover_empty_page()
            self._consult_detector()

        if state.records_with_credential >= self.profile.rotation_threshold:
            state.records_with_credential = 0
            if self.pool.rotate(self.page.inject_session_credential, reason="scheduled"):
                state.rotations += 1

    def _handle_classified_error(self, classification: Classification) -> None:
        state = self.state
        label = "Rate limit" if classification.kind is ErrorKind.RATE_LIMIT else "Blocked credential"
        self._sink.on_log(f"{label} detected on credential {self.pool.current_index + 1}/{self.pool.size}")
        self.pool.blacklist(reason=classification.kind.value)
        if self.pool.rotate(self.page.inject_session_credential, reason=classification.kind.value):
            state.rotations += 1
            state.retries = 0
            state.records_with_credential = 0
            return

        if state.elapsed_ms(self._clock()) > self.profile.rate_limit.recovery_timeout_ms:
            self._sink.on_log("Recovery timeout exceeded; returning collected records")
            raise _Stop(StopReason.RECOVERY_TIMEOUT)

        state.retries += 1
        policy = self.profile.rate_limit
        if state.retries > policy.max_retries:
            self._sink.on_log(
                f"Retry budget exhausted; cooling down {ms_to_seconds(policy.base_wait_ms):.0f}s and reloading"
            )
            self._sleep(ms_to_seconds(policy.base_wait_ms))
            self.page.reload(self.profile.timeline.load_timeout_ms)
            self._sleep(ms_to_seconds(self.profile.scroll.stabilization_delay_ms))
            state.retries = 0
            state.clear_timeouts()
            return

        delay_ms = backoff_delay_ms(policy.base_wait_ms, policy.max_wait_ms, state.retries - 1)
        self._sink.on_log(f"Backing off {ms_to_seconds(delay_ms):.0f}s (retry {state.retries}/{policy.max_retries})")
        self._sleep(ms_to_seconds(delay_ms))

    def _pace(self, new_count: int) -> None:
        state = self.state
        state.paced_count += new_count
        if state.paced_count > 100:
            state.paced_count = 0
            self._sleep(self.profile.delay_every_100_s)
        elif state.paced_count > 20:
            self._sleep(self.profile.delay_each_record_s)

    def _escalate(self) -> None:
        state = self.state
        state.reach_timeout_count += 1
        state.timeout_count = 0
        self._sink.on_log(
            f"Timeout limit reached; jostling feed ({state.reach_timeout_count}/{self.budget.reach_timeout_max})"
        )
        self.page.scroll_to_top()
        self._sleep(ms_to_seconds(self.profile.scroll.stabilization_delay_ms / 2))
        self.page.scroll_forward()

    def _recover_empty_page(self) -> None:
        persistence = self.profile.persistence
        state = self.state
        if state.stagnant_cycles < 2 or state.recovery_jostles >= persistence.recovery_attempts:
            return
        state.recovery_jostles += 1
        logger.debug("Empty page; recovery scroll %s/%s", state.recovery_jostles, persistence.recovery_attempts)
        self.page.scroll_to_top()
        for _ in range(persistence.aggressive_scroll_count):
            self.page.scroll_forward()
        self._sleep(ms_to_seconds(self.profile.scroll.stabilization_delay_ms))

    def _consult_detector(self) -> None:
        signal = self._detector.check(self.page, self.collector, self.state)
        if signal is not None:
            raise _Stop(StopReason.END_OF_CONTENT, signal)

    def _submit_search(self, query: str, tab: SearchTab) -> None:
        self._sink.on_log(f"Searching: {query}")
        try:
            self.page.submit_search_query(query, tab)
            return
        except Exception as exc:
            self._sink.on_log(f"Search submission failed: {exc}")
            self.pool.blacklist(reason="search failed")
            if self.pool.rotate(self.page.inject_session_credential, reason="search failed"):
                self.state.rotations += 1
            self._sleep(ms_to_seconds(self.profile.timeline.retry_delay_ms))
            self.page.reload(self.profile.timeline.load_timeout_ms)

        try:
            self.page.submit_search_query(query, tab)
        except Exception as exc:
            raise CrawlAbortedError(f"Search could not be submitted: {exc}") from exc

    def _page_height(self) -> int:
        try:
            return int(self.page.current_page_height())
        except Exception as exc:
            logger.debug("Page height probe failed: %s", exc)
            return self.state.last_height
