"""Public entry points: search/thread crawl, replies, reply batches, metrics."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from contextlib import AbstractContextManager
import time as time_module
from typing import Any

from .browser.page import open_playwright_page
from .browser.policy import detect_login_wall
from .config import RuntimeConfig, default_config
from .diagnostics.events import JsonlEventLogger, new_run_id
from .engine.credentials import CredentialPool
from .engine.loop import CancelToken, CrawlLoop, LoopResult
from .engine.metrics import probe_record_metrics, record_id_from_url
from .engine.page import PageAutomation
from .engine.query import LATEST_SEARCH_HOME_URL, SEARCH_HOME_URL, build_search_query
from .engine.replies import ReplyHarvester, run_multi_thread_replies
from .errors import ConfigError, InvalidCredentialError, XUICrawlerError
from .extract.dates import parse_query_date, resolve_timezone, start_of_day_utc
from .models import (
    BatchReport,
    CrawlMode,
    CrawlRequest,
    PostRecord,
    ReplyRecord,
    SearchTab,
    ThreadRef,
)
from .profiles import CrawlProfile, get_profile, with_pacing
from .progress import ProgressSink, resolve_sink

HOME_URL = "https://x.com/home"

PageFactory = Callable[[bool], AbstractContextManager[PageAutomation]]
ClockFn = Callable[[], float]
SleepFn = Callable[[float], None]


class XCrawler:
    """Authenticated crawler owning one credential pool per invocation.

    Every entry point opens its own browser session and closes it before
    returning or raising.
    """

    def __init__(
        self,
        credential: str,
        *,
        extra_credentials: Iterable[str] = (),
        profile: str | CrawlProfile | None = None,
        config: RuntimeConfig | None = None,
        page_factory: PageFactory | None = None,
        event_logger: JsonlEventLogger | None = None,
        clock: ClockFn | None = None,
        sleep_fn: SleepFn | None = None,
    ) -> None:
        if not credential or not credential.strip():
            raise InvalidCredentialError(
                "A session credential is required. Pass --token or set XUI_CRAWLER_TOKEN."
            )
        self.config = config or default_config()
        self._credential = credential.strip()
        self._extra_credentials = tuple(extra_credentials)
        self._profile = self._resolve_profile(profile)
        self._zone = resolve_timezone(self.config.app.timezone)
        self._page_factory = page_factory or self._default_page_factory
        if event_logger is None and self.config.app.event_log:
            event_logger = JsonlEventLogger(self.config.app.event_log)
        self._event_logger = event_logger
        self._clock = clock or time_module.monotonic
        self._sleep = sleep_fn or time_module.sleep

    @property
    def profile(self) -> CrawlProfile:
        return self._profile

    def use_profile(self, profile: str | CrawlProfile) -> CrawlProfile:
        self._profile = self._resolve_profile(profile)
        return self._profile

    def crawl(
        self,
        request: CrawlRequest,
        *,
        sink: ProgressSink | None = None,
        cancel_token: CancelToken | None = None,
    ) -> tuple[PostRecord, ...]:
        """Search or walk a thread's conversation until a termination condition holds."""
        _validate_request(request)
        profile = with_pacing(
            self._resolve_profile(request.profile) if request.profile else self._profile,
            delay_each_record_s=request.delay_each_record_s,
            delay_every_100_s=request.delay_every_100_s,
        )
        resolved_sink = resolve_sink(sink)
        lower_bound = start_of_day_utc(parse_query_date(request.from_date)) if request.from_date else None

        if request.mode is CrawlMode.THREAD:
            assert request.thread_url is not None
            start_url = request.thread_url
            query = None
        else:
            start_url = LATEST_SEARCH_HOME_URL if request.search_tab is SearchTab.LATEST else SEARCH_HOME_URL
            query = build_search_query(
                request.keywords,
                request.usernames,
                from_date=request.from_date,
                to_date=request.to_date,
            )

        run_id = new_run_id("crawl")
        try:
            with self._page_factory(False) as page:
                pool = self._new_pool(profile, resolved_sink)
                self._authenticate(page, pool, start_url, profile.timeline.load_timeout_ms)
                loop = CrawlLoop(
                    page,
                    pool,
                    profile,
                    target_count=request.target_count,
                    strip_reply_mention=request.mode is CrawlMode.THREAD,
                    lower_bound=lower_bound,
                    sink=resolved_sink,
                    clock=self._clock,
                    sleep_fn=self._sleep,
                    cancel_token=cancel_token,
                )
                result: LoopResult = loop.run(search_query=query, tab=request.search_tab)
        except XUICrawlerError as exc:
            self._emit("crawl_run", run_id, {"ok": False, "mode": request.mode.value, "error": str(exc)})
            raise

        self._emit(
            "crawl_run",
            run_id,
            {
                "ok": True,
                "mode": request.mode.value,
                "profile": profile.name,
                "query": query,
                "records": len(result.records),
                "stop_reason": result.stop_reason.value,
                "end_signal": result.end_signal.value if result.end_signal else None,
                "rotations": result.rotations,
            },
        )
        return result.records

    def crawl_replies(
        self,
        thread_url: str,
        *,
        external_id: str | None = None,
        max_replies: int = -1,
        sink: ProgressSink | None = None,
    ) -> tuple[ReplyRecord, ...]:
        """Harvest one thread's replies; a thread that never renders raises."""
        thread = ThreadRef(record_id=record_id_from_url(thread_url), url=thread_url, external_id=external_id)
        resolved_sink = resolve_sink(sink)
        run_id = new_run_id("replies")
        try:
            with self._page_factory(True) as page:
                pool = self._new_pool(self._profile, resolved_sink)
                self._authenticate(page, pool, HOME_URL, self._profile.timeline.load_timeout_ms)
                replies = self._harvester(page, resolved_sink).harvest(thread, max_replies=max_replies)
        except XUICrawlerError as exc:
            self._emit("replies_run", run_id, {"ok": False, "url": thread_url, "error": str(exc)})
            raise
        self._emit("replies_run", run_id, {"ok": True, "url": thread_url, "replies": len(replies)})
        return replies

    def crawl_many_replies(
        self,
        threads: Iterable[ThreadRef],
        *,
        max_replies: int = -1,
        sink: ProgressSink | None = None,
    ) -> BatchReport:
        """Harvest replies for each thread in order, isolating per-thread failures."""
        targets = tuple(threads)
        resolved_sink = resolve_sink(sink)
        run_id = new_run_id("batch")
        try:
            with self._page_factory(True) as page:
                pool = self._new_pool(self._profile, resolved_sink)
                self._authenticate(page, pool, HOME_URL, self._profile.timeline.load_timeout_ms)
                harvester = self._harvester(page, resolved_sink)
                report = run_multi_thread_replies(
                    targets,
                    lambda thread: harvester.harvest(thread, max_replies=max_replies),
                    sink=resolved_sink,
                )
        except XUICrawlerError as exc:
            self._emit("replies_batch", run_id, {"ok": False, "threads": len(targets), "error": str(exc)})
            raise
        self._emit(
            "replies_batch",
            run_id,
            {
                "ok": True,
                "threads": len(targets),
                "succeeded": report.succeeded,
                "failed": report.failed,
                "errors": {result.thread_id: result.error for result in report.results if not result.ok},
            },
        )
        return report

    def fetch_record_metrics(
        self,
        record_url: str,
        *,
        sink: ProgressSink | None = None,
    ) -> PostRecord | None:
        resolved_sink = resolve_sink(sink)
        run_id = new_run_id("metrics")
        try:
            with self._page_factory(False) as page:
                pool = self._new_pool(self._profile, resolved_sink)
                self._authenticate(page, pool, HOME_URL, self._profile.timeline.load_timeout_ms)
                record = probe_record_metrics(
                    page, record_url, self._profile, sink=resolved_sink, sleep_fn=self._sleep
                )
        except XUICrawlerError as exc:
            self._emit("metrics_probe", run_id, {"ok": False, "url": record_url, "error": str(exc)})
            raise
        self._emit("metrics_probe", run_id, {"ok": True, "url": record_url, "found": record is not None})
        return record

    def _authenticate(self, page: PageAutomation, pool: CredentialPool, start_url: str, timeout_ms: int) -> None:
        page.inject_session_credential(pool.current)
        page.navigate(start_url, timeout_ms)
        blocked = detect_login_wall(page.current_url)
        if blocked is not None:
            raise InvalidCredentialError(
                f"Session credential rejected ({blocked}): the platform redirected to "
                f"{page.current_url}. Refresh the auth_token cookie and retry."
            )

    def _new_pool(self, profile: CrawlProfile, sink: ProgressSink) -> CredentialPool:
        return CredentialPool(
            self._credential,
            self._extra_credentials,
            cooldown_ms=profile.credentials.cooldown_ms,
            safety_margin_ms=profile.credentials.safety_margin_ms,
            rotation_delay_ms=profile.scroll.rotation_delay_ms,
            clock=self._clock,
            sleep_fn=self._sleep,
            sink=sink,
        )

    def _harvester(self, page: PageAutomation, sink: ProgressSink) -> ReplyHarvester:
        return ReplyHarvester(page, self._profile.replies, zone=self._zone, sink=sink, sleep_fn=self._sleep)

    def _resolve_profile(self, profile: str | CrawlProfile | None) -> CrawlProfile:
        if isinstance(profile, CrawlProfile):
            return profile
        return get_profile(profile or self.config.crawl.profile)

    def _default_page_factory(self, human_scroll: bool) -> AbstractContextManager[PageAutomation]:
        return open_playwright_page(self.config, human_scroll=human_scroll)

    def _emit(self, event_type: str, run_id: str, payload: dict[str, Any]) -> None:
        if self._event_logger is not None:
            self._event_logger.append(event_type, run_id=run_id, payload=payload)


def _validate_request(request: CrawlRequest) -> None:
    if request.target_count != -1 and request.target_count <= 0:
        raise ConfigError("target_count must be -1 (unlimited) or a positive integer.")
    if request.mode is CrawlMode.SEARCH and not (request.keywords.strip() or request.usernames):
        raise ConfigError("A search crawl needs keywords or at least one username.")
    if request.from_date:
        parse_query_date(request.from_date)
    if request.to_date:
        parse_query_date(request.to_date)
