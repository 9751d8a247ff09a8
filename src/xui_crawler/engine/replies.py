"""Reply harvesting for one thread and for ordered batches of threads."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import fields
from datetime import timezone, tzinfo
import logging
import random
import time as time_module

from ..errors import ContentRenderTimeoutError
from ..extract.dates import to_timezone
from ..extract.hashing import reply_content_hash
from ..extract.timeline import record_id_from_url
from ..models import BatchReport, PostRecord, ReplyRecord, ThreadRef, ThreadRepliesResult
from ..profiles import ReplyPolicy
from ..progress import ProgressSink, resolve_sink
from .dedup import DedupCollector
from .page import ExtractionContext, PageAutomation
from .timing import human_pause_ms, ms_to_seconds

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], None]
HarvestFn = Callable[[ThreadRef], tuple[ReplyRecord, ...]]

_RENDER_NUDGE_PX = 300
_EXTRA_SCROLL_RANGE_PX = (200, 450)
_POST_RECORD_FIELDS = tuple(field.name for field in fields(PostRecord))


def wait_until_rendered(
    page: PageAutomation,
    policy: ReplyPolicy,
    *,
    sleep_fn: SleepFn | None = None,
) -> bool:
    """Bounded render detection with a short scroll nudge between attempts."""
    sleep = sleep_fn or time_module.sleep
    for attempt in range(1, policy.render_attempts + 1):
        try:
            if page.wait_for_content_rendered(policy.render_timeout_ms):
                return True
        except Exception as exc:
            logger.debug("Render probe %s/%s failed: %s", attempt, policy.render_attempts, exc)
        if attempt < policy.render_attempts:
            sleep(ms_to_seconds(policy.settle_delay_ms))
            page.nudge(_RENDER_NUDGE_PX)
            sleep(1.0)
    return False


def to_reply_record(record: PostRecord, thread: ThreadRef, zone: tzinfo = timezone.utc) -> ReplyRecord:
    values = {name: getattr(record, name) for name in _POST_RECORD_FIELDS}
    values["created_at"] = to_timezone(record.created_at, zone)
    return ReplyRecord(
        **values,
        parent_id=thread.parent_id,
        parent_url=thread.url,
        content_hash=reply_content_hash(record),
    )


def focal_post_id(thread: ThreadRef) -> str:
    """The thread's own post, read from its URL; the caller's id may be an unrelated reference."""
    try:
        return record_id_from_url(thread.url)
    except ValueError:
        return thread.record_id


class ReplyHarvester:
    """Collect the replies rendered under a single thread.

    Pagination stops after ``max_idle_scrolls`` cycles without a new reply or
    once ``max_replies`` is reached (-1 means no cap).
    """

    def __init__(
        self,
        page: PageAutomation,
        policy: ReplyPolicy,
        *,
        zone: tzinfo = timezone.utc,
        sink: ProgressSink | None = None,
        sleep_fn: SleepFn | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.page = page
        self.policy = policy
        self._zone = zone
        self._sink = resolve_sink(sink)
        self._sleep = sleep_fn or time_module.sleep
        self._rng = rng

    def harvest(self, thread: ThreadRef, *, max_replies: int = -1) -> tuple[ReplyRecord, ...]:
        if max_replies != -1 and max_replies <= 0:
            raise ValueError("max_replies must be -1 (no cap) or > 0.")

        self._sink.on_log(f"Loading thread {thread.url}")
        self.page.navigate(thread.url, self.policy.navigation_timeout_ms)
        self._sleep(ms_to_seconds(self.policy.settle_delay_ms))
        if not wait_until_rendered(self.page, self.policy, sleep_fn=self._sleep):
            raise ContentRenderTimeoutError(
                f"Thread {thread.url} rendered no posts after {self.policy.render_attempts} attempts."
            )

        collector: DedupCollector[PostRecord] = DedupCollector()
        context = ExtractionContext(page_url=thread.url, focal_id=focal_post_id(thread))
        idle_scrolls = 0
        while not self._finished(collector, idle_scrolls, max_replies):
            self.page.expand_hidden_replies()
            new_count = collector.merge(self.page.extract_visible_records(context))
            if new_count:
                idle_scrolls = 0
                self._sink.on_log(f"Thread {thread.record_id}: {collector.size} replies (+{new_count})")
                self._sink.on_progress(collector.size)
            else:
                idle_scrolls += 1
            if self._finished(collector, idle_scrolls, max_replies):
                break
            self._scroll()

        limit = None if max_replies == -1 else max_replies
        return tuple(to_reply_record(record, thread, self._zone) for record in collector.materialize(limit))

    def _finished(self, collector: DedupCollector[PostRecord], idle_scrolls: int, max_replies: int) -> bool:
        if max_replies != -1 and collector.size >= max_replies:
            return True
        return idle_scrolls >= self.policy.max_idle_scrolls

    def _scroll(self) -> None:
        self.page.scroll_forward()
        self._sleep(ms_to_seconds(self.policy.scroll_delay_ms))
        self.page.nudge(human_pause_ms(*_EXTRA_SCROLL_RANGE_PX, rng=self._rng))


def run_multi_thread_replies(
    threads: Iterable[ThreadRef],
    harvest: HarvestFn,
    *,
    sink: ProgressSink | None = None,
) -> BatchReport:
    """Harvest each thread independently; one failure never stops the batch."""
    resolved_sink = resolve_sink(sink)
    results: list[ThreadRepliesResult] = []

    for thread in threads:
        try:
            replies = harvest(thread)
            results.append(
                ThreadRepliesResult(thread_id=thread.record_id, url=thread.url, ok=True, replies=replies)
            )
        except Exception as exc:
            logger.warning("Reply harvest failed for %s: %s", thread.url, exc)
            resolved_sink.on_log(f"Thread {thread.record_id} failed: {exc}")
            results.append(
                ThreadRepliesResult(thread_id=thread.record_id, url=thread.url, ok=False, error=str(exc))
            )

    report = BatchReport(results=tuple(results))
    resolved_sink.on_log(f"Reply batch finished: {report.succeeded} succeeded, {report.failed} failed")
    return report
