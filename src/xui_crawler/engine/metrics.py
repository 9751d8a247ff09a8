"""Fetch a single record's current counters."""

from __future__ import annotations

from collections.abc import Callable
import logging

from ..errors import ExtractError
from ..extract.timeline import find_record, record_id_from_url
from ..models import PostRecord
from ..profiles import CrawlProfile
from ..progress import ProgressSink, resolve_sink
from .classifier import classify_text
from .page import ExtractionContext, PageAutomation
from .replies import wait_until_rendered

logger = logging.getLogger(__name__)


def probe_record_metrics(
    page: PageAutomation,
    record_url: str,
    profile: CrawlProfile,
    *,
    sink: ProgressSink | None = None,
    sleep_fn: Callable[[float], None] | None = None,
) -> PostRecord | None:
    """Race the intercepted detail response against a timeout, then fall back to the DOM.

    Returns None when the record cannot be found either way.
    """
    resolved_sink = resolve_sink(sink)
    record_id = record_id_from_url(record_url)

    page.navigate(record_url, profile.replies.navigation_timeout_ms)
    body = page.wait_for_next_paginated_response(profile.metrics_race_timeout_ms)
    if body is not None:
        classification = classify_text(body)
        if classification.is_error:
            resolved_sink.on_log(f"Metrics response for {record_id} flagged as {classification.kind.value}")
        else:
            try:
                record = find_record(body, record_id)
            except ExtractError as exc:
                logger.debug("Metrics response for %s unreadable: %s", record_id, exc)
                record = None
            if record is not None:
                return record

    resolved_sink.on_log(f"Reading metrics for {record_id} from the rendered page")
    if not wait_until_rendered(page, profile.replies, sleep_fn=sleep_fn):
        return None
    context = ExtractionContext(page_url=record_url, focal_id=record_id, include_focal=True)
    for record in page.extract_visible_records(context):
        if record.record_id == record_id:
            return record
    return None
