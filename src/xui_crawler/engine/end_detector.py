"""Decide whether pagination has genuinely ended."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from enum import Enum
import logging

from ..models import PostRecord
from ..profiles import EndDetectionPolicy
from .classifier import END_OF_CONTENT_PHRASES
from .dedup import DedupCollector
from .page import PageAutomation
from .state import SessionState

logger = logging.getLogger(__name__)


class EndSignal(str, Enum):
    END_PHRASE = "end_phrase"
    FULL_OVERLAP = "full_overlap"
    DATE_BOUNDARY = "date_boundary"
    STAGNATION = "stagnation"
    STALLED_HEIGHT = "stalled_height"


class EndOfPaginationDetector:
    """Evaluate end-of-content signals in priority order; first positive wins.

    Probe failures count as "signal absent", so ``check`` never raises.
    """

    def __init__(
        self,
        policy: EndDetectionPolicy,
        *,
        max_empty_responses: int,
        lower_bound: datetime | None = None,
        phrases: Sequence[str] = END_OF_CONTENT_PHRASES,
    ) -> None:
        self._policy = policy
        self._max_empty = max_empty_responses
        self._lower_bound = lower_bound
        self._phrases = tuple(phrases)

    def check(
        self,
        page: PageAutomation,
        collector: DedupCollector[PostRecord],
        state: SessionState,
    ) -> EndSignal | None:
        if self._has_end_phrase(page):
            return EndSignal.END_PHRASE
        if self._fully_overlapped(page, collector):
            return EndSignal.FULL_OVERLAP
        if self._crossed_lower_bound(collector):
            return EndSignal.DATE_BOUNDARY
        if state.stagnant_cycles >= self._max_empty:
            return EndSignal.STAGNATION
        if self._height_stalled(page, state):
            return EndSignal.STALLED_HEIGHT
        return None

    def is_end(
        self,
        page: PageAutomation,
        collector: DedupCollector[PostRecord],
        state: SessionState,
    ) -> bool:
        return self.check(page, collector, state) is not None

    def _has_end_phrase(self, page: PageAutomation) -> bool:
        for phrase in self._phrases:
            try:
                if page.text_present(phrase):
                    return True
            except Exception as exc:
                logger.debug("End phrase probe failed for %r: %s", phrase, exc)
                return False
        return False

    def _fully_overlapped(self, page: PageAutomation, collector: DedupCollector[PostRecord]) -> bool:
        # Heuristic: once everything visible was among the most recent ids, the feed stopped moving.
        if collector.size < self._policy.min_for_overlap:
            return False
        try:
            visible = page.visible_record_ids()
        except Exception as exc:
            logger.debug("Visible id probe failed: %s", exc)
            return False
        if not visible:
            return False
        recent = set(collector.last_ids(self._policy.overlap_window))
        return all(record_id in recent for record_id in visible)

    def _crossed_lower_bound(self, collector: DedupCollector[PostRecord]) -> bool:
        if self._lower_bound is None or collector.size < self._policy.min_for_date_boundary:
            return False
        last = collector.last_record()
        if last is None or last.created_at is None:
            return False
        try:
            return last.created_at < self._lower_bound
        except TypeError:
            return False

    def _height_stalled(self, page: PageAutomation, state: SessionState) -> bool:
        if state.stagnant_cycles < 3 or state.consecutive_timeouts < 2:
            return False
        try:
            height = page.current_page_height()
        except Exception as exc:
            logger.debug("Page height probe failed: %s", exc)
            return False
        return height == state.last_height and state.same_height_count >= self._policy.max_same_height
