"""Page automation contract consumed by the crawl engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from ..models import PostRecord, SearchTab


@dataclass(frozen=True)
class ExtractionContext:
    """Where rendered records are read from.

    ``focal_id`` names the thread's own post; it is skipped unless
    ``include_focal`` is set.
    """

    page_url: str
    focal_id: str | None = None
    include_focal: bool = False


class PageAutomation(Protocol):
    @property
    def current_url(self) -> str:
        """URL the page currently shows."""

    def navigate(self, url: str, timeout_ms: int) -> None:
        """Load ``url`` and wait for the document."""

    def inject_session_credential(self, value: str) -> None:
        """Install the session cookie for the platform domains."""

    def wait_for_next_paginated_response(self, timeout_ms: int) -> str | None:
        """Body of the next paginated timeline response, or None on timeout."""

    def scroll_forward(self) -> None:
        """Scroll to trigger the next page of results."""

    def scroll_to_top(self) -> None:
        """Scroll back to the top of the page."""

    def nudge(self, pixels: int) -> None:
        """Scroll by a small offset to wake lazy rendering."""

    def extract_visible_records(self, context: ExtractionContext) -> list[PostRecord]:
        """Records currently rendered in the page."""

    def visible_record_ids(self) -> list[str]:
        """Ids of records currently rendered in the page."""

    def wait_for_content_rendered(self, timeout_ms: int) -> bool:
        """True once at least one post is rendered."""

    def current_page_height(self) -> int:
        """Scrollable document height in pixels."""

    def text_present(self, phrase: str) -> bool:
        """True when ``phrase`` appears in the rendered page."""

    def submit_search_query(self, query: str, tab: SearchTab) -> None:
        """Type ``query`` into the search box, submit and open ``tab``."""

    def expand_hidden_replies(self) -> int:
        """Click "show more"/"probable spam" expanders; return clicks made."""

    def reload(self, timeout_ms: int) -> None:
        """Reload the current page."""

    def close(self) -> None:
        """Release page resources."""
