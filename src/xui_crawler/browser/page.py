"""Playwright implementation of the page automation contract."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
import logging
import random
import time as time_module
from typing import Any

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from xui_crawler.browser.policy import install_resource_routing, is_paginated_response_url
from xui_crawler.browser.session import PlaywrightBrowserSession
from xui_crawler.config import RuntimeConfig
from xui_crawler.engine.page import ExtractionContext
from xui_crawler.engine.query import search_results_url
from xui_crawler.extract.dom import (
    EXTRACT_POSTS_SCRIPT,
    POST_ARTICLE_SELECTOR,
    VISIBLE_IDS_SCRIPT,
    records_from_dom,
)
from xui_crawler.models import PostRecord, SearchTab

logger = logging.getLogger(__name__)

SEARCH_INPUT_SELECTOR = '[data-testid="SearchBox_Search_Input"]'
PRIMARY_COLUMN_SELECTOR = '[data-testid="primaryColumn"]'
LATEST_TAB_SELECTOR = '[data-testid="SearchTab_Latest"]'
SHOW_HIDDEN_REPLY_SELECTORS = (
    '[data-testid="showMoreReplies"]',
    'div[role="button"]:has-text("Show probable spam")',
    'div[role="button"]:has-text("Mostrar posible spam")',
    'div[role="button"]:has-text("Show more replies")',
    'div[role="button"]:has-text("Mostrar más respuestas")',
)
_RESPONSE_POLL_MS = 100
# Unread responses beyond this are dropped oldest first.
RESPONSE_QUEUE_LIMIT = 50


class PlaywrightPageAutomation:
    """Drive one Playwright page; paginated responses are queued as they arrive."""

    def __init__(
        self,
        page: Any,
        *,
        add_cookie: Callable[[str], None],
        human_scroll: bool = False,
        action_timeout_ms: int = 10_000,
        rng: random.Random | None = None,
    ) -> None:
        self._page = page
        self._add_cookie = add_cookie
        self._human_scroll = human_scroll
        self._action_timeout_ms = action_timeout_ms
        self._rng = rng or random.Random()
        self._responses: deque[Any] = deque(maxlen=RESPONSE_QUEUE_LIMIT)
        page.on("response", self._on_response)

    @property
    def current_url(self) -> str:
        return str(self._page.url)

    def navigate(self, url: str, timeout_ms: int) -> None:
        self._responses.clear()
        self._page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)

    def inject_session_credential(self, value: str) -> None:
        self._add_cookie(value)

    def wait_for_next_paginated_response(self, timeout_ms: int) -> str | None:
        deadline = time_module.monotonic() + timeout_ms / 1000.0
        while not self._responses:
            remaining_ms = (deadline - time_module.monotonic()) * 1000.0
            if remaining_ms <= 0:
                return None
            self._page.wait_for_timeout(min(remaining_ms, _RESPONSE_POLL_MS))

        response = self._responses.popleft()
        try:
            return str(response.text())
        except Exception as exc:
            logger.debug("Paginated response body unavailable (%s): %s", response.url, exc)
            return None

    def scroll_forward(self) -> None:
        if not self._human_scroll:
            self._page.evaluate("window.scrollBy(0, document.body.scrollHeight);")
            return
        distance = self._rng.randint(600, 1000)
        steps = self._rng.randint(4, 6)
        for _ in range(steps):
            self._page.mouse.wheel(0, distance // steps)
            self._page.wait_for_timeout(self._rng.randint(50, 150))

    def scroll_to_top(self) -> None:
        self._page.evaluate("window.scrollTo(0, 0);")

    def nudge(self, pixels: int) -> None:
        self._page.evaluate(f"window.scrollBy(0, {int(pixels)});")

    def extract_visible_records(self, context: ExtractionContext) -> list[PostRecord]:
        return records_from_dom(self._page.evaluate(EXTRACT_POSTS_SCRIPT) or [], context)

    def visible_record_ids(self) -> list[str]:
        return [str(value) for value in self._page.evaluate(VISIBLE_IDS_SCRIPT) or []]

    def wait_for_content_rendered(self, timeout_ms: int) -> bool:
        try:
            self._page.wait_for_selector(POST_ARTICLE_SELECTOR, timeout=timeout_ms)
        except PlaywrightTimeoutError:
            return False
        return True

    def current_page_height(self) -> int:
        return int(self._page.evaluate("document.body.scrollHeight") or 0)

    def text_present(self, phrase: str) -> bool:
        return self._page.get_by_text(phrase, exact=False).count() > 0

    def submit_search_query(self, query: str, tab: SearchTab) -> None:
        self._responses.clear()
        box = self._page.wait_for_selector(SEARCH_INPUT_SELECTOR, timeout=self._action_timeout_ms)
        box.click()
        self._page.keyboard.type(query, delay=self._rng.randint(40, 120))
        self._page.keyboard.press("Enter")
        self._page.wait_for_selector(PRIMARY_COLUMN_SELECTOR, timeout=self._action_timeout_ms)
        if tab is not SearchTab.LATEST:
            return

        latest_tab = self._page.query_selector(LATEST_TAB_SELECTOR)
        if latest_tab is not None:
            latest_tab.click()
            return
        if "f=live" not in self.current_url:
            self.navigate(search_results_url(query, latest=True), self._action_timeout_ms)

    def expand_hidden_replies(self, max_clicks: int = 3) -> int:
        # Reply harvesting reads the DOM, never the response queue.
        self._responses.clear()
        clicks = 0
        for selector in SHOW_HIDDEN_REPLY_SELECTORS:
            for element in self._page.query_selector_all(selector):
                if clicks >= max_clicks:
                    return clicks
                if _is_visible(element) and _safe_click(element):
                    clicks += 1
        return clicks

    def reload(self, timeout_ms: int) -> None:
        self._responses.clear()
        self._page.reload(wait_until="domcontentloaded", timeout=timeout_ms)

    def close(self) -> None:
        self._page.close()

    def _on_response(self, response: Any) -> None:
        if is_paginated_response_url(str(response.url)):
            self._responses.append(response)


@contextmanager
def open_playwright_page(
    config: RuntimeConfig,
    *,
    human_scroll: bool = False,
    headless: bool | None = None,
    playwright_factory: Callable[[], AbstractContextManager[Any]] | None = None,
) -> Iterator[PlaywrightPageAutomation]:
    """Open a browser session and yield one page; the browser always closes on exit."""
    with PlaywrightBrowserSession(
        config, headless=headless, playwright_factory=playwright_factory
    ) as session:
        raw_page = session.new_page()
        install_resource_routing(raw_page, block_resources=config.browser.block_resources)
        yield PlaywrightPageAutomation(
            raw_page,
            add_cookie=session.add_session_cookie,
            human_scroll=human_scroll,
            action_timeout_ms=config.browser.action_timeout_ms,
        )


def _is_visible(element: Any) -> bool:
    try:
        return bool(element.is_visible())
    except Exception:
        return False


def _safe_click(element: Any) -> bool:
    try:
        element.click(timeout=1_000)
    except Exception:
        return False
    return True
