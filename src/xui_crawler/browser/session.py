"""Stealth browser session: one Playwright browser and context per crawl."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any

from playwright.sync_api import sync_playwright

from xui_crawler.browser.policy import STEALTH_INIT_SCRIPT, session_cookies
from xui_crawler.config import RuntimeConfig
from xui_crawler.errors import BrowserError

CHROMIUM_STEALTH_ARGS = (
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-dev-shm-usage",
)

PlaywrightFactory = Callable[[], AbstractContextManager[Any]]


@dataclass(frozen=True)
class BrowserSessionOptions:
    engine: str
    headless: bool
    navigation_timeout_ms: int
    action_timeout_ms: int
    locale: str
    viewport_width: int
    viewport_height: int
    user_agent: str

    @classmethod
    def from_config(cls, config: RuntimeConfig, headless: bool | None = None) -> BrowserSessionOptions:
        browser = config.browser
        return cls(
            engine=browser.engine,
            headless=browser.headless if headless is None else headless,
            navigation_timeout_ms=browser.navigation_timeout_ms,
            action_timeout_ms=browser.action_timeout_ms,
            locale=browser.locale,
            viewport_width=browser.viewport_width,
            viewport_height=browser.viewport_height,
            user_agent=browser.user_agent,
        )

    def launch_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"headless": self.headless}
        if self.engine == "chromium":
            kwargs["args"] = list(CHROMIUM_STEALTH_ARGS)
        return kwargs

    def context_kwargs(self) -> dict[str, Any]:
        return {
            "locale": self.locale,
            "user_agent": self.user_agent,
            "viewport": {"width": self.viewport_width, "height": self.viewport_height},
        }


class PlaywrightBrowserSession:
    """Launch a browser that hides automation markers and carries the session cookie.

    Teardown always runs context, browser, then the Playwright driver, and
    collects every close failure before reporting them together.
    """

    def __init__(
        self,
        config: RuntimeConfig,
        *,
        headless: bool | None = None,
        playwright_factory: PlaywrightFactory | None = None,
    ) -> None:
        self.options = BrowserSessionOptions.from_config(config, headless)
        self._playwright_factory = playwright_factory or sync_playwright
        self._driver: AbstractContextManager[Any] | None = None
        self._browser: Any | None = None
        self._context: Any | None = None

    @property
    def is_open(self) -> bool:
        return self._context is not None

    def open(self) -> None:
        if self.is_open:
            return
        try:
            self._driver = self._playwright_factory()
            self._browser = self._launch(self._driver.__enter__())
            context = self._browser.new_context(**self.options.context_kwargs())
            context.add_init_script(STEALTH_INIT_SCRIPT)
            context.set_default_timeout(self.options.action_timeout_ms)
            self._context = context
        except BrowserError:
            self._teardown(raise_on_error=False)
            raise
        except Exception as exc:
            self._teardown(raise_on_error=False)
            raise BrowserError(f"Could not start {self.options.engine} session: {exc}") from exc

    def new_page(self) -> Any:
        self.open()
        try:
            page = self._require_context().new_page()
        except Exception as exc:
            raise BrowserError(f"Could not open a browser tab: {exc}") from exc
        navigation_timeout = getattr(page, "set_default_navigation_timeout", None)
        if callable(navigation_timeout):
            navigation_timeout(self.options.navigation_timeout_ms)
        return page

    def add_session_cookie(self, value: str) -> None:
        """Install the ``auth_token`` cookie for every platform domain."""
        context = self._require_context()
        try:
            context.add_cookies(session_cookies(value))
        except Exception as exc:
            raise BrowserError(f"Could not set the session cookie: {exc}") from exc

    def close(self) -> None:
        self._teardown(raise_on_error=True)

    def __enter__(self) -> PlaywrightBrowserSession:
        self.open()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> bool:
        try:
            self.close()
        except BrowserError:
            # A crawl failure outranks a teardown failure.
            if exc_type is None:
                raise
        return False

    def _launch(self, playwright: Any) -> Any:
        launcher = getattr(playwright, self.options.engine, None)
        if launcher is None:
            raise BrowserError(f"Unsupported browser engine '{self.options.engine}' for Playwright session.")
        return launcher.launch(**self.options.launch_kwargs())

    def _require_context(self) -> Any:
        if self._context is None:
            raise BrowserError("Browser session is not open.")
        return self._context

    def _teardown(self, *, raise_on_error: bool) -> None:
        context, browser, driver = self._context, self._browser, self._driver
        self._context = self._browser = self._driver = None

        steps: list[tuple[str, Callable[[], object]]] = []
        if context is not None:
            steps.append(("context", context.close))
        if browser is not None:
            steps.append(("browser", browser.close))
        if driver is not None:
            steps.append(("playwright", lambda: driver.__exit__(None, None, None)))

        failures: list[str] = []
        for label, step in steps:
            try:
                step()
            except Exception as exc:
                failures.append(f"{label}: {exc}")

        if raise_on_error and failures:
            raise BrowserError("Browser session teardown failed (" + "; ".join(failures) + ")")
