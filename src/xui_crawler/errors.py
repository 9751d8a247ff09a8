"""Error taxonomy for stable module boundaries."""

from __future__ import annotations

from typing import Any


class XUICrawlerError(Exception):
    """Base exception for xui-crawler."""


class ConfigError(XUICrawlerError):
    """Raised when configuration or a run profile is invalid or missing."""


class BrowserError(XUICrawlerError):
    """Raised for browser/session management failures."""


class InvalidCredentialError(XUICrawlerError):
    """Raised when no usable session credential is available at startup."""


class ContentRenderTimeoutError(XUICrawlerError):
    """Raised when a target page never renders any post content."""


class ExtractError(XUICrawlerError):
    """Raised when a paginated response cannot be parsed into records."""


class DiagnosticsError(XUICrawlerError):
    """Raised for run-event logging failures."""


class CrawlAbortedError(XUICrawlerError):
    """Raised when an unclassified failure stops a crawl loop.

    Records collected before the failure are kept on ``records`` so callers
    can still use them.
    """

    def __init__(self, message: str, *, records: tuple[Any, ...] = ()) -> None:
        super().__init__(message)
        self.records = records
