"""Playwright browser adapters."""

from .page import PlaywrightPageAutomation, open_playwright_page
from .policy import (
    DEFAULT_BLOCKED_RESOURCE_TYPES,
    STEALTH_INIT_SCRIPT,
    ResourceRoutingPolicy,
    detect_login_wall,
    install_resource_routing,
    is_paginated_response_url,
    make_resource_route_handler,
    session_cookies,
)
from .session import BrowserSessionOptions, PlaywrightBrowserSession

__all__ = [
    "DEFAULT_BLOCKED_RESOURCE_TYPES",
    "STEALTH_INIT_SCRIPT",
    "BrowserSessionOptions",
    "PlaywrightBrowserSession",
    "PlaywrightPageAutomation",
    "ResourceRoutingPolicy",
    "detect_login_wall",
    "install_resource_routing",
    "is_paginated_response_url",
    "make_resource_route_handler",
    "open_playwright_page",
    "session_cookies",
]
