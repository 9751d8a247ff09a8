"""Stealth, cookie, resource-routing and login-wall policies for the browser."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import urlparse

SESSION_COOKIE_NAME = "auth_token"
SESSION_COOKIE_DOMAINS = (".x.com", ".twitter.com")
DEFAULT_BLOCKED_RESOURCE_TYPES = frozenset({"image", "media", "font"})
PAGINATED_RESPONSE_MARKERS = ("SearchTimeline", "TweetDetail", "SearchAdaptive", "UserTweets")

_LOGIN_URL_PATHS = frozenset({"/i/flow/login", "/login"})
_CHALLENGE_URL_MARKERS = ("/account/access", "/account/login_challenge", "/challenge")

STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
window.chrome = window.chrome || { runtime: {} };
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en', 'es'] });
const originalQuery = window.navigator.permissions && window.navigator.permissions.query;
if (originalQuery) {
  window.navigator.permissions.query = (parameters) =>
    parameters.name === 'notifications'
      ? Promise.resolve({ state: Notification.permission })
      : originalQuery(parameters);
}
"""


class RoutablePage(Protocol):
    """Anything exposing Playwright's ``page.route(pattern, handler)``."""

    def route(self, url: str, handler: Callable[[Any, Any], Any]) -> Any: ...


@dataclass(frozen=True)
class ResourceRoutingPolicy:
    enabled: bool
    blocked_resource_types: frozenset[str]

    @classmethod
    def disabled(cls) -> ResourceRoutingPolicy:
        return cls(enabled=False, blocked_resource_types=frozenset())


def session_cookies(value: str) -> list[dict[str, Any]]:
    """Cookie payloads for ``BrowserContext.add_cookies``."""
    if not value or not value.strip():
        raise ValueError("Session credential must be a non-empty string.")
    return [
        {
            "name": SESSION_COOKIE_NAME,
            "value": value.strip(),
            "domain": domain,
            "path": "/",
            "httpOnly": True,
            "secure": True,
            "sameSite": "None",
        }
        for domain in SESSION_COOKIE_DOMAINS
    ]


def is_paginated_response_url(url: str) -> bool:
    return any(marker in url for marker in PAGINATED_RESPONSE_MARKERS)


def detect_login_wall(current_url: str) -> str | None:
    """Return "challenge" or "login_wall" when the URL shows the session was rejected."""
    url_path = urlparse(str(current_url).lower()).path
    if any(marker in url_path for marker in _CHALLENGE_URL_MARKERS):
        return "challenge"
    if url_path in _LOGIN_URL_PATHS or url_path.startswith("/i/flow/login"):
        return "login_wall"
    return None


def install_resource_routing(
    page: RoutablePage,
    *,
    block_resources: bool,
    blocked_resource_types: Iterable[str] | None = None,
) -> ResourceRoutingPolicy:
    """Drop heavy assets so scrolling stays fast; API calls are never touched."""
    blocked = _resource_type_set(blocked_resource_types) if block_resources else frozenset()
    if not blocked:
        return ResourceRoutingPolicy.disabled()
    page.route("**/*", make_resource_route_handler(blocked))
    return ResourceRoutingPolicy(enabled=True, blocked_resource_types=blocked)


def make_resource_route_handler(blocked_resource_types: Iterable[str]) -> Callable[[Any, Any], Any]:
    blocked = _resource_type_set(blocked_resource_types)

    def handle(route: Any, request: Any) -> Any:
        kind = str(getattr(request, "resource_type", "")).strip().lower()
        return route.abort() if kind in blocked else route.continue_()

    return handle


def _resource_type_set(resource_types: Iterable[str] | None) -> frozenset[str]:
    if resource_types is None:
        return DEFAULT_BLOCKED_RESOURCE_TYPES
    cleaned = (str(kind).strip().lower() for kind in resource_types)
    return frozenset(kind for kind in cleaned if kind)
