"""Cookie, login-wall and resource-routing policies."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from xui_crawler.browser.policy import (
    detect_login_wall,
    install_resource_routing,
    is_paginated_response_url,
    make_resource_route_handler,
    session_cookies,
)


@dataclass
class FakeRequest:
    resource_type: str


class FakeRoute:
    def __init__(self) -> None:
        self.action: str | None = None

    def abort(self) -> None:
        self.action = "abort"

    def continue_(self) -> None:
        self.action = "continue"


class FakeRoutablePage:
    def __init__(self) -> None:
        self.routes: list[tuple[str, object]] = []

    def route(self, url: str, handler: object) -> None:
        self.routes.append((url, handler))


def test_session_cookies_cover_both_domains_and_reject_blank_values() -> None:
    cookies = session_cookies("abc")

    assert {cookie["domain"] for cookie in cookies} == {".x.com", ".twitter.com"}
    assert all(cookie["secure"] and cookie["httpOnly"] for cookie in cookies)
    with pytest.raises(ValueError):
        session_cookies("   ")


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://x.com/i/flow/login?redirect_after_login=%2Fhome", "login_wall"),
        ("https://x.com/login", "login_wall"),
        ("https://x.com/account/access", "challenge"),
        ("https://x.com/home", None),
        ("https://x.com/alice/status/1", None),
    ],
)
def test_detect_login_wall(url: str, expected: str | None) -> None:
    assert detect_login_wall(url) == expected


def test_is_paginated_response_url_matches_graphql_operations() -> None:
    assert is_paginated_response_url("https://x.com/i/api/graphql/abc/SearchTimeline?variables=1")
    assert is_paginated_response_url("https://x.com/i/api/graphql/abc/TweetDetail")
    assert not is_paginated_response_url("https://x.com/i/api/graphql/abc/HomeTimeline")


def test_route_handler_aborts_blocked_types_only() -> None:
    handler = make_resource_route_handler(["Image", " font "])
    blocked = FakeRoute()
    allowed = FakeRoute()

    handler(blocked, FakeRequest(resource_type="image"))
    handler(allowed, FakeRequest(resource_type="xhr"))

    assert blocked.action == "abort"
    assert allowed.action == "continue"


def test_install_resource_routing_respects_toggle() -> None:
    page = FakeRoutablePage()

    disabled = install_resource_routing(page, block_resources=False)
    enabled = install_resource_routing(page, block_resources=True)

    assert disabled.enabled is False
    assert enabled.enabled is True
    assert enabled.blocked_resource_types == frozenset({"image", "media", "font"})
    assert [url for url, _handler in page.routes] == ["**/*"]
