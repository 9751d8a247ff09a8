"""Public entry points wired to a scripted page factory."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from fakes import FakePage, FakePageFactory, detail_body, post, search_body

from xui_crawler.crawler import HOME_URL, XCrawler
from xui_crawler.diagnostics.events import JsonlEventLogger
from xui_crawler.engine.query import LATEST_SEARCH_HOME_URL, SEARCH_HOME_URL
from xui_crawler.errors import ConfigError, ContentRenderTimeoutError, InvalidCredentialError
from xui_crawler.models import CrawlRequest, SearchTab, ThreadRef
from xui_crawler.testing import ManualClock


def _crawler(page: FakePage, tmp_path: Path, **kwargs: Any) -> tuple[XCrawler, FakePageFactory, Path]:
    clock = ManualClock()
    factory = FakePageFactory(page)
    log_path = tmp_path / "events.jsonl"
    crawler = XCrawler(
        "tok-a",
        page_factory=factory,
        event_logger=JsonlEventLogger(log_path),
        clock=clock.clock,
        sleep_fn=clock.sleep,
        **kwargs,
    )
    return crawler, factory, log_path


def _events(path: Path) -> list[dict[str, Any]]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_search_crawl_authenticates_searches_and_closes_page(tmp_path: Path) -> None:
    page = FakePage(lambda index: search_body([str(100 + index * 10 + offset) for offset in range(3)]))
    crawler, factory, log_path = _crawler(page, tmp_path)

    records = crawler.crawl(CrawlRequest(keywords="python", usernames=("alice",), target_count=4))

    assert [record.record_id for record in records] == ["100", "101", "102", "110"]
    assert page.injected == ["tok-a"]
    assert page.navigations == [LATEST_SEARCH_HOME_URL]
    assert page.searches == [("(python) (from:alice) -filter:replies", SearchTab.LATEST)]
    assert factory.opened == [False]
    assert page.closed is True
    (event,) = _events(log_path)
    assert event["event_type"] == "crawl_run"
    assert event["payload"]["ok"] is True
    assert event["payload"]["stop_reason"] == "target_reached"
    assert "tok-a" not in log_path.read_text(encoding="utf-8")


def test_top_tab_starts_from_plain_search_page(tmp_path: Path) -> None:
    page = FakePage(lambda index: search_body([str(index)]))
    crawler, _factory, _log = _crawler(page, tmp_path)

    crawler.crawl(CrawlRequest(keywords="python", target_count=1, search_tab=SearchTab.TOP))

    assert page.navigations == [SEARCH_HOME_URL]


def test_thread_crawl_walks_conversation_without_search(tmp_path: Path) -> None:
    url = "https://x.com/alice/status/1"
    page = FakePage([detail_body(["1", "2", "3"])])
    crawler, _factory, _log = _crawler(page, tmp_path)

    records = crawler.crawl(CrawlRequest(thread_url=url, target_count=3))

    assert [record.record_id for record in records] == ["1", "2", "3"]
    assert page.navigations == [url]
    assert page.searches == []


def test_login_wall_raises_invalid_credential_and_still_closes(tmp_path: Path) -> None:
    page = FakePage(redirect_to="https://x.com/i/flow/login?redirect_after_login=%2Fsearch")
    crawler, factory, log_path = _crawler(page, tmp_path)

    with pytest.raises(InvalidCredentialError, match="login_wall"):
        crawler.crawl(CrawlRequest(keywords="python"))

    assert factory.closed == 1
    assert page.closed is True
    (event,) = _events(log_path)
    assert event["payload"]["ok"] is False


@pytest.mark.parametrize(
    "request_",
    [
        CrawlRequest(keywords="python", target_count=0),
        CrawlRequest(keywords="  "),
        CrawlRequest(keywords="python", from_date="2024/01/01"),
        CrawlRequest(keywords="python", profile="turbo"),
    ],
)
def test_invalid_requests_fail_before_opening_a_browser(tmp_path: Path, request_: CrawlRequest) -> None:
    crawler, factory, _log = _crawler(FakePage(), tmp_path)

    with pytest.raises(ConfigError):
        crawler.crawl(request_)

    assert factory.opened == []


def test_blank_credential_is_rejected() -> None:
    with pytest.raises(InvalidCredentialError):
        XCrawler(" ", page_factory=FakePageFactory(FakePage()))


def test_request_profile_and_pacing_override_crawler_profile(tmp_path: Path) -> None:
    page = FakePage(lambda index: search_body([str(index)]))
    crawler, _factory, log_path = _crawler(page, tmp_path, profile="aggressive")

    crawler.crawl(CrawlRequest(keywords="python", target_count=1, profile="conservative", delay_each_record_s=0))

    assert crawler.profile.name == "aggressive"
    assert _events(log_path)[0]["payload"]["profile"] == "conservative"
    assert crawler.use_profile("default").name == "default"


def test_crawl_replies_uses_human_scrolling_and_links_parent(tmp_path: Path) -> None:
    url = "https://x.com/alice/status/100"
    page = FakePage(dom_batches=[[post("100"), post("201"), post("202")]])
    crawler, factory, log_path = _crawler(page, tmp_path)

    replies = crawler.crawl_replies(url, external_id="row-1")

    assert [reply.record_id for reply in replies] == ["201", "202"]
    assert all(reply.parent_id == "row-1" and reply.parent_url == url for reply in replies)
    assert factory.opened == [True]
    assert page.navigations == [HOME_URL, url]
    assert _events(log_path)[0]["event_type"] == "replies_run"


def test_crawl_many_replies_isolates_a_thread_that_never_renders(tmp_path: Path) -> None:
    threads = tuple(
        ThreadRef(record_id=str(index), url=f"https://x.com/a/status/{index}") for index in (1, 2, 3)
    )
    page = FakePage(rendered=[True, False, False, False, True], dom_batches=[[post("900")]])
    crawler, factory, log_path = _crawler(page, tmp_path)

    report = crawler.crawl_many_replies(threads)

    assert [result.ok for result in report.results] == [True, False, True]
    assert report.results[1].error is not None and "rendered no posts" in report.results[1].error
    assert [reply.parent_id for reply in report.replies] == ["1", "3"]
    assert factory.opened == [True]
    payload = _events(log_path)[0]["payload"]
    assert payload["succeeded"] == 2
    assert payload["errors"].keys() == {"2"}


def test_fetch_record_metrics_reads_detail_response(tmp_path: Path) -> None:
    url = "https://x.com/alice/status/55"
    page = FakePage([detail_body(["55"])])
    crawler, _factory, log_path = _crawler(page, tmp_path)

    record = crawler.fetch_record_metrics(url)

    assert record is not None
    assert record.like_count == 3
    assert page.navigations == [HOME_URL, url]
    assert _events(log_path)[0]["payload"] == {"ok": True, "url": url, "found": True}


def test_crawl_many_replies_skips_each_threads_own_post_despite_caller_ids(tmp_path: Path) -> None:
    threads = (
        ThreadRef(record_id="row-a", url="https://x.com/alice/status/100"),
        ThreadRef(record_id="row-b", url="https://x.com/bob/status/200"),
    )
    page = FakePage(dom_batches=[[post("100"), post("200"), post("901")]])
    crawler, _factory, _log = _crawler(page, tmp_path)

    report = crawler.crawl_many_replies(threads)

    first, second = report.results
    assert [reply.record_id for reply in first.replies] == ["200", "901"]
    assert [reply.record_id for reply in second.replies] == ["100", "901"]
    assert {reply.parent_id for reply in first.replies} == {"row-a"}
    assert [result.thread_id for result in report.results] == ["row-a", "row-b"]


def test_failed_reply_run_is_logged_before_raising(tmp_path: Path) -> None:
    url = "https://x.com/alice/status/100"
    page = FakePage(rendered=False)
    crawler, _factory, log_path = _crawler(page, tmp_path)

    with pytest.raises(ContentRenderTimeoutError):
        crawler.crawl_replies(url)

    (event,) = _events(log_path)
    assert event["event_type"] == "replies_run"
    assert event["payload"]["ok"] is False
    assert "rendered no posts" in event["payload"]["error"]
    assert page.closed is True


@pytest.mark.parametrize(
    ("call", "event_type"),
    [
        (lambda crawler: crawler.fetch_record_metrics("https://x.com/alice/status/55"), "metrics_probe"),
        (
            lambda crawler: crawler.crawl_many_replies((ThreadRef(record_id="1", url="https://x.com/a/status/1"),)),
            "replies_batch",
        ),
    ],
)
def test_rejected_credential_is_logged_for_metrics_and_batches(
    tmp_path: Path, call: Any, event_type: str
) -> None:
    page = FakePage(redirect_to="https://x.com/i/flow/login")
    crawler, _factory, log_path = _crawler(page, tmp_path)

    with pytest.raises(InvalidCredentialError):
        call(crawler)

    (event,) = _events(log_path)
    assert event["event_type"] == event_type
    assert event["payload"]["ok"] is False
