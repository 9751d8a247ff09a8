"""CLI smoke tests with the crawler facade replaced."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from xui_crawler import __version__
from xui_crawler.errors import CrawlAbortedError
from xui_crawler.models import BatchReport, CrawlRequest, PostRecord, ThreadRef, ThreadRepliesResult

pytest.importorskip("typer")

from typer.testing import CliRunner  # noqa: E402

from xui_crawler.cli import app, load_thread_refs  # noqa: E402
from xui_crawler.errors import ConfigError  # noqa: E402

runner = CliRunner()


class FakeCrawler:
    instances: list["FakeCrawler"] = []
    records: tuple[PostRecord, ...] = (PostRecord(record_id="1", author_handle="alice", text="hola"),)
    crawl_error: Exception | None = None
    metrics_record: PostRecord | None = None

    def __init__(self, credential: str, **kwargs: Any) -> None:
        self.credential = credential
        self.kwargs = kwargs
        self.requests: list[CrawlRequest] = []
        self.batches: list[tuple[ThreadRef, ...]] = []
        FakeCrawler.instances.append(self)

    def crawl(self, request: CrawlRequest) -> tuple[PostRecord, ...]:
        self.requests.append(request)
        if self.crawl_error is not None:
            raise self.crawl_error
        return self.records

    def crawl_many_replies(self, threads: tuple[ThreadRef, ...], *, max_replies: int = -1) -> BatchReport:
        self.batches.append(tuple(threads))
        return BatchReport(
            results=tuple(
                ThreadRepliesResult(thread_id=thread.record_id, url=thread.url, ok=index != 1, error=None if index != 1 else "boom")
                for index, thread in enumerate(threads)
            )
        )

    def fetch_record_metrics(self, url: str) -> PostRecord | None:
        return self.metrics_record


@pytest.fixture
def fake_crawler(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> type[FakeCrawler]:
    monkeypatch.setenv("XUI_CRAWLER_CONFIG", str(tmp_path / "absent.toml"))
    monkeypatch.delenv("XUI_CRAWLER_TOKEN", raising=False)
    FakeCrawler.instances = []
    FakeCrawler.crawl_error = None
    FakeCrawler.metrics_record = None
    monkeypatch.setattr("xui_crawler.cli.XCrawler", FakeCrawler)
    return FakeCrawler


def test_cli_help_lists_commands_and_global_options() -> None:
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    for name in ("search", "thread", "replies", "replies-batch", "metrics", "profiles", "config"):
        assert name in result.output
    for option in ("--profile", "--format", "--headful", "--headless", "--debug", "--config"):
        assert option in result.output


def test_cli_version_flag_prints_package_version() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_config_init_and_show(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"

    init_result = runner.invoke(app, ["config", "init", "--path", str(config_path)])
    show_result = runner.invoke(app, ["config", "show", "--path", str(config_path)])

    assert init_result.exit_code == 0
    assert config_path.exists()
    assert show_result.exit_code == 0
    payload = json.loads(show_result.output)
    assert payload["config"]["crawl"]["profile"] == "default"


def test_config_show_reports_actionable_error_for_missing_path(tmp_path: Path) -> None:
    result = runner.invoke(app, ["config", "show", "--path", str(tmp_path / "missing.toml")])

    assert result.exit_code == 2
    assert "Config show failed:" in result.output
    assert "xui-crawl config init" in result.output


def test_profiles_lists_presets_and_rejects_unknown() -> None:
    listed = runner.invoke(app, ["profiles"])
    unknown = runner.invoke(app, ["profiles", "turbo"])

    assert listed.exit_code == 0
    assert sorted(json.loads(listed.output)) == ["aggressive", "conservative", "default"]
    assert unknown.exit_code == 2
    assert "Unknown crawl profile" in unknown.output


def test_search_without_token_exits_with_usage_error(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XUI_CRAWLER_CONFIG", str(tmp_path / "absent.toml"))
    monkeypatch.delenv("XUI_CRAWLER_TOKEN", raising=False)

    result = runner.invoke(app, ["search", "-k", "python"])

    assert result.exit_code == 2
    assert "Startup failed" in result.output
    assert "XUI_CRAWLER_TOKEN" in result.output


def test_search_rejects_unknown_tab(fake_crawler: type[FakeCrawler]) -> None:
    result = runner.invoke(app, ["search", "-k", "python", "--tab", "media", "--token", "tok"])

    assert result.exit_code == 2
    assert fake_crawler.instances == []


def test_search_builds_request_and_renders_jsonl(fake_crawler: type[FakeCrawler]) -> None:
    result = runner.invoke(
        app,
        [
            "--format",
            "jsonl",
            "--profile",
            "aggressive",
            "search",
            "-k",
            "python",
            "-u",
            "alice",
            "-u",
            "bob",
            "-n",
            "25",
            "--from",
            "2024-01-01",
            "--tab",
            "top",
            "--token",
            "tok-a",
            "--pool-token",
            "tok-b",
        ],
    )

    assert result.exit_code == 0
    (crawler,) = fake_crawler.instances
    assert crawler.credential == "tok-a"
    assert crawler.kwargs["extra_credentials"] == ["tok-b"]
    assert crawler.kwargs["profile"] == "aggressive"
    (request,) = crawler.requests
    assert request.usernames == ("alice", "bob")
    assert request.target_count == 25
    assert request.from_date == "2024-01-01"
    assert request.search_tab.value == "top"
    assert json.loads(result.output.strip().splitlines()[0])["record_id"] == "1"


def test_token_is_read_from_environment(fake_crawler: type[FakeCrawler], monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("XUI_CRAWLER_TOKEN", "env-token")

    result = runner.invoke(app, ["thread", "https://x.com/alice/status/1"])

    assert result.exit_code == 0
    assert fake_crawler.instances[0].credential == "env-token"
    assert fake_crawler.instances[0].requests[0].thread_url == "https://x.com/alice/status/1"


def test_aborted_crawl_emits_partial_records_and_exits_nonzero(
    fake_crawler: type[FakeCrawler], tmp_path: Path
) -> None:
    fake_crawler.crawl_error = CrawlAbortedError(
        "browser disconnected", records=(PostRecord(record_id="7", author_handle="bob"),)
    )
    out = tmp_path / "partial.json"

    result = runner.invoke(app, ["search", "-k", "python", "--token", "tok", "--out", str(out)])

    assert result.exit_code == 1
    assert "1 partial records" in result.output
    assert [record["record_id"] for record in json.loads(out.read_text(encoding="utf-8"))] == ["7"]


def test_replies_batch_reports_per_thread_outcomes(fake_crawler: type[FakeCrawler], tmp_path: Path) -> None:
    threads_file = tmp_path / "threads.json"
    threads_file.write_text(
        json.dumps(
            [
                {"id": "1", "url": "https://x.com/a/status/1"},
                {"id": "2", "url": "https://x.com/a/status/2", "external_id": "row-2"},
            ]
        ),
        encoding="utf-8",
    )

    result = runner.invoke(app, ["replies-batch", str(threads_file), "--token", "tok"])

    assert result.exit_code == 0
    assert "1 succeeded, 1 failed" in result.output
    (batch,) = fake_crawler.instances[0].batches
    assert batch[1].external_id == "row-2"


def test_replies_batch_rejects_malformed_threads_file(fake_crawler: type[FakeCrawler], tmp_path: Path) -> None:
    threads_file = tmp_path / "threads.json"
    threads_file.write_text(json.dumps([{"id": "1"}]), encoding="utf-8")

    result = runner.invoke(app, ["replies-batch", str(threads_file), "--token", "tok"])

    assert result.exit_code == 2
    assert "threads[0]" in result.output
    assert fake_crawler.instances == []


def test_metrics_missing_record_exits_nonzero(fake_crawler: type[FakeCrawler]) -> None:
    result = runner.invoke(app, ["metrics", "https://x.com/a/status/1", "--token", "tok"])

    assert result.exit_code == 1
    assert "No record found" in result.output


def test_load_thread_refs_requires_json_array(tmp_path: Path) -> None:
    threads_file = tmp_path / "threads.json"
    threads_file.write_text('{"id": "1"}', encoding="utf-8")

    with pytest.raises(ConfigError, match="JSON array"):
        load_thread_refs(threads_file)
