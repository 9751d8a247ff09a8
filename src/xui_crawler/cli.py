"""Typer CLI for xui-crawler workflows."""

from __future__ import annotations

from dataclasses import replace
import json
from pathlib import Path
from typing import Any

import typer

from . import __version__
from .config import (
    RuntimeConfig,
    config_to_dict,
    init_default_config,
    load_runtime_config,
    load_runtime_config_or_default,
    resolve_config_path,
)
from .crawler import XCrawler
from .errors import (
    BrowserError,
    ConfigError,
    ContentRenderTimeoutError,
    CrawlAbortedError,
    DiagnosticsError,
    InvalidCredentialError,
)
from .logging import configure_logging
from .models import CrawlRequest, PostRecord, SearchTab, ThreadRef
from .profiles import PROFILES, get_profile, profile_to_dict
from .render.jsonout import batch_report_to_dict, record_to_dict, render_json, render_jsonl

TOKEN_ENV_VAR = "XUI_CRAWLER_TOKEN"
VALID_OUTPUT_FORMATS = {"json", "jsonl"}

app = typer.Typer(help="Authenticated X UI crawler: search, threads, replies and metrics.")
config_app = typer.Typer(help="Config commands.")
app.add_typer(config_app, name="config")

_TOKEN_OPTION = typer.Option(
    "",
    "--token",
    envvar=TOKEN_ENV_VAR,
    help=f"auth_token session cookie (or set {TOKEN_ENV_VAR}).",
)
_POOL_OPTION = typer.Option(
    None,
    "--pool-token",
    help="Additional auth_token for rotation; repeat for several.",
)
_OUT_OPTION = typer.Option(None, "--out", help="Write output to this file instead of stdout.")
_USER_ERRORS = (ConfigError, InvalidCredentialError, ValueError)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show xui-crawler version and exit."),
    config_path: str | None = typer.Option(
        None, "--config", help="Optional config TOML path (defaults to platform config dir)."
    ),
    profile: str | None = typer.Option(
        None, "--profile", help="Run profile: default|aggressive|conservative."
    ),
    output_format: str = typer.Option("json", "--format", help="Output format: json|jsonl."),
    headful: bool = typer.Option(False, "--headful/--headless", help="Show the browser window."),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
) -> None:
    ctx.obj = {
        "config_path": config_path,
        "profile": profile,
        "output_format": output_format,
        "headful": headful,
        "debug": debug,
    }
    if version:
        typer.echo(__version__)
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


@app.command("search")
def search(
    ctx: typer.Context,
    keywords: str = typer.Option("", "--keywords", "-k", help="Search terms."),
    users: list[str] | None = typer.Option(None, "--user", "-u", help="Restrict to a handle; repeatable."),
    count: int = typer.Option(10, "--count", "-n", help="Records to collect; -1 for unlimited."),
    from_date: str | None = typer.Option(None, "--from", help="Lower date bound (YYYY-MM-DD or DD-MM-YYYY)."),
    to_date: str | None = typer.Option(None, "--to", help="Upper date bound (YYYY-MM-DD or DD-MM-YYYY)."),
    tab: str = typer.Option("latest", "--tab", help="Search tab: latest|top."),
    delay_each: float | None = typer.Option(None, "--delay-each", help="Override per-record pacing seconds."),
    delay_100: float | None = typer.Option(None, "--delay-100", help="Override every-100-records pacing seconds."),
    token: str = _TOKEN_OPTION,
    pool_tokens: list[str] | None = _POOL_OPTION,
    out: Path | None = _OUT_OPTION,
) -> None:
    try:
        search_tab = SearchTab(tab.strip().lower())
    except ValueError as exc:
        typer.secho("Invalid --tab value. Expected one of [latest, top].", err=True, fg=typer.colors.RED)
        raise typer.Exit(2) from exc

    request = CrawlRequest(
        keywords=keywords,
        usernames=tuple(users or ()),
        target_count=count,
        from_date=from_date,
        to_date=to_date,
        search_tab=search_tab,
        delay_each_record_s=delay_each,
        delay_every_100_s=delay_100,
    )
    _run_crawl(ctx, request, token=token, pool_tokens=pool_tokens, out=out)


@app.command("thread")
def thread(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Thread URL (https://x.com/<user>/status/<id>)."),
    count: int = typer.Option(-1, "--count", "-n", help="Records to collect; -1 for unlimited."),
    token: str = _TOKEN_OPTION,
    pool_tokens: list[str] | None = _POOL_OPTION,
    out: Path | None = _OUT_OPTION,
) -> None:
    request = CrawlRequest(thread_url=url, target_count=count)
    _run_crawl(ctx, request, token=token, pool_tokens=pool_tokens, out=out)


@app.command("replies")
def replies(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Thread URL to harvest replies from."),
    max_replies: int = typer.Option(-1, "--max", help="Reply cap; -1 for no cap."),
    external_id: str | None = typer.Option(None, "--external-id", help="Parent reference stored on each reply."),
    token: str = _TOKEN_OPTION,
    pool_tokens: list[str] | None = _POOL_OPTION,
    out: Path | None = _OUT_OPTION,
) -> None:
    crawler = _build_crawler(ctx, token, pool_tokens)
    try:
        records = crawler.crawl_replies(url, external_id=external_id, max_replies=max_replies)
    except _USER_ERRORS as exc:
        typer.secho(f"Replies failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(2) from exc
    except (ContentRenderTimeoutError, BrowserError, DiagnosticsError) as exc:
        typer.secho(f"Replies failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1) from exc
    _emit_records(ctx, records, out)


@app.command("replies-batch")
def replies_batch(
    ctx: typer.Context,
    threads_file: Path = typer.Argument(
        ..., help='JSON file: [{"id": "...", "url": "...", "handle": "...", "external_id": "..."}].'
    ),
    max_replies: int = typer.Option(-1, "--max", help="Reply cap per thread; -1 for no cap."),
    token: str = _TOKEN_OPTION,
    pool_tokens: list[str] | None = _POOL_OPTION,
    out: Path | None = _OUT_OPTION,
) -> None:
    try:
        threads = load_thread_refs(threads_file)
    except ConfigError as exc:
        typer.secho(f"Replies batch failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(2) from exc

    crawler = _build_crawler(ctx, token, pool_tokens)
    try:
        report = crawler.crawl_many_replies(threads, max_replies=max_replies)
    except _USER_ERRORS as exc:
        typer.secho(f"Replies batch failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(2) from exc
    except (BrowserError, DiagnosticsError) as exc:
        typer.secho(f"Replies batch failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1) from exc

    _write_output(json.dumps(batch_report_to_dict(report), indent=2, sort_keys=True, ensure_ascii=False), out)
    typer.secho(
        f"Threads: {report.succeeded} succeeded, {report.failed} failed",
        err=True,
        fg=typer.colors.GREEN if report.failed == 0 else typer.colors.YELLOW,
    )


@app.command("metrics")
def metrics(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Post URL (https://x.com/<user>/status/<id>)."),
    token: str = _TOKEN_OPTION,
    pool_tokens: list[str] | None = _POOL_OPTION,
    out: Path | None = _OUT_OPTION,
) -> None:
    crawler = _build_crawler(ctx, token, pool_tokens)
    try:
        record = crawler.fetch_record_metrics(url)
    except _USER_ERRORS as exc:
        typer.secho(f"Metrics failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(2) from exc
    except (BrowserError, DiagnosticsError) as exc:
        typer.secho(f"Metrics failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1) from exc

    if record is None:
        typer.secho(f"No record found at {url}", err=True, fg=typer.colors.YELLOW)
        raise typer.Exit(1)
    _write_output(json.dumps(record_to_dict(record), indent=2, sort_keys=True, ensure_ascii=False), out)


@app.command("profiles")
def profiles(
    name: str | None = typer.Argument(None, help="Show a single profile."),
) -> None:
    try:
        selected = [get_profile(name)] if name else list(PROFILES.values())
    except ConfigError as exc:
        typer.secho(f"Profiles failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(2) from exc
    payload = {profile.name: profile_to_dict(profile) for profile in selected}
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))


@config_app.command("init")
def config_init(
    path: str | None = typer.Option(
        None, "--path", help="Optional config TOML path (defaults to platform config dir)."
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite existing config file."),
) -> None:
    try:
        written_path = init_default_config(path, force=force)
    except ConfigError as exc:
        typer.secho(f"Config init failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(2) from exc

    typer.echo(f"Wrote default config to {written_path}")


@config_app.command("show")
def config_show(
    path: str | None = typer.Option(
        None, "--path", help="Optional config TOML path (defaults to platform config dir)."
    ),
) -> None:
    resolved_path = resolve_config_path(path)
    try:
        config = load_runtime_config(path)
    except ConfigError as exc:
        typer.secho(f"Config show failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(2) from exc

    payload = {"path": str(resolved_path), "config": config_to_dict(config)}
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))


def load_thread_refs(path: Path) -> tuple[ThreadRef, ...]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Could not read threads file '{path}': {exc}.") from exc
    except ValueError as exc:
        raise ConfigError(f"Threads file '{path}' is not valid JSON: {exc}.") from exc

    if not isinstance(raw, list):
        raise ConfigError(f"Threads file '{path}' must contain a JSON array of objects.")

    threads: list[ThreadRef] = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict) or not entry.get("id") or not entry.get("url"):
            raise ConfigError(f"threads[{index}] must be an object with non-empty 'id' and 'url'.")
        threads.append(
            ThreadRef(
                record_id=str(entry["id"]),
                url=str(entry["url"]),
                handle=str(entry.get("handle") or ""),
                external_id=str(entry["external_id"]) if entry.get("external_id") else None,
            )
        )
    return tuple(threads)


def _run_crawl(
    ctx: typer.Context,
    request: CrawlRequest,
    *,
    token: str,
    pool_tokens: list[str] | None,
    out: Path | None,
) -> None:
    crawler = _build_crawler(ctx, token, pool_tokens)
    try:
        records = crawler.crawl(request)
    except _USER_ERRORS as exc:
        typer.secho(f"Crawl failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(2) from exc
    except CrawlAbortedError as exc:
        typer.secho(
            f"Crawl aborted: {exc}. Emitting {len(exc.records)} partial records.",
            err=True,
            fg=typer.colors.RED,
        )
        _emit_records(ctx, exc.records, out)
        raise typer.Exit(1) from exc
    except (BrowserError, DiagnosticsError) as exc:
        typer.secho(f"Crawl failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1) from exc
    _emit_records(ctx, records, out)


def _build_crawler(ctx: typer.Context, token: str, pool_tokens: list[str] | None) -> XCrawler:
    options = _context_options(ctx)
    try:
        config = load_runtime_config_or_default(options.get("config_path"))
        if options.get("headful"):
            config = replace(config, browser=replace(config.browser, headless=False))
        configure_logging(bool(options.get("debug")) or config.app.debug)
        return XCrawler(
            token,
            extra_credentials=pool_tokens or (),
            profile=options.get("profile"),
            config=config,
        )
    except (ConfigError, InvalidCredentialError, DiagnosticsError) as exc:
        typer.secho(f"Startup failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(2) from exc


def _emit_records(ctx: typer.Context, records: tuple[PostRecord, ...], out: Path | None) -> None:
    output_format = str(_context_options(ctx).get("output_format") or "json").lower()
    if output_format not in VALID_OUTPUT_FORMATS:
        typer.secho("Invalid --format value. Expected one of [json, jsonl].", err=True, fg=typer.colors.RED)
        raise typer.Exit(2)
    rendered = render_jsonl(records) if output_format == "jsonl" else render_json(records)
    _write_output(rendered, out)


def _write_output(text: str, out: Path | None) -> None:
    if out is None:
        if text:
            typer.echo(text)
        return
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(text + "\n" if text else "", encoding="utf-8")
    typer.echo(f"Wrote {out}", err=True)


def _context_options(ctx: typer.Context) -> dict[str, Any]:
    root = ctx.find_root()
    return root.obj if isinstance(root.obj, dict) else {}
