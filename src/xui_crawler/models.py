"""Core data models for crawl requests and collected records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class SearchTab(str, Enum):
    LATEST = "latest"
    TOP = "top"


class CrawlMode(str, Enum):
    SEARCH = "search"
    THREAD = "thread"


@dataclass(frozen=True)
class PostRecord:
    record_id: str
    author_handle: str = ""
    text: str = ""
    created_at: datetime | None = None
    url: str = ""
    reply_count: int = 0
    retweet_count: int = 0
    like_count: int = 0
    quote_count: int = 0
    view_count: int = 0
    media_url: str | None = None
    avatar_url: str | None = None
    # Handle of the author being replied to; the parent post id is in_reply_to_id.
    in_reply_to: str | None = None
    in_reply_to_id: str | None = None
    has_quoted_text: bool = False
    lang: str | None = None
    user_id: str | None = None
    conversation_id: str | None = None
    location: str | None = None


@dataclass(frozen=True)
class ReplyRecord(PostRecord):
    """A reply harvested from a thread, linked back to its parent post."""

    parent_id: str | None = None
    parent_url: str = ""
    content_hash: str = ""


@dataclass(frozen=True)
class CrawlRequest:
    """Search or thread crawl parameters.

    ``target_count`` of -1 means unlimited: the crawl runs until the end of
    pagination or until the profile's time budget runs out.
    """

    keywords: str = ""
    usernames: tuple[str, ...] = ()
    thread_url: str | None = None
    target_count: int = 10
    from_date: str | None = None
    to_date: str | None = None
    search_tab: SearchTab = SearchTab.LATEST
    profile: str | None = None
    delay_each_record_s: float | None = None
    delay_every_100_s: float | None = None

    @property
    def mode(self) -> CrawlMode:
        return CrawlMode.THREAD if self.thread_url else CrawlMode.SEARCH

    @property
    def unlimited(self) -> bool:
        return self.target_count == -1


@dataclass(frozen=True)
class ThreadRef:
    """A thread to harvest replies from.

    ``record_id`` identifies the thread in batch results and is each reply's
    ``parent_id`` unless ``external_id`` is given. It may be a caller's own id;
    the thread's post itself is always read from the status id in ``url``.
    """

    record_id: str
    url: str
    handle: str = ""
    external_id: str | None = None

    @property
    def parent_id(self) -> str:
        return self.external_id or self.record_id


@dataclass(frozen=True)
class ThreadRepliesResult:
    thread_id: str
    url: str
    ok: bool
    replies: tuple[ReplyRecord, ...] = ()
    error: str | None = None

    @property
    def reply_count(self) -> int:
        return len(self.replies)


@dataclass(frozen=True)
class BatchReport:
    results: tuple[ThreadRepliesResult, ...]

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.results if result.ok)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.results if not result.ok)

    @property
    def replies(self) -> tuple[ReplyRecord, ...]:
        return tuple(reply for result in self.results for reply in result.replies)
