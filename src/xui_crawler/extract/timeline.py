"""Parse paginated timeline responses into post records."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
import json
import re
from typing import Any

from ..errors import ExtractError
from ..models import PostRecord
from .dates import parse_created_at
from .text import clean_post_text

PLATFORM_BASE_URL = "https://x.com"

_INSTRUCTION_PATHS: tuple[tuple[str, ...], ...] = (
    ("data", "search_by_raw_query", "search_timeline", "timeline", "instructions"),
    ("data", "threaded_conversation_with_injections_v2", "instructions"),
    ("data", "user", "result", "timeline_v2", "timeline", "instructions"),
    ("data", "user", "result", "timeline", "timeline", "instructions"),
)
_CONVERSATION_MODULE_PREFIX = "conversationthread"
_STATUS_ID_RE = re.compile(r"/status(?:es)?/(\d+)")


def parse_timeline_response(body: str, *, strip_reply_mention: bool = False) -> list[PostRecord]:
    """Map every organic post in a response body to a record."""
    payload = _load_payload(body)
    records: list[PostRecord] = []
    for entry in timeline_entries(payload):
        for result in entry_post_results(entry):
            record = record_from_result(result, strip_reply_mention=strip_reply_mention)
            if record is not None:
                records.append(record)
    return records


def find_record(body: str, record_id: str) -> PostRecord | None:
    """Return the record with ``record_id`` from a thread-detail body, if present."""
    for record in parse_timeline_response(body):
        if record.record_id == record_id:
            return record
    return None


def timeline_entries(payload: Mapping[str, Any]) -> Iterator[Mapping[str, Any]]:
    for instructions in _instruction_lists(payload):
        for instruction in instructions:
            if not isinstance(instruction, Mapping):
                continue
            entries = instruction.get("entries")
            if isinstance(entries, list):
                for entry in entries:
                    if isinstance(entry, Mapping):
                        yield entry
            single = instruction.get("entry")
            if isinstance(single, Mapping):
                yield single


def entry_post_results(entry: Mapping[str, Any]) -> Iterator[Mapping[str, Any]]:
    """Post payloads carried by one timeline entry.

    A plain item carries at most one post. Thread-detail replies arrive as
    ``conversationthread-*`` modules holding one post per item. Promoted
    entries and cursors carry none, nor does any other module such as
    who-to-follow.
    """
    entry_id = str(entry.get("entryId", "")).lower()
    if "promoted" in entry_id:
        return
    content = entry.get("content")
    if not isinstance(content, Mapping):
        return
    kind = content.get("entryType") or content.get("__typename")
    if kind == "TimelineTimelineCursor":
        return
    if kind == "TimelineTimelineModule":
        if not entry_id.startswith(_CONVERSATION_MODULE_PREFIX):
            return
        items = content.get("items")
        for item in items if isinstance(items, list) else ():
            if "promoted" in str(_dig(item, "entryId") or "").lower():
                continue
            result = _post_result(_dig(item, "item", "itemContent"))
            if result is not None:
                yield result
        return
    result = _post_result(content.get("itemContent"))
    if result is not None:
        yield result


def record_from_result(result: Any, *, strip_reply_mention: bool = False) -> PostRecord | None:
    tweet = _unwrap_tweet(result)
    if tweet is None:
        return None
    legacy = tweet.get("legacy")
    if not isinstance(legacy, Mapping):
        return None

    record_id = str(legacy.get("id_str") or tweet.get("rest_id") or "").strip()
    if not record_id:
        return None

    user = _dig(tweet, "core", "user_results", "result")
    if not isinstance(user, Mapping):
        user = {}
    user_legacy = user.get("legacy") if isinstance(user.get("legacy"), Mapping) else {}
    handle = str(
        user_legacy.get("screen_name") or _dig(user, "core", "screen_name") or ""
    ).strip()

    quoted = _unwrap_tweet(_dig(tweet, "quoted_status_result", "result"))
    quoted_text = _full_text(quoted) if quoted is not None else None

    return PostRecord(
        record_id=record_id,
        author_handle=handle,
        text=clean_post_text(
            _full_text(tweet),
            quoted_text=quoted_text,
            strip_reply_mention=strip_reply_mention,
        ),
        created_at=parse_created_at(legacy.get("created_at")),
        url=status_url(handle, record_id),
        reply_count=_as_int(legacy.get("reply_count")),
        retweet_count=_as_int(legacy.get("retweet_count")),
        like_count=_as_int(legacy.get("favorite_count")),
        quote_count=_as_int(legacy.get("quote_count")),
        view_count=_as_int(_dig(tweet, "views", "count")),
        media_url=_first_media_url(legacy),
        avatar_url=_optional_str(
            user_legacy.get("profile_image_url_https") or _dig(user, "avatar", "image_url")
        ),
        in_reply_to=_optional_str(legacy.get("in_reply_to_screen_name")),
        in_reply_to_id=_optional_str(legacy.get("in_reply_to_status_id_str")),
        has_quoted_text=bool(quoted_text),
        lang=_optional_str(legacy.get("lang")),
        user_id=_optional_str(legacy.get("user_id_str") or user.get("rest_id")),
        conversation_id=_optional_str(legacy.get("conversation_id_str")),
        location=_optional_str(user_legacy.get("location") or _dig(user, "location", "location")),
    )


def status_url(handle: str, record_id: str) -> str:
    owner = handle.lstrip("@") or "i"
    return f"{PLATFORM_BASE_URL}/{owner}/status/{record_id}"


def record_id_from_url(url: str) -> str:
    match = _STATUS_ID_RE.search(url)
    if match is None:
        raise ValueError(f"'{url}' is not a post URL (expected .../status/<id>).")
    return match.group(1)


def _load_payload(body: str) -> Mapping[str, Any]:
    try:
        payload = json.loads(body)
    except (TypeError, ValueError) as exc:
        raise ExtractError(f"Paginated response is not valid JSON: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise ExtractError("Paginated response must be a JSON object.")
    return payload


def _instruction_lists(payload: Mapping[str, Any]) -> Iterator[list[Any]]:
    for path in _INSTRUCTION_PATHS:
        value = _dig(payload, *path)
        if isinstance(value, list):
            yield value


def _unwrap_tweet(result: Any) -> Mapping[str, Any] | None:
    if not isinstance(result, Mapping):
        return None
    if isinstance(result.get("legacy"), Mapping):
        return result
    inner = result.get("tweet")
    if isinstance(inner, Mapping) and isinstance(inner.get("legacy"), Mapping):
        return inner
    return None


def _full_text(tweet: Mapping[str, Any]) -> str:
    note = _dig(tweet, "note_tweet", "note_tweet_results", "result", "text")
    if isinstance(note, str) and note:
        return note
    legacy = tweet.get("legacy") or {}
    return str(legacy.get("full_text") or "")


def _first_media_url(legacy: Mapping[str, Any]) -> str | None:
    for key in ("extended_entities", "entities"):
        media = _dig(legacy, key, "media")
        if isinstance(media, list) and media and isinstance(media[0], Mapping):
            url = media[0].get("media_url_https")
            if url:
                return str(url)
    return None


def _post_result(item_content: Any) -> Mapping[str, Any] | None:
    if not isinstance(item_content, Mapping) or item_content.get("promotedMetadata"):
        return None
    result = _dig(item_content, "tweet_results", "result")
    return result if isinstance(result, Mapping) else None


def _dig(value: Any, *keys: str) -> Any:
    current = value
    for key in keys:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def _as_int(raw: Any) -> int:
    if isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        return raw
    try:
        return int(str(raw).replace(",", "").strip())
    except (TypeError, ValueError):
        return 0


def _optional_str(raw: Any) -> str | None:
    if raw is None:
        return None
    value = str(raw).strip()
    return value or None
