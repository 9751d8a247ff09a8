"""Paginated response parsing."""

from __future__ import annotations

from datetime import datetime, timezone
import json

import pytest

from fakes import conversation_module, detail_body, search_body, tweet_entry, tweet_result

from xui_crawler.errors import ExtractError
from xui_crawler.extract.timeline import entry_post_results, find_record, parse_timeline_response, status_url


def test_parse_search_response_maps_fields_and_filters_non_posts() -> None:
    records = parse_timeline_response(search_body(["11", "12"]))

    assert [record.record_id for record in records] == ["11", "12"]
    first = records[0]
    assert first.author_handle == "alice"
    assert first.text == "post 11"
    assert first.created_at == datetime(2022, 10, 5, 20, 2, 20, tzinfo=timezone.utc)
    assert first.url == "https://x.com/alice/status/11"
    assert (first.reply_count, first.retweet_count, first.like_count, first.quote_count) == (1, 2, 3, 4)
    assert first.view_count == 120
    assert first.avatar_url == "https://pbs.twimg.com/profile/a.jpg"
    assert first.location == "CDMX"
    assert first.user_id == "u-1"
    assert first.lang == "en"


def test_parse_thread_detail_response_reads_conversation_modules() -> None:
    records = parse_timeline_response(detail_body(["1", "2", "3"]))

    assert [record.record_id for record in records] == ["1", "2", "3"]
    focal, reply = records[0], records[1]
    assert (focal.in_reply_to, focal.in_reply_to_id) == (None, None)
    assert (reply.in_reply_to, reply.in_reply_to_id) == ("alice", "1")


def test_thread_detail_skips_unrelated_modules() -> None:
    who_to_follow = {
        "entryId": "who-to-follow-1",
        "content": {
            "entryType": "TimelineTimelineModule",
            "items": [{"item": {"itemContent": {"user_results": {"result": {"rest_id": "u-9"}}}}}],
        },
    }
    related = conversation_module("40")
    related["entryId"] = "tweetdetailrelatedtweets-1"
    promoted_reply = conversation_module("41")
    promoted_reply["content"]["items"][0]["entryId"] = "conversationthread-41-promoted-tweet-41"
    body = json.dumps(
        {
            "data": {
                "threaded_conversation_with_injections_v2": {
                    "instructions": [
                        {"entries": [tweet_entry("1"), who_to_follow, related, promoted_reply, conversation_module("2")]}
                    ]
                }
            }
        }
    )

    assert [record.record_id for record in parse_timeline_response(body)] == ["1", "2"]


def test_entry_post_results_rejects_promoted_cursor_and_empty_entries() -> None:
    promoted_metadata = tweet_entry("5")
    promoted_metadata["content"]["itemContent"]["promotedMetadata"] = {"advertiser": "x"}
    cursor = {"entryId": "cursor-bottom-1", "content": {"entryType": "TimelineTimelineCursor"}}
    empty = {"entryId": "tweet-6", "content": {"entryType": "TimelineTimelineItem", "itemContent": {}}}

    assert len(list(entry_post_results(tweet_entry("4")))) == 1
    assert len(list(entry_post_results(conversation_module("8")))) == 1
    assert list(entry_post_results(promoted_metadata)) == []
    assert list(entry_post_results(cursor)) == []
    assert list(entry_post_results(empty)) == []
    assert list(entry_post_results({"entryId": "promoted-tweet-7", "content": {}})) == []


def test_visibility_wrapped_results_are_unwrapped() -> None:
    entry = tweet_entry("8")
    inner = entry["content"]["itemContent"]["tweet_results"]["result"]
    entry["content"]["itemContent"]["tweet_results"]["result"] = {
        "__typename": "TweetWithVisibilityResults",
        "tweet": inner,
    }
    body = json.dumps(
        {"data": {"threaded_conversation_with_injections_v2": {"instructions": [{"entries": [entry]}]}}}
    )

    assert [record.record_id for record in parse_timeline_response(body)] == ["8"]


def test_quoted_text_and_long_form_text_are_included() -> None:
    result = tweet_result("9", quoted_text="original claim")
    result["note_tweet"] = {"note_tweet_results": {"result": {"text": "a much longer body"}}}
    entry = {
        "entryId": "tweet-9",
        "content": {"entryType": "TimelineTimelineItem", "itemContent": {"tweet_results": {"result": result}}},
    }
    body = json.dumps(
        {"data": {"threaded_conversation_with_injections_v2": {"instructions": [{"entries": [entry]}]}}}
    )

    (record,) = parse_timeline_response(body)

    assert record.text == "a much longer body QUOTED: original claim"
    assert record.has_quoted_text is True


def test_reply_mention_is_stripped_on_request() -> None:
    body = json.dumps(
        {
            "data": {
                "threaded_conversation_with_injections_v2": {
                    "instructions": [{"entries": [tweet_entry("3", text="@alice totally agree")]}]
                }
            }
        }
    )

    (kept,) = parse_timeline_response(body)
    (stripped,) = parse_timeline_response(body, strip_reply_mention=True)

    assert kept.text == "@alice totally agree"
    assert stripped.text == "totally agree"


def test_single_entry_instructions_are_read() -> None:
    body = json.dumps(
        {
            "data": {
                "threaded_conversation_with_injections_v2": {
                    "instructions": [{"type": "TimelinePinEntry", "entry": tweet_entry("77")}]
                }
            }
        }
    )

    assert [record.record_id for record in parse_timeline_response(body)] == ["77"]


@pytest.mark.parametrize("body", ["<html>", "[1, 2]", ""])
def test_unreadable_bodies_raise_extract_error(body: str) -> None:
    with pytest.raises(ExtractError):
        parse_timeline_response(body)


def test_unknown_shapes_yield_no_records() -> None:
    assert parse_timeline_response('{"data": {"viewer": {}}}') == []


def test_find_record_and_status_url() -> None:
    record = find_record(detail_body(["1", "2"]), "2")

    assert record is not None and record.record_id == "2"
    assert find_record(detail_body(["1"]), "3") is None
    assert status_url("@bob", "5") == "https://x.com/bob/status/5"
    assert status_url("", "5") == "https://x.com/i/status/5"
