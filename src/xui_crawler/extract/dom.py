"""Rendered-page extraction scripts and their mapping to records."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import re
from typing import Any

from ..engine.page import ExtractionContext
from ..models import PostRecord
from .dates import parse_created_at
from .text import clean_post_text
from .timeline import status_url

POST_ARTICLE_SELECTOR = 'article[data-testid="tweet"]'

EXTRACT_POSTS_SCRIPT = """
() => Array.from(document.querySelectorAll('article[data-testid="tweet"]')).map((article) => {
  const time = article.querySelector('time');
  const ownLink = time ? time.closest('a') : null;
  const anyLink = Array.from(article.querySelectorAll('a[href*="/status/"]'))
    .find((a) => /\\/status\\/\\d+/.test(a.getAttribute('href') || ''));
  const href = (ownLink || anyLink) ? (ownLink || anyLink).getAttribute('href') : '';
  const idMatch = /\\/status\\/(\\d+)/.exec(href || '');
  const handleMatch = /^\\/([^/]+)\\/status/.exec(href || '');
  const label = (testid) => {
    const el = article.querySelector(`[data-testid="${testid}"]`);
    return el ? (el.getAttribute('aria-label') || '') : '';
  };
  const body = article.querySelector('[data-testid="tweetText"]');
  const analytics = article.querySelector('a[href*="/analytics"]');
  const avatar = article.querySelector('[data-testid="Tweet-User-Avatar"] img');
  const photo = article.querySelector('[data-testid="tweetPhoto"] img');
  const replying = /(?:Replying to|En respuesta a)\\s+@(\\w+)/.exec(article.innerText || '');
  return {
    id: idMatch ? idMatch[1] : null,
    handle: handleMatch ? handleMatch[1] : '',
    text: body ? body.innerText : '',
    datetime: time ? time.getAttribute('datetime') : null,
    reply_label: label('reply'),
    retweet_label: label('retweet'),
    like_label: label('like') || label('unlike'),
    views_label: analytics ? (analytics.getAttribute('aria-label') || '') : '',
    avatar: avatar ? avatar.src : null,
    media: photo ? photo.src : null,
    replying_to: replying ? replying[1] : null,
  };
})
"""

VISIBLE_IDS_SCRIPT = """
() => Array.from(document.querySelectorAll('[data-testid="tweet"] a[href*="/status/"]'))
  .map((a) => /\\/status\\/(\\d+)/.exec(a.getAttribute('href') || ''))
  .filter((match) => match !== null)
  .map((match) => match[1])
"""

_COUNT_RE = re.compile(r"(\d[\d,.]*)([KkMm]?)\b")
_MULTIPLIERS = {"": 1, "k": 1_000, "m": 1_000_000}


def records_from_dom(items: Iterable[Any], context: ExtractionContext) -> list[PostRecord]:
    records: list[PostRecord] = []
    seen: set[str] = set()
    for item in items:
        if not isinstance(item, Mapping):
            continue
        record_id = str(item.get("id") or "").strip()
        if not record_id or record_id in seen:
            continue
        if record_id == context.focal_id and not context.include_focal:
            continue
        seen.add(record_id)
        handle = str(item.get("handle") or "").strip()
        replying_to = str(item.get("replying_to") or "").lstrip("@") or None
        records.append(
            PostRecord(
                record_id=record_id,
                author_handle=handle,
                text=clean_post_text(str(item.get("text") or "")),
                created_at=parse_created_at(item.get("datetime")),
                url=status_url(handle, record_id),
                reply_count=parse_count_label(item.get("reply_label")),
                retweet_count=parse_count_label(item.get("retweet_label")),
                like_count=parse_count_label(item.get("like_label")),
                view_count=parse_count_label(item.get("views_label")),
                media_url=item.get("media") or None,
                avatar_url=item.get("avatar") or None,
                in_reply_to=replying_to,
            )
        )
    return records


def parse_count_label(label: Any) -> int:
    """Read the leading number of an aria-label such as ``"1,204 Likes. Like"``."""
    if not isinstance(label, str):
        return 0
    match = _COUNT_RE.search(label)
    if match is None:
        return 0
    digits, suffix = match.groups()
    multiplier = _MULTIPLIERS[suffix.lower()]
    if multiplier == 1:
        return int(digits.replace(",", "").replace(".", ""))
    try:
        return int(round(float(digits.replace(",", "")) * multiplier))
    except ValueError:
        return 0
