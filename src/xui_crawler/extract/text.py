"""Post body normalization."""

from __future__ import annotations

import re

_SEPARATOR_CHARS = "\n,\"\u201c\u201d'\u2018\u2019\u2022\u2014\u2013\u2026\u2066\u2069"
_SEPARATOR_RE = re.compile("[" + re.escape(_SEPARATOR_CHARS) + "]")
_WHITESPACE_RE = re.compile(r"\s+")
_EMOJI_RE = re.compile(
    "["
    "\U0001F300-\U0001F5FF"
    "\U0001F600-\U0001F64F"
    "\U0001F680-\U0001F6FF"
    "\U0001F700-\U0001F77F"
    "\U0001F780-\U0001F7FF"
    "\U0001F800-\U0001F8FF"
    "\U0001F900-\U0001F9FF"
    "\U0001FA00-\U0001FAFF"
    "\u2600-\u26FF"
    "\u2700-\u27BF"
    "\uFE0F"
    "\u200D"
    "]+"
)
_LEADING_MENTION_RE = re.compile(r"^@\w+\s*")
QUOTED_MARKER = "QUOTED:"


def clean_post_text(
    text: str | None,
    *,
    quoted_text: str | None = None,
    strip_reply_mention: bool = False,
) -> str:
    cleaned = _normalize(text or "")
    if strip_reply_mention:
        cleaned = _LEADING_MENTION_RE.sub("", cleaned, count=1)
    if quoted_text:
        quoted = _normalize(quoted_text)
        if quoted:
            cleaned = f"{cleaned} {QUOTED_MARKER} {quoted}".strip()
    return cleaned


def _normalize(value: str) -> str:
    without_separators = _SEPARATOR_RE.sub(" ", value)
    without_emoji = _EMOJI_RE.sub("", without_separators)
    return _WHITESPACE_RE.sub(" ", without_emoji).strip()
