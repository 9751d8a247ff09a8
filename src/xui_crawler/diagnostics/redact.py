"""Keep session credentials out of anything the crawler writes to disk."""

from __future__ import annotations

from collections.abc import Mapping
import re
from typing import Any

REDACTED = "<redacted>"

_SECRET_KEY_PARTS = ("cookie", "token", "credential", "authorization", "password", "secret")

# Every pattern keeps ``head`` and ``tail`` and replaces only the secret between them.
_SECRET_PATTERNS = (
    re.compile(r"(?i)(?P<head>authorization\s*[:=]\s*bearer\s+)[\w.~+/-]+"),
    re.compile(r"(?i)(?P<head>\b(?:auth_token|ct0)\s*=\s*)[^;\"'\s<>]+"),
    re.compile(r"(?i)(?P<head>\"(?:auth_token|ct0|token)\"\s*:\s*\")[^\"]+(?P<tail>\")"),
)


def redact_text(value: str) -> str:
    """Mask bearer headers, session cookies and JSON token fields in free text."""
    for pattern in _SECRET_PATTERNS:
        value = pattern.sub(_mask, value)
    return value


def redact_value(value: Any) -> Any:
    """Mask secrets inside nested payloads; keys that name a secret lose their whole value."""
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, Mapping):
        return {str(key): REDACTED if is_secret_key(str(key)) else redact_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact_value(item) for item in value]
    return value


def is_secret_key(key: str) -> bool:
    lowered = key.lower()
    return any(part in lowered for part in _SECRET_KEY_PARTS)


def _mask(match: re.Match[str]) -> str:
    return match.group("head") + REDACTED + (match.groupdict().get("tail") or "")
