"""Timestamp parsing and timezone conversion."""

from __future__ import annotations

from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..errors import ConfigError

_PLATFORM_TIMESTAMP_FORMAT = "%a %b %d %H:%M:%S %z %Y"


def parse_created_at(raw: object) -> datetime | None:
    """Parse ``Wed Oct 05 20:02:20 +0000 2022`` or ISO-8601 into an aware datetime."""
    if isinstance(raw, datetime):
        return raw if raw.tzinfo is not None else raw.replace(tzinfo=timezone.utc)
    if not isinstance(raw, str):
        return None
    value = raw.strip()
    if not value:
        return None
    try:
        return datetime.strptime(value, _PLATFORM_TIMESTAMP_FORMAT)
    except ValueError:
        pass
    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)


def resolve_timezone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"Unknown IANA timezone '{name}'.") from exc


def to_timezone(value: datetime | None, zone: tzinfo) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(zone)


def parse_query_date(raw: str) -> date:
    """Accept ``YYYY-MM-DD`` or ``DD-MM-YYYY``."""
    value = raw.strip()
    for fmt in ("%Y-%m-%d", "%d-%m-%Y"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise ConfigError(f"Invalid date '{raw}': expected YYYY-MM-DD or DD-MM-YYYY.")


def start_of_day_utc(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
