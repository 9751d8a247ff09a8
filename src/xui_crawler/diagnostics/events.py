"""Append-only JSONL run events with credential redaction."""

from __future__ import annotations

from datetime import datetime, timezone
import json
from pathlib import Path
from typing import Any
import uuid

from xui_crawler.diagnostics.redact import redact_value
from xui_crawler.errors import DiagnosticsError

EVENT_SCHEMA_VERSION = "v1"
_REQUIRED_FIELDS = ("schema_version", "event_type", "occurred_at", "run_id", "payload")


class JsonlEventLogger:
    """Append one redacted JSON object per line."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DiagnosticsError(f"Cannot create event log directory for '{self._path}': {exc}") from exc

    @property
    def path(self) -> Path:
        return self._path

    def append(
        self,
        event_type: str,
        *,
        run_id: str,
        payload: dict[str, Any] | None = None,
        occurred_at: datetime | None = None,
    ) -> dict[str, Any]:
        event = build_event(event_type, run_id=run_id, payload=payload, occurred_at=occurred_at)
        try:
            with self._path.open("a", encoding="utf-8") as stream:
                stream.write(json.dumps(event, sort_keys=True, default=str))
                stream.write("\n")
        except OSError as exc:
            raise DiagnosticsError(f"Cannot append to event log '{self._path}': {exc}") from exc
        return event


def new_run_id(prefix: str) -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"{prefix}-{stamp}-{uuid.uuid4().hex[:8]}"


def build_event(
    event_type: str,
    *,
    run_id: str,
    payload: dict[str, Any] | None = None,
    occurred_at: datetime | None = None,
) -> dict[str, Any]:
    """Build and validate a redacted event."""
    resolved_payload = payload if payload is not None else {}
    if not isinstance(resolved_payload, dict):
        raise DiagnosticsError("payload must be a dictionary.")
    if not event_type.strip():
        raise DiagnosticsError("event_type must be non-empty.")
    if not run_id.strip():
        raise DiagnosticsError("run_id must be non-empty.")

    resolved_time = occurred_at or datetime.now(timezone.utc)
    if resolved_time.tzinfo is None:
        resolved_time = resolved_time.replace(tzinfo=timezone.utc)
    event = {
        "schema_version": EVENT_SCHEMA_VERSION,
        "event_type": event_type.strip(),
        "occurred_at": resolved_time.isoformat(),
        "run_id": run_id.strip(),
        "payload": redact_value(resolved_payload),
    }
    validate_event(event)
    return event


def validate_event(event: dict[str, Any]) -> None:
    for field in _REQUIRED_FIELDS:
        if field not in event:
            raise DiagnosticsError(f"Event missing required field '{field}'.")
    if event["schema_version"] != EVENT_SCHEMA_VERSION:
        raise DiagnosticsError(
            f"Incompatible event schema '{event['schema_version']}'. Expected '{EVENT_SCHEMA_VERSION}'."
        )
    if not isinstance(event["payload"], dict):
        raise DiagnosticsError("payload must be an object.")
