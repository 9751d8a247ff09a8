"""JSON and JSONL record rendering."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import fields
import json

from xui_crawler.models import BatchReport, PostRecord


def render_json(records: Sequence[PostRecord]) -> str:
    return json.dumps([record_to_dict(record) for record in records], indent=2, sort_keys=True, ensure_ascii=False)


def render_jsonl(records: Sequence[PostRecord]) -> str:
    return "\n".join(json.dumps(record_to_dict(record), sort_keys=True, ensure_ascii=False) for record in records)


def record_to_dict(record: PostRecord) -> dict[str, object]:
    payload: dict[str, object] = {}
    for field in fields(record):
        value = getattr(record, field.name)
        payload[field.name] = value.isoformat() if field.name == "created_at" and value else value
    return payload


def batch_report_to_dict(report: BatchReport) -> dict[str, object]:
    return {
        "succeeded": report.succeeded,
        "failed": report.failed,
        "results": [
            {
                "thread_id": result.thread_id,
                "url": result.url,
                "ok": result.ok,
                "reply_count": result.reply_count,
                "error": result.error,
                "replies": [record_to_dict(reply) for reply in result.replies],
            }
            for result in report.results
        ],
    }
