"""Content hashing for reply records."""

from __future__ import annotations

import hashlib

from ..models import PostRecord


def reply_content_hash(record: PostRecord) -> str:
    """SHA-256 over handle, original timestamp, id and text."""
    created = record.created_at.isoformat() if record.created_at else ""
    material = f"{record.author_handle}_{created}_{record.record_id}_{record.text}"
    return hashlib.sha256(material.encode("utf-8")).hexdigest()
