"""Record extraction from paginated responses and rendered pages."""

from .dates import parse_created_at, to_timezone
from .hashing import reply_content_hash
from .text import clean_post_text
from .timeline import find_record, parse_timeline_response

__all__ = [
    "clean_post_text",
    "find_record",
    "parse_created_at",
    "parse_timeline_response",
    "reply_content_hash",
    "to_timezone",
]
