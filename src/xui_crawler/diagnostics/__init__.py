"""Run-event logging and redaction."""

from .events import JsonlEventLogger, build_event, new_run_id
from .redact import redact_text, redact_value

__all__ = ["JsonlEventLogger", "build_event", "new_run_id", "redact_text", "redact_value"]
