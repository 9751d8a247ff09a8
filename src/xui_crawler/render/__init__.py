"""Output rendering."""

from .jsonout import batch_report_to_dict, record_to_dict, render_json, render_jsonl

__all__ = ["batch_report_to_dict", "record_to_dict", "render_json", "render_jsonl"]
