"""Crawl session engine: classification, credentials, pagination and batching."""

from .classifier import Classification, ErrorKind, classify_text, matches_error_phrase
from .credentials import Availability, CredentialPool
from .dedup import DedupCollector
from .end_detector import EndOfPaginationDetector, EndSignal
from .loop import CancelToken, CrawlLoop, LoopPhase, LoopResult, StopReason
from .metrics import probe_record_metrics, record_id_from_url
from .page import ExtractionContext, PageAutomation
from .query import build_search_query
from .replies import ReplyHarvester, run_multi_thread_replies, wait_until_rendered
from .state import SessionState
from .timing import backoff_delay_ms

__all__ = [
    "Availability",
    "CancelToken",
    "Classification",
    "CrawlLoop",
    "CredentialPool",
    "DedupCollector",
    "EndOfPaginationDetector",
    "EndSignal",
    "ErrorKind",
    "ExtractionContext",
    "LoopPhase",
    "LoopResult",
    "PageAutomation",
    "ReplyHarvester",
    "SessionState",
    "StopReason",
    "backoff_delay_ms",
    "build_search_query",
    "classify_text",
    "matches_error_phrase",
    "probe_record_metrics",
    "record_id_from_url",
    "run_multi_thread_replies",
    "wait_until_rendered",
]
