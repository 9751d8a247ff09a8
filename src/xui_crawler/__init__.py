"""xui_crawler: authenticated crawl sessions over the X web UI."""

from .config import (
    AppConfig,
    BrowserConfig,
    CrawlConfig,
    RuntimeConfig,
    config_to_dict,
    default_config,
    init_default_config,
    load_runtime_config,
    resolve_config_path,
)
from .models import (
    BatchReport,
    CrawlRequest,
    PostRecord,
    ReplyRecord,
    SearchTab,
    ThreadRef,
    ThreadRepliesResult,
)
from .crawler import XCrawler
from .profiles import CrawlProfile, get_profile
from .progress import CallbackSink, LoggingSink, ProgressSink

__all__ = [
    "AppConfig",
    "BatchReport",
    "BrowserConfig",
    "CallbackSink",
    "CrawlConfig",
    "CrawlProfile",
    "CrawlRequest",
    "LoggingSink",
    "PostRecord",
    "ProgressSink",
    "ReplyRecord",
    "RuntimeConfig",
    "SearchTab",
    "ThreadRef",
    "ThreadRepliesResult",
    "XCrawler",
    "config_to_dict",
    "default_config",
    "get_profile",
    "init_default_config",
    "load_runtime_config",
    "resolve_config_path",
]

__version__ = "0.1.0"
