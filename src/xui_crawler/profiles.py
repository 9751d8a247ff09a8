"""Immutable crawl run profiles: default, aggressive and conservative."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any

from .errors import ConfigError

DEFAULT_PROFILE_NAME = "default"


@dataclass(frozen=True)
class TimeoutBudget:
    timeout_limit: int
    reach_timeout_max: int
    max_execution_ms: int


@dataclass(frozen=True)
class RateLimitPolicy:
    max_retries: int = 5
    base_wait_ms: int = 90_000
    max_wait_ms: int = 180_000
    recovery_timeout_ms: int = 600_000


@dataclass(frozen=True)
class ScrollPolicy:
    wait_for_response_timeout_ms: int = 1_500
    stabilization_delay_ms: int = 2_000
    rotation_delay_ms: int = 3_000


@dataclass(frozen=True)
class TimelinePolicy:
    load_timeout_ms: int = 30_000
    retry_delay_ms: int = 5_000


@dataclass(frozen=True)
class PersistencePolicy:
    max_empty_responses: int = 8
    recovery_attempts: int = 6
    aggressive_scroll_count: int = 5


@dataclass(frozen=True)
class CredentialPolicy:
    cooldown_ms: int = 60_000
    safety_margin_ms: int = 5_000


@dataclass(frozen=True)
class EndDetectionPolicy:
    overlap_window: int = 10
    min_for_overlap: int = 10
    min_for_date_boundary: int = 5
    max_same_height: int = 10
    timeout_check_threshold: int = 5


@dataclass(frozen=True)
class ReplyPolicy:
    max_idle_scrolls: int = 5
    scroll_delay_ms: int = 1_500
    render_attempts: int = 3
    render_timeout_ms: int = 10_000
    navigation_timeout_ms: int = 60_000
    settle_delay_ms: int = 1_500


@dataclass(frozen=True)
class CrawlProfile:
    name: str
    rotation_threshold: int
    limited: TimeoutBudget
    unlimited: TimeoutBudget
    delay_each_record_s: float
    delay_every_100_s: float
    rate_limit: RateLimitPolicy = field(default_factory=RateLimitPolicy)
    scroll: ScrollPolicy = field(default_factory=ScrollPolicy)
    timeline: TimelinePolicy = field(default_factory=TimelinePolicy)
    persistence: PersistencePolicy = field(default_factory=PersistencePolicy)
    credentials: CredentialPolicy = field(default_factory=CredentialPolicy)
    end_detection: EndDetectionPolicy = field(default_factory=EndDetectionPolicy)
    replies: ReplyPolicy = field(default_factory=ReplyPolicy)
    metrics_race_timeout_ms: int = 10_000

    def budget(self, *, unlimited: bool) -> TimeoutBudget:
        return self.unlimited if unlimited else self.limited


DEFAULT_PROFILE = CrawlProfile(
    name="default",
    rotation_threshold=50,
    limited=TimeoutBudget(timeout_limit=4, reach_timeout_max=3, max_execution_ms=600_000),
    unlimited=TimeoutBudget(timeout_limit=8, reach_timeout_max=6, max_execution_ms=1_800_000),
    delay_each_record_s=2.0,
    delay_every_100_s=8.0,
)

AGGRESSIVE_PROFILE = replace(
    DEFAULT_PROFILE,
    name="aggressive",
    rotation_threshold=30,
    limited=TimeoutBudget(timeout_limit=6, reach_timeout_max=4, max_execution_ms=300_000),
    unlimited=TimeoutBudget(timeout_limit=12, reach_timeout_max=8, max_execution_ms=600_000),
    delay_each_record_s=0.5,
    delay_every_100_s=3.0,
    scroll=ScrollPolicy(
        wait_for_response_timeout_ms=800,
        stabilization_delay_ms=800,
        rotation_delay_ms=1_500,
    ),
    timeline=TimelinePolicy(load_timeout_ms=20_000, retry_delay_ms=3_000),
    persistence=PersistencePolicy(
        max_empty_responses=12,
        recovery_attempts=10,
        aggressive_scroll_count=8,
    ),
)

CONSERVATIVE_PROFILE = replace(
    DEFAULT_PROFILE,
    name="conservative",
    rotation_threshold=75,
    limited=TimeoutBudget(timeout_limit=3, reach_timeout_max=2, max_execution_ms=1_800_000),
    unlimited=TimeoutBudget(timeout_limit=5, reach_timeout_max=4, max_execution_ms=3_600_000),
    delay_each_record_s=3.0,
    delay_every_100_s=12.0,
    rate_limit=RateLimitPolicy(
        max_retries=5,
        base_wait_ms=120_000,
        max_wait_ms=300_000,
        recovery_timeout_ms=1_800_000,
    ),
    scroll=ScrollPolicy(
        wait_for_response_timeout_ms=2_500,
        stabilization_delay_ms=4_000,
        rotation_delay_ms=5_000,
    ),
    timeline=TimelinePolicy(load_timeout_ms=45_000, retry_delay_ms=8_000),
    persistence=PersistencePolicy(
        max_empty_responses=5,
        recovery_attempts=4,
        aggressive_scroll_count=3,
    ),
)

PROFILES: dict[str, CrawlProfile] = {
    profile.name: profile
    for profile in (DEFAULT_PROFILE, AGGRESSIVE_PROFILE, CONSERVATIVE_PROFILE)
}


def get_profile(name: str | None = None) -> CrawlProfile:
    key = (name or DEFAULT_PROFILE_NAME).strip().lower()
    profile = PROFILES.get(key)
    if profile is None:
        choices = ", ".join(sorted(PROFILES))
        raise ConfigError(f"Unknown crawl profile '{name}'. Expected one of [{choices}].")
    return profile


def with_pacing(
    profile: CrawlProfile,
    *,
    delay_each_record_s: float | None = None,
    delay_every_100_s: float | None = None,
) -> CrawlProfile:
    """Return ``profile`` with per-call pacing overrides applied."""
    changes: dict[str, float] = {}
    if delay_each_record_s is not None:
        if delay_each_record_s < 0:
            raise ConfigError("delay_each_record_s must be >= 0.")
        changes["delay_each_record_s"] = float(delay_each_record_s)
    if delay_every_100_s is not None:
        if delay_every_100_s < 0:
            raise ConfigError("delay_every_100_s must be >= 0.")
        changes["delay_every_100_s"] = float(delay_every_100_s)
    if not changes:
        return profile
    return replace(profile, **changes)


def profile_to_dict(profile: CrawlProfile) -> dict[str, Any]:
    return asdict(profile)
