"""Runtime configuration contracts and validation helpers for xui-crawler."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import os
from pathlib import Path
import tomllib
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from platformdirs import user_config_dir

from .errors import ConfigError
from .profiles import PROFILES

VALID_BROWSER_ENGINES = {"chromium", "firefox", "webkit"}
DEFAULT_CONFIG_FILENAME = "config.toml"
CONFIG_ENV_VAR = "XUI_CRAWLER_CONFIG"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

DEFAULT_CONFIG_TEMPLATE = f"""[app]
timezone = "UTC"
debug = false
# event_log = "/path/to/events.jsonl"

[browser]
engine = "chromium"
headless = true
navigation_timeout_ms = 30000
action_timeout_ms = 10000
block_resources = false
viewport_width = 1280
viewport_height = 800
locale = "en-US"
user_agent = "{DEFAULT_USER_AGENT}"

[crawl]
profile = "default"
"""


@dataclass(frozen=True)
class AppConfig:
    timezone: str = "UTC"
    debug: bool = False
    event_log: str | None = None


@dataclass(frozen=True)
class BrowserConfig:
    engine: str = "chromium"
    headless: bool = True
    navigation_timeout_ms: int = 30_000
    action_timeout_ms: int = 10_000
    block_resources: bool = False
    viewport_width: int = 1280
    viewport_height: int = 800
    locale: str = "en-US"
    user_agent: str = DEFAULT_USER_AGENT


@dataclass(frozen=True)
class CrawlConfig:
    profile: str = "default"


@dataclass(frozen=True)
class RuntimeConfig:
    app: AppConfig = field(default_factory=AppConfig)
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    crawl: CrawlConfig = field(default_factory=CrawlConfig)


def default_config() -> RuntimeConfig:
    return RuntimeConfig()


def resolve_config_path(config_path: str | Path | None = None) -> Path:
    """Explicit path, then ``$XUI_CRAWLER_CONFIG``, then the platform config dir."""
    chosen = config_path or os.getenv(CONFIG_ENV_VAR)
    if chosen:
        return Path(chosen).expanduser()
    return Path(user_config_dir("xui-crawler", appauthor=False)) / DEFAULT_CONFIG_FILENAME


def init_default_config(config_path: str | Path | None = None, force: bool = False) -> Path:
    path = _file_path(resolve_config_path(config_path))
    if path.exists() and not force:
        raise ConfigError(f"Config file already exists at '{path}'. Re-run with --force to overwrite.")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
    except OSError as exc:
        raise ConfigError(
            f"Could not write config file at '{path}': {exc}. Choose a writable location with `--path`."
        ) from exc
    return path


def load_runtime_config(config_path: str | Path | None = None) -> RuntimeConfig:
    path = _file_path(resolve_config_path(config_path))
    if not path.exists():
        raise ConfigError(
            f"Config file not found at '{path}'. Run `xui-crawl config init --path \"{path}\"` to generate defaults."
        )
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Could not read config file '{path}': {exc}.") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Config file '{path}' contains invalid TOML: {exc}. "
            "Fix the syntax or regenerate defaults with `xui-crawl config init --force`."
        ) from exc
    return parse_runtime_config(data)


def load_runtime_config_or_default(config_path: str | Path | None = None) -> RuntimeConfig:
    """Load the config file; an absent file at the implicit location means defaults."""
    path = resolve_config_path(config_path)
    if config_path is None and not path.exists():
        return default_config()
    return load_runtime_config(path)


def config_to_dict(config: RuntimeConfig) -> dict[str, Any]:
    return asdict(config)


def _file_path(path: Path) -> Path:
    if path.is_dir():
        raise ConfigError(
            f"Config path '{path}' is a directory; expected a TOML file such as '{path / DEFAULT_CONFIG_FILENAME}'."
        )
    return path


def parse_runtime_config(data: dict[str, Any]) -> RuntimeConfig:
    app = _Section.of(data, "app")
    browser = _Section.of(data, "browser")
    crawl = _Section.of(data, "crawl")
    defaults = BrowserConfig()

    return RuntimeConfig(
        app=AppConfig(
            timezone=app.timezone("timezone", AppConfig.timezone),
            debug=app.flag("debug", AppConfig.debug),
            event_log=app.optional_text("event_log"),
        ),
        browser=BrowserConfig(
            engine=browser.choice("engine", defaults.engine, VALID_BROWSER_ENGINES),
            headless=browser.flag("headless", defaults.headless),
            navigation_timeout_ms=browser.positive_int("navigation_timeout_ms", defaults.navigation_timeout_ms),
            action_timeout_ms=browser.positive_int("action_timeout_ms", defaults.action_timeout_ms),
            block_resources=browser.flag("block_resources", defaults.block_resources),
            viewport_width=browser.positive_int("viewport_width", defaults.viewport_width),
            viewport_height=browser.positive_int("viewport_height", defaults.viewport_height),
            locale=browser.text("locale", defaults.locale),
            user_agent=browser.text("user_agent", defaults.user_agent),
        ),
        crawl=CrawlConfig(profile=crawl.choice("profile", CrawlConfig.profile, set(PROFILES))),
    )


@dataclass(frozen=True)
class _Section:
    """Typed reads from one TOML table; errors name the dotted key."""

    name: str
    values: dict[str, Any]

    @classmethod
    def of(cls, data: dict[str, Any], name: str) -> _Section:
        values = data.get(name, {})
        if not isinstance(values, dict):
            raise ConfigError(f"Invalid [{name}] table: expected table, got {type(values).__name__}.")
        return cls(name, values)

    def _invalid(self, key: str, expected: str) -> ConfigError:
        return ConfigError(f"Invalid value for '{self.name}.{key}': expected {expected}.")

    def text(self, key: str, default: str) -> str:
        value = self.values.get(key, default)
        if not isinstance(value, str) or not value.strip():
            raise self._invalid(key, "non-empty string")
        return value

    def optional_text(self, key: str) -> str | None:
        if key not in self.values:
            return None
        return self.text(key, "")

    def flag(self, key: str, default: bool) -> bool:
        value = self.values.get(key, default)
        if not isinstance(value, bool):
            raise self._invalid(key, "boolean true/false")
        return value

    def positive_int(self, key: str, default: int) -> int:
        value = self.values.get(key, default)
        # bool is an int subclass; TOML `true` is not a size.
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise self._invalid(key, "positive integer")
        return value

    def choice(self, key: str, default: str, allowed: set[str]) -> str:
        value = self.values.get(key, default)
        if not isinstance(value, str) or value not in allowed:
            raise self._invalid(key, "one of [" + ", ".join(sorted(allowed)) + "]")
        return value

    def timezone(self, key: str, default: str) -> str:
        value = self.text(key, default)
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(
                f"Invalid value for '{self.name}.{key}': unknown IANA timezone '{value}' "
                "(for example 'America/Mexico_City')."
            ) from exc
        return value
