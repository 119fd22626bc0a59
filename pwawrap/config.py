"""Configuration loader with type-safe dataclasses."""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from ._pwa._version import CACHE_VERSION


class ConfigError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

# Upper bound for any fetched page or icon body.
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10MB

_COLOR_PATTERN = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


@dataclass(frozen=True)
class FetchConfig:
    """Configuration for outbound HTTP fetches (pages and icons).

    SSRF protection:
    - allow_private: Skip the private/reserved IP check on resolved hostnames.
                     Only meant for local development against intranet pages.
    """

    timeout: int = 10  # seconds
    user_agent: str = DEFAULT_USER_AGENT
    max_bytes: int = DEFAULT_MAX_BYTES
    allow_private: bool = False

    def __post_init__(self) -> None:
        if self.timeout < 1:
            raise ConfigError(f"Fetch timeout must be at least 1 second (got {self.timeout})")
        if not self.user_agent:
            raise ConfigError("Fetch User-Agent cannot be empty")
        if self.max_bytes < 1:
            raise ConfigError(f"Fetch max_bytes must be positive (got {self.max_bytes})")


@dataclass(frozen=True)
class OutputConfig:
    """Configuration for generated bundles."""

    root: str = "build"
    cache_version: str = CACHE_VERSION  # bump to evict previously cached assets

    def __post_init__(self) -> None:
        if not self.root:
            raise ConfigError("Output root cannot be empty")
        if not self.cache_version:
            raise ConfigError("Cache version cannot be empty")
        if any(c.isspace() or c in "'\"\\" for c in self.cache_version):
            raise ConfigError(f"Cache version contains invalid characters: {self.cache_version!r}")


@dataclass(frozen=True)
class ThemeConfig:
    """Colors written into the manifest and shell page."""

    theme_color: str = "#3498db"
    background_color: str = "#ffffff"

    def __post_init__(self) -> None:
        if not _COLOR_PATTERN.match(self.theme_color):
            raise ConfigError(f"Invalid theme_color '{self.theme_color}' (expected #rgb or #rrggbb)")
        if not _COLOR_PATTERN.match(self.background_color):
            raise ConfigError(f"Invalid background_color '{self.background_color}' (expected #rgb or #rrggbb)")


@dataclass(frozen=True)
class ApiConfig:
    """Configuration for the JSON API server."""

    enabled: bool = True
    port: int = 3000
    rate_limit: int = 60  # requests per minute per client IP

    def __post_init__(self) -> None:
        if self.port < 1 or self.port > 65535:
            raise ConfigError(f"API port must be between 1 and 65535, got {self.port}")
        if self.rate_limit < 1:
            raise ConfigError(f"API rate_limit must be at least 1, got {self.rate_limit}")


@dataclass(frozen=True)
class Config:
    """Main configuration container."""

    fetch: FetchConfig = field(default_factory=FetchConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    theme: ThemeConfig = field(default_factory=ThemeConfig)
    api: ApiConfig = field(default_factory=ApiConfig)


def _section(data: dict, name: str) -> dict | None:
    """Return a config section, checking it is a mapping when present."""
    section = data.get(name)
    if section is not None and not isinstance(section, dict):
        raise ConfigError(f"'{name}' section must be a dictionary")
    return section


def _parse_bool(value: object) -> bool:
    if isinstance(value, str):
        return value.lower() in ("true", "1", "yes")
    return bool(value)


def _parse_fetch_config(data: dict | None) -> FetchConfig:
    """Parse fetch configuration section."""
    if data is None:
        return FetchConfig()

    try:
        return FetchConfig(
            timeout=int(data.get("timeout", 10)),
            user_agent=str(data.get("user_agent", DEFAULT_USER_AGENT)),
            max_bytes=int(data.get("max_bytes", DEFAULT_MAX_BYTES)),
            allow_private=_parse_bool(data.get("allow_private", False)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value in 'fetch' section: {e}")


def _parse_output_config(data: dict | None) -> OutputConfig:
    """Parse output configuration section."""
    if data is None:
        return OutputConfig()

    return OutputConfig(
        root=str(data.get("root", "build")),
        cache_version=str(data.get("cache_version", CACHE_VERSION)),
    )


def _parse_theme_config(data: dict | None) -> ThemeConfig:
    """Parse theme configuration section."""
    if data is None:
        return ThemeConfig()

    return ThemeConfig(
        theme_color=str(data.get("theme_color", "#3498db")),
        background_color=str(data.get("background_color", "#ffffff")),
    )


def _parse_api_config(data: dict | None) -> ApiConfig:
    """Parse API configuration section."""
    if data is None:
        return ApiConfig()

    try:
        return ApiConfig(
            enabled=_parse_bool(data.get("enabled", True)),
            port=int(data.get("port", 3000)),
            rate_limit=int(data.get("rate_limit", 60)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value in 'api' section: {e}")


def _apply_env_overrides(config_data: dict) -> dict:
    """Apply environment variable overrides to configuration.

    Supported overrides:
    - PWAWRAP_FETCH_TIMEOUT: Override fetch.timeout
    - PWAWRAP_ALLOW_PRIVATE: Override fetch.allow_private (true/false)
    - PWAWRAP_OUTPUT_ROOT: Override output.root
    - PWAWRAP_CACHE_VERSION: Override output.cache_version
    - PWAWRAP_API_PORT: Override api.port
    """
    for section in ("fetch", "output", "api"):
        if config_data.get(section) is None:
            config_data[section] = {}

    try:
        fetch_timeout = os.environ.get("PWAWRAP_FETCH_TIMEOUT")
        if fetch_timeout is not None:
            config_data["fetch"]["timeout"] = int(fetch_timeout)

        api_port = os.environ.get("PWAWRAP_API_PORT")
        if api_port is not None:
            config_data["api"]["port"] = int(api_port)
    except ValueError as e:
        raise ConfigError(f"Invalid environment override: {e}")

    allow_private = os.environ.get("PWAWRAP_ALLOW_PRIVATE")
    if allow_private is not None:
        config_data["fetch"]["allow_private"] = allow_private.lower() in ("true", "1", "yes")

    output_root = os.environ.get("PWAWRAP_OUTPUT_ROOT")
    if output_root is not None:
        config_data["output"]["root"] = output_root

    cache_version = os.environ.get("PWAWRAP_CACHE_VERSION")
    if cache_version is not None:
        config_data["output"]["cache_version"] = cache_version

    return config_data


def _build_config(data: dict) -> Config:
    for name in ("fetch", "output", "theme", "api"):
        _section(data, name)

    data = _apply_env_overrides(data)

    return Config(
        fetch=_parse_fetch_config(data.get("fetch")),
        output=_parse_output_config(data.get("output")),
        theme=_parse_theme_config(data.get("theme")),
        api=_parse_api_config(data.get("api")),
    )


def default_config() -> Config:
    """Build the default configuration, honoring environment overrides."""
    return _build_config({})


def load_config(config_path: str) -> Config:
    """Load and validate configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Validated Config object.

    Raises:
        ConfigError: If the file cannot be read or configuration is invalid.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML configuration: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read configuration file: {e}")

    if data is None:
        # An empty file means "all defaults"
        data = {}

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a YAML dictionary")

    return _build_config(data)
