"""YAML configuration for wallfetch.

The file lives at ``$XDG_CONFIG_HOME/wallfetch/config.yaml`` (or
``~/.config/wallfetch/config.yaml``). Any key may be omitted; missing keys
take the defaults below.

Environment variables:
    WALLHAVEN_API_KEY: Overrides ``api_keys.wallhaven``
    XDG_CONFIG_HOME: Base directory for the config file
"""

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

from .core.filter import FilterConfig

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when the configuration file can't be read or parsed."""
    pass


@dataclass
class SourceDefaults:
    """Default fetch options and filter constraints for one source."""

    categories: str = ""
    resolution: str = ""
    sort: str = ""
    limit: int = 10
    aspect_ratios: list[str] = field(default_factory=list)
    min_width: int = 0
    min_height: int = 0
    max_width: int = 0
    max_height: int = 0
    only_landscape: bool = False

    def filter_config(self) -> FilterConfig:
        return FilterConfig(
            min_width=self.min_width,
            min_height=self.min_height,
            max_width=self.max_width,
            max_height=self.max_height,
            only_landscape=self.only_landscape,
            aspect_ratios=list(self.aspect_ratios),
        )


def _wallhaven_defaults() -> SourceDefaults:
    return SourceDefaults(
        categories="general,anime",
        resolution="1920x1080",
        sort="toplist",
        limit=10,
        aspect_ratios=["16x9", "21x9", "32x9"],
        min_width=1920,
        min_height=1080,
        only_landscape=True,
    )


@dataclass
class DatabaseConfig:
    path: str = "~/.local/share/wallfetch/wallpapers.db"
    auto_vacuum: bool = True


@dataclass
class Config:
    default_source: str = "wallhaven"
    download_dir: str = "~/Pictures/Wallpapers"
    max_concurrent: int = 5
    api_keys: dict[str, str] = field(default_factory=dict)
    defaults: dict[str, SourceDefaults] = field(
        default_factory=lambda: {"wallhaven": _wallhaven_defaults()}
    )
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    def source_defaults(self, source: str) -> SourceDefaults:
        return self.defaults.get(source) or SourceDefaults()

    def get_api_key(self, source: str = "wallhaven") -> Optional[str]:
        return self.api_keys.get(source) or os.environ.get(f"{source.upper()}_API_KEY") or None

    def to_dict(self) -> dict:
        return asdict(self)


def get_config_path() -> Path:
    """Return the path of the configuration file."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "wallfetch" / "config.yaml"
    return Path.home() / ".config" / "wallfetch" / "config.yaml"


def expand_path(path: str) -> str:
    """Expand a leading ``~`` to the home directory."""
    return os.path.expanduser(path) if path else path


def _known(cls, data: dict) -> dict:
    names = {f.name for f in fields(cls)}
    unknown = set(data) - names
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", cls.__name__, ", ".join(sorted(unknown)))
    return {k: v for k, v in data.items() if k in names}


def config_from_dict(data: dict) -> Config:
    """Build a Config from parsed YAML, filling in defaults."""
    config = Config()
    data = dict(data or {})
    defaults = data.pop("defaults", None)
    database = data.pop("database", None)
    try:
        for key, value in _known(Config, data).items():
            setattr(config, key, value)
        if defaults:
            for source, options in defaults.items():
                base = config.defaults.get(source) or SourceDefaults()
                merged = {**asdict(base), **_known(SourceDefaults, options or {})}
                config.defaults[source] = SourceDefaults(**merged)
        if database:
            config.database = DatabaseConfig(**{**asdict(config.database), **_known(DatabaseConfig, database)})
        config.api_keys = dict(config.api_keys or {})
        config.max_concurrent = int(config.max_concurrent)
    except (AttributeError, TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
    if config.max_concurrent < 1:
        raise ConfigError("max_concurrent must be at least 1")
    return config


def load_config(config_path: Optional[str | Path] = None) -> Config:
    """Load configuration from YAML file and the environment.

    A missing file is not an error: the defaults are used.

    Raises:
        ConfigError: If the file exists but can't be read or parsed
    """
    path = Path(config_path) if config_path else get_config_path()
    data = {}
    if path.exists():
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        logger.debug("Loaded configuration from %s", path)

    config = config_from_dict(data)

    api_key = os.environ.get("WALLHAVEN_API_KEY")
    if api_key:
        config.api_keys["wallhaven"] = api_key

    config.download_dir = expand_path(config.download_dir)
    config.database.path = expand_path(config.database.path)
    return config


def save_config(config: Config, config_path: Optional[str | Path] = None) -> Path:
    """Write the configuration as YAML. Returns the file path."""
    path = Path(config_path) if config_path else get_config_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ConfigError(f"Failed to write config file {path}: {e}") from e
    return path
