"""
Configuration — Centralized settings management

Config hierarchy (highest to lowest priority):
  1. Environment variables (TALLY_*)
  2. Project config (.tally/config.yaml)
  3. User config (~/.tally/config.yaml)
  4. Defaults

Environment variables:
- TALLY_DIR: Partition directory (default: logs/analytics)
- TALLY_BATCH_SIZE: Queue length that triggers a flush (default: 10)
- TALLY_FLUSH_INTERVAL: Seconds before a timer flush (default: 5.0)
- TALLY_STATS_WINDOW_DAYS: Default get_stats window (default: 7)
- TALLY_CHANNEL_WINDOW_DAYS: Default get_channel_stats window (default: 30)
- TALLY_TOP_K: Commands kept in top-command lists (default: 5)
- TALLY_IO_WORKERS: Threads loading partitions (default: 4)
- TALLY_LOG_LEVEL: loguru level (default: INFO)
- TALLY_REGISTER_ATEXIT: Flush on interpreter exit (default: true)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any, Callable, Tuple

import yaml
from loguru import logger

from .errors import ConfigError
from .logging import VALID_LEVELS


DEFAULT_DIRECTORY = "logs/analytics"


@dataclass
class StorageConfig:
    """Where partitions live."""
    directory: str = DEFAULT_DIRECTORY

    def validate(self) -> Optional[str]:
        if not self.directory:
            return "storage.directory must not be empty"
        return None


@dataclass
class BufferConfig:
    """Write batching."""
    batch_size: int = 10
    flush_interval: float = 5.0  # seconds

    def validate(self) -> Optional[str]:
        if self.batch_size < 1:
            return "buffer.batch_size must be >= 1"
        if self.flush_interval <= 0:
            return "buffer.flush_interval must be > 0"
        return None


@dataclass
class QueryConfig:
    """Default windows and read parallelism."""
    stats_window_days: int = 7
    channel_window_days: int = 30
    top_k: int = 5
    io_workers: int = 4

    def validate(self) -> Optional[str]:
        if self.stats_window_days < 1:
            return "query.stats_window_days must be >= 1"
        if self.channel_window_days < 1:
            return "query.channel_window_days must be >= 1"
        if self.top_k < 1:
            return "query.top_k must be >= 1"
        if self.io_workers < 1:
            return "query.io_workers must be >= 1"
        return None


@dataclass
class LoggingConfig:
    level: str = "INFO"

    def validate(self) -> Optional[str]:
        if self.level.upper() not in VALID_LEVELS:
            return f"Unknown log level '{self.level}'. Valid: {', '.join(VALID_LEVELS)}"
        return None


@dataclass
class LifecycleConfig:
    register_atexit: bool = True

    def validate(self) -> Optional[str]:
        return None


@dataclass
class TallyConfig:
    """Application configuration."""
    storage: StorageConfig = field(default_factory=StorageConfig)
    buffer: BufferConfig = field(default_factory=BufferConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    lifecycle: LifecycleConfig = field(default_factory=LifecycleConfig)

    def validate(self) -> None:
        """Raise ConfigError on the first invalid section."""
        for section in (self.storage, self.buffer, self.query, self.logging, self.lifecycle):
            error = section.validate()
            if error:
                raise ConfigError(error)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "storage": {"directory": self.storage.directory},
            "buffer": {
                "batch_size": self.buffer.batch_size,
                "flush_interval": self.buffer.flush_interval,
            },
            "query": {
                "stats_window_days": self.query.stats_window_days,
                "channel_window_days": self.query.channel_window_days,
                "top_k": self.query.top_k,
                "io_workers": self.query.io_workers,
            },
            "logging": {"level": self.logging.level},
            "lifecycle": {"register_atexit": self.lifecycle.register_atexit},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TallyConfig':
        """
        Create from dictionary. Missing keys take defaults.

        Raises ConfigError when a value cannot be coerced to its type.
        """
        config = cls()
        for key, (_, convert) in FIELDS.items():
            section, setting = key.split(".")
            section_data = data.get(section) or {}
            if not isinstance(section_data, dict):
                raise ConfigError(f"Config section '{section}' must be a mapping")
            if setting in section_data and section_data[setting] is not None:
                setattr(getattr(config, section), setting, _coerce(key, section_data[setting], convert))
        return config

    def get(self, key: str) -> Any:
        section, setting = _split_key(key)
        return getattr(getattr(self, section), setting)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "1", "yes", "on"):
        return True
    if text in ("false", "0", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"not an integer: {value!r}")
    return int(value)


# Dotted key -> (environment variable, converter)
FIELDS: Dict[str, Tuple[str, Callable[[Any], Any]]] = {
    "storage.directory": ("TALLY_DIR", str),
    "buffer.batch_size": ("TALLY_BATCH_SIZE", _to_int),
    "buffer.flush_interval": ("TALLY_FLUSH_INTERVAL", float),
    "query.stats_window_days": ("TALLY_STATS_WINDOW_DAYS", _to_int),
    "query.channel_window_days": ("TALLY_CHANNEL_WINDOW_DAYS", _to_int),
    "query.top_k": ("TALLY_TOP_K", _to_int),
    "query.io_workers": ("TALLY_IO_WORKERS", _to_int),
    "logging.level": ("TALLY_LOG_LEVEL", str),
    "lifecycle.register_atexit": ("TALLY_REGISTER_ATEXIT", _to_bool),
}


def _split_key(key: str) -> Tuple[str, str]:
    if key not in FIELDS:
        valid = ", ".join(FIELDS)
        raise ConfigError(f"Unknown config key '{key}'. Valid: {valid}")
    section, setting = key.split(".")
    return section, setting


def _coerce(key: str, value: Any, convert: Callable[[Any], Any]) -> Any:
    try:
        return convert(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {key}: {value!r}") from e


class ConfigManager:
    """
    Manages configuration loading and persistence.

    Hierarchy:
      1. Environment (TALLY_*)
      2. Project config (.tally/config.yaml)
      3. User config (~/.tally/config.yaml)
      4. Defaults
    """

    USER_CONFIG_DIR = Path.home() / ".tally"
    PROJECT_CONFIG_DIR = ".tally"
    CONFIG_FILE = "config.yaml"

    def __init__(self, project_dir: Optional[Path] = None, user_dir: Optional[Path] = None):
        self.project_dir = Path(project_dir) if project_dir else Path.cwd()
        self.user_dir = Path(user_dir) if user_dir else self.USER_CONFIG_DIR
        self._config: Optional[TallyConfig] = None

    @property
    def project_config_path(self) -> Path:
        return self.project_dir / self.PROJECT_CONFIG_DIR / self.CONFIG_FILE

    @property
    def user_config_path(self) -> Path:
        return self.user_dir / self.CONFIG_FILE

    def load(self) -> TallyConfig:
        """Load and validate configuration from all sources."""
        if self._config is not None:
            return self._config

        config_data: Dict[str, Any] = {}

        # Layer 1: User config
        config_data = self._merge(config_data, self._read_yaml(self.user_config_path))

        # Layer 2: Project config (higher priority)
        config_data = self._merge(config_data, self._read_yaml(self.project_config_path))

        # Layer 3: Environment overrides
        for key, (env_key, _) in FIELDS.items():
            value = os.environ.get(env_key)
            if value:
                section, setting = key.split(".")
                config_data.setdefault(section, {})[setting] = value

        config = TallyConfig.from_dict(config_data)
        config.validate()
        self._config = config
        return config

    def _read_yaml(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Ignoring unreadable config {}: {}", path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring config {}: top level must be a mapping", path)
            return {}
        return data

    def save_project(self, config: TallyConfig) -> None:
        """Save configuration to project config file."""
        self._write_yaml(self.project_config_path, config)

    def save_user(self, config: TallyConfig) -> None:
        """Save configuration to user config file."""
        self._write_yaml(self.user_config_path, config)

    def _write_yaml(self, path: Path, config: TallyConfig) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            yaml.safe_dump(config.to_dict(), f, default_flow_style=False)
        self._config = config

    def set(self, key: str, value: Any, scope: str = "project") -> Optional[str]:
        """
        Set a configuration value.

        Args:
            key: Dot-separated key (e.g., "buffer.batch_size")
            value: Value to set (strings are coerced)
            scope: "project" or "user"

        Returns:
            Error message or None if successful
        """
        try:
            section, setting = _split_key(key)
            config = self.load()
            updated = TallyConfig.from_dict(self._merge(
                config.to_dict(),
                {section: {setting: value}}
            ))
            updated.validate()
        except ConfigError as e:
            return str(e)

        if scope == "user":
            self.save_user(updated)
        else:
            self.save_project(updated)
        return None

    def get(self, key: str) -> Any:
        """Get a configuration value by dotted key."""
        return self.load().get(key)

    def _merge(self, base: Dict, override: Dict) -> Dict:
        """Deep merge two dicts, override wins."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge(result[key], value)
            else:
                result[key] = value
        return result


def load_config(project_dir: Optional[Path] = None) -> TallyConfig:
    """Load configuration for a project."""
    return ConfigManager(project_dir).load()
