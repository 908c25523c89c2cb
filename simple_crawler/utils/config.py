"""
Configuration management for the crawler.
"""

import re
import yaml
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from dataclasses import dataclass, field, fields

from ..errors import ConfigurationError


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 6.1; WOW64) AppleWebKit/537.11 "
    "(KHTML, like Gecko) Chrome/23.0.1271.97 Safari/537.11"
)

_TUPLE_FIELDS = ('escape_links', 'href_keywords', 'regular_filter_expressions', 'seeds_address')


@dataclass(frozen=True)
class CrawlSettings:
    """Settings for one crawl run. Read-only once the crawl starts."""
    seeds_address: Tuple[str, ...] = ()
    thread_count: int = 1
    depth: int = 3
    lock_host: bool = True
    escape_links: Tuple[str, ...] = ()
    href_keywords: Tuple[str, ...] = ()
    regular_filter_expressions: Tuple[str, ...] = ()
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = 15.0
    keep_cookie: bool = True
    auto_speed_limit: bool = False
    speed_limit_range: Tuple[float, float] = (1.0, 5.0)
    idle_backoff: float = 2.0
    dedup_links: bool = True
    filter_capacity: int = 200000
    max_content_bytes: int = 10 * 1024 * 1024

    def __post_init__(self):
        # YAML and callers hand us lists; keep the instance immutable
        for name in _TUPLE_FIELDS:
            value = getattr(self, name)
            if value is None:
                value = ()
            elif isinstance(value, str):
                value = (value,)
            object.__setattr__(self, name, tuple(value))
        object.__setattr__(self, 'speed_limit_range', tuple(self.speed_limit_range))
        self.validate()

    def validate(self):
        """Validate setting values."""
        if self.thread_count < 1:
            raise ConfigurationError("thread_count must be at least 1")

        if self.depth < 0:
            raise ConfigurationError("depth must be non-negative (0 means unbounded)")

        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive")

        if self.idle_backoff < 0:
            raise ConfigurationError("idle_backoff must be non-negative")

        if len(self.speed_limit_range) != 2 or not 0 <= self.speed_limit_range[0] <= self.speed_limit_range[1]:
            raise ConfigurationError("speed_limit_range must be a (min, max) pair with 0 <= min <= max")

        if self.filter_capacity < 1:
            raise ConfigurationError("filter_capacity must be at least 1")

        if self.max_content_bytes < 1:
            raise ConfigurationError("max_content_bytes must be at least 1")

        for pattern in self.regular_filter_expressions:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ConfigurationError(f"Invalid regular filter expression {pattern!r}: {e}") from e

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'CrawlSettings':
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown crawler settings: {', '.join(sorted(unknown))}")
        return cls(**data)


@dataclass
class StorageConfig:
    """Configuration for the discovered-link sink."""
    type: str = 'console'
    file: str = 'links.txt'
    max_link_count: int = 200000


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = 'INFO'
    file: str = 'logs/crawler.log'
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    json: bool = False


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    prometheus_port: int = 8000
    metrics_enabled: bool = False


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlSettings
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = Path(config_path)
        self._config: Optional[Config] = None

    def load_config(self) -> Config:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r', encoding='utf-8') as file:
            try:
                config_data = yaml.safe_load(file) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {self.config_path}")

        try:
            self._config = Config(
                crawler=CrawlSettings.from_dict(config_data.get('crawler')),
                storage=StorageConfig(**(config_data.get('storage') or {})),
                logging=LoggingConfig(**(config_data.get('logging') or {})),
                monitoring=MonitoringConfig(**(config_data.get('monitoring') or {})),
            )
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration section: {e}") from e

        self._validate_config()
        return self._config

    def _validate_config(self):
        """Validate cross-section configuration values."""
        if not self._config:
            raise ConfigurationError("Configuration not loaded")

        if not self._config.crawler.seeds_address:
            raise ConfigurationError("At least one seed address must be provided")

        if self._config.storage.type not in ('console', 'file'):
            raise ConfigurationError("Storage type must be 'console' or 'file'")

        if self._config.storage.max_link_count < 1:
            raise ConfigurationError("max_link_count must be at least 1")

        logging.getLogger(__name__).info("Configuration validation passed")


def load_config(config_path: str = "config.yaml") -> Config:
    """Load configuration from file."""
    return ConfigManager(config_path).load_config()
