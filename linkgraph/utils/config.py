"""
Configuration management for the link graph crawler.
"""

import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass
from urllib.parse import urlsplit


HTTP_ERROR_POLICIES = ('except_404', 'all')


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    seed_url: str
    scope_root: Optional[str] = None
    store_sub_pages: bool = True
    store_full_document: bool = False
    parallelism: int = 4
    max_rounds: int = 1000
    request_timeout: float = 5.0
    user_agent: str = 'linkgraph-crawler/1.0'
    respect_robots_txt: bool = False
    blacklist_file: str = 'blacklist.txt'
    http_error_policy: str = 'except_404'


@dataclass
class StoreConfig:
    """Configuration for the remote wide-column store."""
    endpoint: str
    main_table: str = 'pages'
    queue_table: str = 'queue'
    write_batch_size: int = 5000
    request_timeout: float = 30.0


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
    metrics_enabled: bool = False
    prometheus_port: int = 8000


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig
    store: StoreConfig
    logging: LoggingConfig
    monitoring: MonitoringConfig


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = Path(config_path)
        self._config: Optional[Config] = None

    def load_config(self) -> Config:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r') as file:
            config_data = yaml.safe_load(file) or {}

        self._config = self.from_dict(config_data)
        return self._config

    def from_dict(self, config_data: Dict[str, Any]) -> Config:
        """Build and validate a configuration from parsed YAML data."""
        if 'crawler' not in config_data or 'store' not in config_data:
            raise ValueError("Configuration requires 'crawler' and 'store' sections")

        try:
            self._config = Config(
                crawler=CrawlerConfig(**config_data['crawler']),
                store=StoreConfig(**config_data['store']),
                logging=LoggingConfig(**(config_data.get('logging') or {})),
                monitoring=MonitoringConfig(**(config_data.get('monitoring') or {}))
            )
        except TypeError as e:
            raise ValueError(f"Invalid configuration: {e}") from e

        self._validate_config()
        return self._config

    def _validate_config(self):
        """Validate configuration values."""
        if not self._config:
            raise ValueError("Configuration not loaded")

        crawler = self._config.crawler

        if not crawler.seed_url or not _has_host(crawler.seed_url):
            raise ValueError(f"seed_url must be an absolute URL: {crawler.seed_url!r}")

        if crawler.scope_root is not None and not _has_host(crawler.scope_root):
            raise ValueError(f"scope_root must be an absolute URL: {crawler.scope_root!r}")

        # Validate numeric values
        if crawler.parallelism < 1:
            raise ValueError("parallelism must be at least 1")

        if crawler.max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")

        if crawler.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")

        if crawler.http_error_policy not in HTTP_ERROR_POLICIES:
            raise ValueError(f"http_error_policy must be one of {HTTP_ERROR_POLICIES}")

        store = self._config.store

        if not store.endpoint:
            raise ValueError("store endpoint must be provided")

        if store.write_batch_size < 1:
            raise ValueError("write_batch_size must be at least 1")

        if store.request_timeout <= 0:
            raise ValueError("store request_timeout must be positive")

        if not isinstance(logging.getLevelName(self._config.logging.level.upper()), int):
            raise ValueError(f"Unknown logging level: {self._config.logging.level!r}")

        logging.info("Configuration validation passed")

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ValueError("Configuration not loaded. Call load_config() first.")
        return self._config


def _has_host(url: str) -> bool:
    try:
        return bool(urlsplit(url).hostname)
    except ValueError:
        return False


# Global config manager instance
config_manager = ConfigManager()


def get_config() -> Config:
    """Get the global configuration instance."""
    return config_manager.config


def load_config(config_path: str = "config.yaml") -> Config:
    """Load configuration from file."""
    global config_manager
    config_manager = ConfigManager(config_path)
    return config_manager.load_config()
