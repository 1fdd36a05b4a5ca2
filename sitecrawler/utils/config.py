"""
Configuration management for the sitemap crawler.
"""

import yaml
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse
from dataclasses import dataclass, field, replace


@dataclass(frozen=True)
class CrawlOptions:
    """Options handed to the crawl engine at start."""
    concurrency: int
    timeout: float
    frontier_capacity: int = 10000
    work_queue_size: Optional[int] = None
    user_agent: str = "sitecrawler/1.0"
    report_interval: float = 30.0

    def __post_init__(self):
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.frontier_capacity < 1:
            raise ValueError("frontier_capacity must be at least 1")
        if self.work_queue_size is not None and self.work_queue_size < 1:
            raise ValueError("work_queue_size must be at least 1")


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    sitemap_url: Optional[str] = None
    concurrency: int = 8
    timeout: float = 30.0
    frontier_capacity: int = 10000
    work_queue_size: Optional[int] = None
    user_agent: str = "sitecrawler/1.0"
    report_interval: float = 30.0


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    file: str = "logs/crawler.log"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    json: bool = False


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    prometheus_port: int = 8000
    metrics_enabled: bool = False


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    def crawl_options(self) -> CrawlOptions:
        """Build the engine options from the crawler section."""
        return CrawlOptions(
            concurrency=self.crawler.concurrency,
            timeout=self.crawler.timeout,
            frontier_capacity=self.crawler.frontier_capacity,
            work_queue_size=self.crawler.work_queue_size,
            user_agent=self.crawler.user_agent,
            report_interval=self.crawler.report_interval
        )

    def with_overrides(self, **overrides: Any) -> 'Config':
        """Return a copy with crawler settings replaced, ignoring None values."""
        values = {key: value for key, value in overrides.items() if value is not None}
        if not values:
            return self
        config = replace(self, crawler=replace(self.crawler, **values))
        validate_config(config)
        return config


def validate_config(config: Config, require_sitemap: bool = False):
    """Validate configuration values."""
    crawler = config.crawler

    if crawler.sitemap_url is not None or require_sitemap:
        parsed = urlparse(crawler.sitemap_url or '')
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValueError(f"sitemap_url must be an absolute http(s) URL, got {crawler.sitemap_url!r}")

    if crawler.concurrency < 1:
        raise ValueError("concurrency must be at least 1")

    if crawler.timeout <= 0:
        raise ValueError("timeout must be positive")

    if crawler.frontier_capacity < 1:
        raise ValueError("frontier_capacity must be at least 1")

    if crawler.work_queue_size is not None and crawler.work_queue_size < 1:
        raise ValueError("work_queue_size must be at least 1")

    if crawler.report_interval < 0:
        raise ValueError("report_interval must be non-negative")

    if not hasattr(logging, config.logging.level.upper()):
        raise ValueError(f"Unknown log level: {config.logging.level}")


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
            config_data: Dict[str, Any] = yaml.safe_load(file) or {}

        # Parse configuration sections
        crawler_config = CrawlerConfig(**(config_data.get('crawler') or {}))
        logging_config = LoggingConfig(**(config_data.get('logging') or {}))
        monitoring_config = MonitoringConfig(**(config_data.get('monitoring') or {}))

        self._config = Config(
            crawler=crawler_config,
            logging=logging_config,
            monitoring=monitoring_config
        )

        validate_config(self._config)
        logging.getLogger(__name__).debug("Configuration validation passed")
        return self._config

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ValueError("Configuration not loaded. Call load_config() first.")
        return self._config


# Global config manager instance
config_manager = ConfigManager()


def load_config(config_path: str = "config.yaml") -> Config:
    """Load configuration from file."""
    global config_manager
    config_manager = ConfigManager(config_path)
    return config_manager.load_config()
