"""
Configuration management for the SpiderRank search engine.
"""

import yaml
import logging
from pathlib import Path
from typing import Dict, List, Any
from dataclasses import dataclass, field


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (compatible; SpiderRank/1.0; +https://github.com/spiderrank)"
)


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    seed_urls: List[str] = field(default_factory=list)
    page_limit: int = 200
    concurrency: int = 10
    task_timeout: float = 15.0
    request_timeout: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT
    max_content_bytes: int = 10 * 1024 * 1024
    allowed_domains: List[str] = field(default_factory=list)
    blocked_domains: List[str] = field(default_factory=list)


@dataclass
class RankingConfig:
    """Configuration for authority and relevance scoring."""
    damping: float = 0.85
    max_iterations: int = 100
    convergence_threshold: float = 1e-4
    fallback_authority: float = 0.1


@dataclass
class StorageConfig:
    """Configuration for the index store."""
    type: str = "file"
    file: Dict[str, Any] = field(default_factory=lambda: {"data_directory": "data"})
    redis: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    file: str = "logs/spiderrank.log"
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
    ranking: RankingConfig = field(default_factory=RankingConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


STORAGE_TYPES = ('file', 'redis')


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = Path(config_path)

    def load_config(self) -> Config:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r') as file:
            config_data = yaml.safe_load(file) or {}

        config = build_config(config_data)
        validate_config(config)
        return config


def build_config(config_data: Dict[str, Any]) -> Config:
    """Map a parsed YAML document onto the config dataclasses.

    Sections that are missing fall back to their defaults; unknown keys inside
    a section raise ``TypeError`` from the dataclass constructor.
    """
    return Config(
        crawler=CrawlerConfig(**(config_data.get('crawler') or {})),
        ranking=RankingConfig(**(config_data.get('ranking') or {})),
        storage=StorageConfig(**(config_data.get('storage') or {})),
        logging=LoggingConfig(**(config_data.get('logging') or {})),
        monitoring=MonitoringConfig(**(config_data.get('monitoring') or {})),
    )


def validate_config(config: Config, require_seeds: bool = False):
    """Validate configuration values."""
    crawler = config.crawler

    if require_seeds and not crawler.seed_urls:
        raise ValueError("At least one seed URL must be provided")

    # Validate numeric values
    if crawler.page_limit < 1:
        raise ValueError("page_limit must be at least 1")

    if crawler.concurrency < 1:
        raise ValueError("concurrency must be at least 1")

    if crawler.task_timeout <= 0:
        raise ValueError("task_timeout must be positive")

    if not 0.0 < config.ranking.damping < 1.0:
        raise ValueError("damping must be between 0 and 1")

    if config.ranking.max_iterations < 1:
        raise ValueError("max_iterations must be at least 1")

    # Validate storage type
    if config.storage.type.lower() not in STORAGE_TYPES:
        raise ValueError(f"Storage type must be one of {', '.join(STORAGE_TYPES)}")

    logging.getLogger(__name__).debug("Configuration validation passed")


def load_config(config_path: str = "config.yaml") -> Config:
    """Load configuration from file."""
    return ConfigManager(config_path).load_config()
