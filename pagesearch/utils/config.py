"""
Configuration management for the search indexer.
"""

import yaml
import logging
from pathlib import Path
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field, fields


class ConfigError(ValueError):
    """Raised when the configuration file is invalid."""
    pass


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    user_agent: str = "pagesearch personal search"
    parallelism: int = 3
    politeness_delay: float = 0.2
    request_timeout: float = 30
    max_redirects: int = 10
    max_content_size: int = 10 * 1024 * 1024
    respect_robots_txt: bool = True
    recrawl_interval: float = 7 * 24 * 60 * 60


@dataclass
class ConverterConfig:
    """Commands used to turn raw documents into plain text."""
    html_command: List[str] = field(
        default_factory=lambda: ["pandoc", "--quiet", "--sandbox", "-f", "html", "-t", "plain"]
    )
    pdf_command: List[str] = field(default_factory=lambda: ["pdftotext", "-", "-"])
    timeout: float = 60


@dataclass
class DatabaseConfig:
    """Configuration for the index database."""
    path: str = "index.db"


@dataclass
class ServerConfig:
    """Configuration for the search HTTP server."""
    host: str = "0.0.0.0"
    port: int = 8000


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    file: str = "logs/pagesearch.log"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    json: bool = False


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    metrics_enabled: bool = True
    prometheus_port: int = 9100


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    converters: ConverterConfig = field(default_factory=ConverterConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


_SECTIONS = {
    'crawler': CrawlerConfig,
    'converters': ConverterConfig,
    'database': DatabaseConfig,
    'server': ServerConfig,
    'logging': LoggingConfig,
    'monitoring': MonitoringConfig,
}


def _build_section(name: str, section_cls, data: Optional[Dict[str, Any]]):
    """Build one config section, rejecting unknown keys."""
    if data is None:
        return section_cls()
    if not isinstance(data, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")

    known = {f.name for f in fields(section_cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown keys in section '{name}': {', '.join(sorted(unknown))}")
    return section_cls(**data)


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
            try:
                config_data = yaml.safe_load(file) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {self.config_path}: {e}")

        self._config = config_from_dict(config_data)
        return self._config

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ValueError("Configuration not loaded. Call load_config() first.")
        return self._config


def config_from_dict(config_data: Dict[str, Any]) -> Config:
    """Build and validate a Config from already-parsed data."""
    if not isinstance(config_data, dict):
        raise ConfigError("Configuration root must be a mapping")

    unknown = set(config_data) - set(_SECTIONS)
    if unknown:
        raise ConfigError(f"Unknown configuration sections: {', '.join(sorted(unknown))}")

    sections = {
        name: _build_section(name, section_cls, config_data.get(name))
        for name, section_cls in _SECTIONS.items()
    }
    config = Config(**sections)
    validate_config(config)
    return config


def validate_config(config: Config):
    """Validate configuration values."""
    crawler = config.crawler
    if crawler.parallelism < 1:
        raise ConfigError("parallelism must be at least 1")

    if crawler.politeness_delay < 0:
        raise ConfigError("politeness_delay must be non-negative")

    if crawler.request_timeout <= 0:
        raise ConfigError("request_timeout must be positive")

    if crawler.max_redirects < 0:
        raise ConfigError("max_redirects must be non-negative")

    if crawler.max_content_size <= 0:
        raise ConfigError("max_content_size must be positive")

    if crawler.recrawl_interval < 0:
        raise ConfigError("recrawl_interval must be non-negative")

    for name in ('html_command', 'pdf_command'):
        command = getattr(config.converters, name)
        if not isinstance(command, list) or not command:
            raise ConfigError(f"converters.{name} must be a non-empty list")

    if not 1 <= config.server.port <= 65535:
        raise ConfigError("server port must be between 1 and 65535")

    if not isinstance(logging.getLevelName(config.logging.level.upper()), int):
        raise ConfigError(f"Unknown logging level: {config.logging.level}")

    logging.getLogger(__name__).debug("Configuration validation passed")


def load_config(config_path: str = "config.yaml") -> Config:
    """Load configuration from file."""
    return ConfigManager(config_path).load_config()
