"""Project configuration facade backed by newsharvest.config_manager."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from newsharvest.config_manager import Config, ConfigError, load_config

CONFIG: Config = load_config()

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = CONFIG.paths.data_dir
LOGS_DIR = CONFIG.paths.logs_dir

ENVIRONMENT = CONFIG.app.environment
DEBUG = CONFIG.app.debug
IS_PRODUCTION = ENVIRONMENT == "production"

HTTP_CONFIG: Dict[str, Any] = CONFIG.http.model_dump(mode="python")
HTTP_CONFIG["request_timeout"] = HTTP_CONFIG["request_timeout_seconds"]

RATE_LIMITING_CONFIG: Dict[str, Any] = CONFIG.rate_limiting.model_dump(mode="python")
RATE_LIMITING_CONFIG["domain_default_delay"] = RATE_LIMITING_CONFIG[
    "domain_default_delay_seconds"
]

RENDER_CONFIG: Dict[str, Any] = CONFIG.render.model_dump(mode="python")
FEED_CONFIG: Dict[str, Any] = CONFIG.feed.model_dump(mode="python")
EXTRACTION_CONFIG: Dict[str, Any] = CONFIG.extraction.model_dump(mode="python")
CRAWLER_CONFIG: Dict[str, Any] = CONFIG.crawler.model_dump(mode="python")

SOCIAL_CONFIG: Dict[str, Any] = CONFIG.social.model_dump(mode="python")

LOGGING_CONFIG: Dict[str, Any] = {
    "level": CONFIG.logging.level,
    "file_path": str(CONFIG.logging.file_path),
    "max_file_size": f"{CONFIG.logging.max_file_size_mb} MB",
    "retention": f"{CONFIG.logging.retention_days} days",
}


def validate_config(config: Config | None = None) -> None:
    """Execute domain specific consistency checks."""

    cfg = config or CONFIG
    if cfg.rate_limiting.feed_delay_seconds < 1.0:
        raise ConfigError("rate_limiting.feed_delay_seconds must be at least 1s")
    if cfg.rate_limiting.article_delay_min_seconds < 2.0:
        raise ConfigError("rate_limiting.article_delay_min_seconds must be at least 2s")
    if cfg.feed.summary_max_chars > 300:
        raise ConfigError("feed.summary_max_chars cannot exceed 300")
    if not cfg.social.default_instances:
        raise ConfigError("social.default_instances must not be empty")
    if cfg.render.block_resources and "document" not in cfg.render.allowed_resource_types:
        raise ConfigError("render.allowed_resource_types must include 'document'")


__all__ = [
    "BASE_DIR",
    "CONFIG",
    "DATA_DIR",
    "LOGS_DIR",
    "ENVIRONMENT",
    "DEBUG",
    "IS_PRODUCTION",
    "HTTP_CONFIG",
    "RATE_LIMITING_CONFIG",
    "RENDER_CONFIG",
    "FEED_CONFIG",
    "EXTRACTION_CONFIG",
    "SOCIAL_CONFIG",
    "CRAWLER_CONFIG",
    "LOGGING_CONFIG",
    "validate_config",
]
