"""Project configuration facade backed by newsdesk.config_manager."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from newsdesk.config_manager import Config, ConfigError, load_config

CONFIG: Config = load_config()

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = CONFIG.paths.data_dir
DATA_DIR.mkdir(parents=True, exist_ok=True)

ENVIRONMENT = CONFIG.app.environment
DEBUG = CONFIG.app.debug and ENVIRONMENT != "production"
TIMEZONE = CONFIG.app.timezone
IS_PRODUCTION = ENVIRONMENT == "production"

# the storage layer keys backends by "type"
DATABASE_CONFIG: Dict[str, Any] = CONFIG.database.model_dump(mode="python")
DATABASE_CONFIG["type"] = DATABASE_CONFIG.pop("driver")

COLLECTION_CONFIG: Dict[str, Any] = CONFIG.collection.model_dump(mode="python")

RATE_LIMITING_CONFIG: Dict[str, Any] = CONFIG.rate_limiting.model_dump(mode="python")
QUALITY_CONFIG: Dict[str, Any] = CONFIG.quality.model_dump(mode="python")
DEDUP_CONFIG: Dict[str, Any] = CONFIG.dedup.model_dump(mode="python")
PROGRESS_CONFIG: Dict[str, Any] = CONFIG.progress.model_dump(mode="python")
SESSION_CONFIG: Dict[str, Any] = CONFIG.session.model_dump(mode="python")
ENRICHMENT_CONFIG: Dict[str, Any] = CONFIG.enrichment.model_dump(mode="python")
SCHEDULER_CONFIG: Dict[str, Any] = CONFIG.scheduler.model_dump(mode="python")

LOGGING_CONFIG: Dict[str, Any] = {
    "level": CONFIG.logging.level,
    "file_path": str(CONFIG.logging.file_path) if CONFIG.logging.file_path else None,
    "max_file_size": f"{CONFIG.logging.max_file_size_mb} MB",
    "retention": f"{CONFIG.logging.retention_days} days",
}


def validate_config(config: Config | None = None) -> None:
    """Cross-section checks that a single pydantic model cannot express."""

    cfg = config or CONFIG
    if cfg.quality.default_min_quality_score > cfg.quality.high_quality_threshold:
        raise ConfigError(
            "quality.default_min_quality_score must not exceed quality.high_quality_threshold"
        )
    if cfg.collection.article_timeout_seconds > cfg.collection.request_timeout_seconds:
        raise ConfigError(
            "collection.article_timeout_seconds must not exceed request_timeout_seconds"
        )


__all__ = [
    "BASE_DIR",
    "CONFIG",
    "DATA_DIR",
    "ENVIRONMENT",
    "DEBUG",
    "TIMEZONE",
    "IS_PRODUCTION",
    "DATABASE_CONFIG",
    "COLLECTION_CONFIG",
    "RATE_LIMITING_CONFIG",
    "QUALITY_CONFIG",
    "DEDUP_CONFIG",
    "PROGRESS_CONFIG",
    "SESSION_CONFIG",
    "ENRICHMENT_CONFIG",
    "SCHEDULER_CONFIG",
    "LOGGING_CONFIG",
    "validate_config",
]
