# src/utils/logger.py
# Logging system for the Newsdesk crawler
# =======================================

"""
Central loguru configuration for the crawler.

Every component logs through a module logger obtained from
``PipelineLogger.create_module_logger`` and emits structured dict payloads
(``{"event": "crawl.job.completed", "source_id": ..., "details": {...}}``), so
the console stays readable while the rotating file sink keeps everything
needed to reconstruct what a session did.
"""

import sys
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from config.settings import DEBUG, LOGGING_CONFIG


class PipelineLogger:
    """
    Configures loguru sinks once per process.

    Console output is coloured and verbose in debug mode and compact otherwise;
    the file sink rotates by size, keeps a bounded history and compresses old
    files.
    """

    def __init__(self) -> None:
        self.is_configured = False
        self.log_file_path: Optional[Path] = None

    def configure_logging(self, config: Optional[Dict[str, Any]] = None) -> None:
        if self.is_configured:
            logger.debug("Logger already configured, skipping reconfiguration")
            return

        config = config or LOGGING_CONFIG
        logger.remove()
        self._configure_console_handler(config)
        if config.get("file_path"):
            self._configure_file_handler(config)

        self.is_configured = True
        logger.debug(f"Logging configured: {config}")

    def _configure_console_handler(self, config: Dict[str, Any]) -> None:
        if DEBUG:
            console_format = (
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{extra[module]}</cyan> | "
                "<level>{message}</level>"
            )
            console_level = "DEBUG"
        else:
            console_format = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}"
            console_level = config.get("level", "INFO")

        logger.configure(extra={"module": "-"})
        logger.add(
            sys.stderr,
            format=console_format,
            level=console_level,
            colorize=True,
            backtrace=DEBUG,
            diagnose=DEBUG,
        )

    def _configure_file_handler(self, config: Dict[str, Any]) -> None:
        self.log_file_path = Path(config["file_path"])
        self.log_file_path.parent.mkdir(parents=True, exist_ok=True)

        file_format = (
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{process.id: <6} | "
            "{extra[module]} | "
            "{message}"
        )
        logger.add(
            str(self.log_file_path),
            format=file_format,
            level=config.get("level", "INFO"),
            rotation=config.get("max_file_size", "10 MB"),
            retention=config.get("retention", "14 days"),
            compression="gz",
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )

    def create_module_logger(self, module_name: str) -> Any:
        """Return a loguru logger bound to ``module_name``."""
        if not self.is_configured:
            self.configure_logging()
        return logger.bind(module=module_name)

    def log_system_startup(
        self, version: str, config_summary: Optional[Dict[str, Any]] = None
    ) -> None:
        logger.info("=" * 60)
        logger.info(f"NEWSDESK CRAWLER {version} starting")
        logger.info(f"Debug mode: {DEBUG}")
        for key, value in (config_summary or {}).items():
            logger.info(f"  {key}: {value}")
        if self.log_file_path:
            logger.info(f"Log file: {self.log_file_path}")
        logger.info("=" * 60)


class SessionLogger:
    """
    Human-oriented log lines for one crawl session.

    Components log structured events; this class writes the short narrative
    an operator reads in the console: start, one line per source, summary.
    """

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self.logger = logger.bind(module="session", session_id=session_id)

    def log_session_start(self, sources_count: int, regions: int) -> None:
        self.logger.info(
            f"Session {self.session_id} started: {sources_count} sources across {regions} regions"
        )

    def log_source_processing(
        self, source_id: str, status: str, stats: Optional[Dict[str, Any]] = None
    ) -> None:
        stats = stats or {}
        if status == "completed":
            self.logger.info(
                f"  {source_id}: {stats.get('accepted', 0)}/{stats.get('found', 0)} accepted"
                f" (dup={stats.get('duplicate', 0)}, filtered={stats.get('filtered', 0)},"
                f" failed={stats.get('failed', 0)})"
            )
        elif status == "failed":
            self.logger.warning(
                f"  {source_id}: failed - {stats.get('error', 'unknown error')}"
            )
        else:
            self.logger.info(f"  {source_id}: {status}")

    def log_session_summary(self, summary: Dict[str, Any]) -> None:
        self.logger.info(f"Session {self.session_id} finished: {summary.get('status')}")
        self.logger.info(f"  Sources processed: {summary.get('sources_processed', 0)}")
        self.logger.info(f"  Articles found: {summary.get('articles_found', 0)}")
        self.logger.info(f"  Articles accepted: {summary.get('articles_processed', 0)}")
        self.logger.info(f"  Articles enriched: {summary.get('articles_polished', 0)}")
        self.logger.info(f"  Duration: {summary.get('duration_seconds', 0):.1f}s")


# Global configurator
# ===================
_logger_instance: Optional[PipelineLogger] = None


def get_logger() -> PipelineLogger:
    """Return the process-wide configurator, creating it on first use."""
    global _logger_instance
    if _logger_instance is None:
        _logger_instance = PipelineLogger()
        _logger_instance.configure_logging()
    return _logger_instance


def setup_logging(config: Optional[Dict[str, Any]] = None) -> PipelineLogger:
    logger_instance = get_logger()
    if config:
        logger_instance.is_configured = False
        logger_instance.configure_logging(config)
    return logger_instance


class StructuredLogMixin:
    """
    Shared ``_emit_log`` helper for pipeline components.

    Subclasses set ``module_logger`` and may set ``_log_context`` with
    correlation fields (session id, region) that are merged into every payload.
    """

    module_logger: Any = None
    _log_context: Dict[str, Any]

    def _build_log_payload(
        self,
        event: str,
        *,
        source_id: Optional[str] = None,
        latency: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
        **fields: Any,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"event": event}
        payload.update(getattr(self, "_log_context", None) or {})
        payload.update(fields)
        payload["source_id"] = source_id
        payload["latency"] = round(latency, 4) if latency is not None else None
        if details:
            payload["details"] = details
        return {key: value for key, value in payload.items() if value is not None}

    def _emit_log(
        self,
        level: str,
        event: str,
        *,
        source_id: Optional[str] = None,
        latency: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
        **fields: Any,
    ) -> None:
        payload = self._build_log_payload(
            event, source_id=source_id, latency=latency, details=details, **fields
        )
        target = self.module_logger or get_logger().create_module_logger(
            type(self).__name__
        )
        log_method = getattr(target, level, None)
        if callable(log_method):
            log_method(payload)
        else:  # pragma: no cover - unknown level names fall back to info
            target.info(payload)
