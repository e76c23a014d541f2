# src/scheduler/session_scheduler.py
# Cron-driven crawl sessions
# ==========================

"""
Timer-based trigger for crawl sessions.

Each ``ScheduledCrawl`` becomes one APScheduler job with a crontab trigger.
When it fires, the scheduler asks the session runner for a new session with
the schedule's parameters and books the outcome on the schedule (run
counters, last and next run). A run that finds another session still in
progress is booked as an unsuccessful, skipped run; the scheduler keeps
going.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from pydantic import BaseModel, Field, field_validator

from config.settings import SCHEDULER_CONFIG, SESSION_CONFIG, TIMEZONE
from src.errors import SessionAlreadyRunning
from src.pipeline.session import CrawlSessionRunner, SessionParams
from src.utils.datetime_utils import resolve_timezone, utc_now
from src.utils.logger import StructuredLogMixin, get_logger


def validate_cron_expression(expression: str) -> bool:
    """True for a valid five-field crontab expression."""
    try:
        CronTrigger.from_crontab(expression)
    except (ValueError, TypeError):
        return False
    return True


def calculate_next_run_time(
    expression: str, now: Optional[datetime] = None, timezone_name: Optional[str] = None
) -> Optional[datetime]:
    trigger = CronTrigger.from_crontab(
        expression, timezone=resolve_timezone(timezone_name or TIMEZONE)
    )
    return trigger.get_next_fire_time(None, now or utc_now())


class ScheduledCrawl(BaseModel):
    """One recurring crawl and its run history."""

    id: str = Field(min_length=1)
    name: str = ""
    cron_expression: str
    target_languages: List[str] = Field(default_factory=lambda: ["zh", "en"])
    articles_per_language: int = Field(default=50, ge=1, le=500)
    quality_threshold: Optional[int] = Field(default=None, ge=0, le=100)
    only_today_news: bool = True
    enable_polishing: bool = True
    is_active: bool = True
    total_runs: int = 0
    successful_runs: int = 0
    last_run_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = None
    last_status: Optional[str] = None

    @field_validator("cron_expression")
    @classmethod
    def _check_cron(cls, value: str) -> str:
        value = value.strip()
        if not validate_cron_expression(value):
            raise ValueError(f"invalid cron expression: {value!r}")
        return value

    def to_session_params(self) -> SessionParams:
        return SessionParams(
            target_languages=self.target_languages,
            articles_per_language=self.articles_per_language,
            only_today_news=self.only_today_news,
            enable_polishing=self.enable_polishing,
            min_quality_score=self.quality_threshold,
        )


def default_schedule(
    scheduler_config: Optional[Mapping[str, Any]] = None,
    session_config: Optional[Mapping[str, Any]] = None,
) -> ScheduledCrawl:
    """The schedule described by the ``scheduler`` and ``session`` config sections."""
    sched = scheduler_config or SCHEDULER_CONFIG
    session = session_config or SESSION_CONFIG
    return ScheduledCrawl(
        id="default",
        name="Daily crawl",
        cron_expression=sched["cron_expression"],
        target_languages=session["target_languages"],
        articles_per_language=session["articles_per_language"],
        only_today_news=session["only_today_news"],
        enable_polishing=session["enable_polishing"],
    )


class SessionScheduler(StructuredLogMixin):
    """Keeps ``ScheduledCrawl`` entries registered with an ``AsyncIOScheduler``."""

    def __init__(
        self,
        runner: CrawlSessionRunner,
        *,
        scheduler: Optional[AsyncIOScheduler] = None,
        misfire_grace_seconds: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.runner = runner
        self.timezone = resolve_timezone(TIMEZONE)
        self.scheduler = scheduler or AsyncIOScheduler(timezone=self.timezone)
        self.misfire_grace_seconds = int(
            misfire_grace_seconds
            if misfire_grace_seconds is not None
            else SCHEDULER_CONFIG.get("misfire_grace_seconds", 300)
        )
        self._clock = clock or utc_now
        self.crawls: Dict[str, ScheduledCrawl] = {}
        self.module_logger = get_logger().create_module_logger("scheduler")
        self._log_context: Dict[str, Any] = {}

    @property
    def running(self) -> bool:
        return bool(self.scheduler.running)

    def add_crawl(self, crawl: ScheduledCrawl) -> ScheduledCrawl:
        crawl = crawl.model_copy(
            update={"next_run_at": calculate_next_run_time(crawl.cron_expression, self._clock())}
        )
        self.crawls[crawl.id] = crawl
        if crawl.is_active:
            self.scheduler.add_job(
                self.run_scheduled,
                CronTrigger.from_crontab(crawl.cron_expression, timezone=self.timezone),
                args=[crawl.id],
                id=crawl.id,
                name=crawl.name or crawl.id,
                replace_existing=True,
                coalesce=True,
                max_instances=1,
                misfire_grace_time=self.misfire_grace_seconds,
            )
        self._emit_log(
            "info",
            "scheduler.crawl_added",
            details={
                "id": crawl.id,
                "cron": crawl.cron_expression,
                "active": crawl.is_active,
                "next_run_at": crawl.next_run_at.isoformat() if crawl.next_run_at else None,
            },
        )
        return crawl

    def remove_crawl(self, crawl_id: str) -> None:
        self.crawls.pop(crawl_id, None)
        if self.scheduler.get_job(crawl_id) is not None:
            self.scheduler.remove_job(crawl_id)

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            self._emit_log("info", "scheduler.started", details={"jobs": len(self.crawls)})

    def shutdown(self, wait: bool = False) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            self._emit_log("info", "scheduler.stopped")

    async def run_scheduled(self, crawl_id: str) -> bool:
        """Job body: run one session for ``crawl_id`` and record the outcome."""
        crawl = self.crawls.get(crawl_id)
        if crawl is None:
            self._emit_log("warning", "scheduler.unknown_crawl", details={"id": crawl_id})
            return False

        status = "failed"
        try:
            report = await self.runner.start(crawl.to_session_params())
        except SessionAlreadyRunning as exc:
            status = "skipped"
            self._emit_log(
                "warning",
                "scheduler.run_skipped",
                details={"id": crawl_id, "running_session": exc.session_id},
            )
        else:
            status = report.status
            self._emit_log(
                "info" if report.succeeded else "warning",
                "scheduler.run_finished",
                session_id=report.session_id,
                details={"id": crawl_id, "status": report.status, "totals": report.totals},
            )
        success = status == "completed"
        self.record_execution(crawl_id, success, status=status)
        return success

    def record_execution(
        self, crawl_id: str, success: bool, *, status: Optional[str] = None
    ) -> Optional[ScheduledCrawl]:
        crawl = self.crawls.get(crawl_id)
        if crawl is None:
            return None
        now = self._clock()
        updated = crawl.model_copy(
            update={
                "total_runs": crawl.total_runs + 1,
                "successful_runs": crawl.successful_runs + (1 if success else 0),
                "last_run_at": now,
                "last_status": status or ("completed" if success else "failed"),
                "next_run_at": calculate_next_run_time(crawl.cron_expression, now),
            }
        )
        self.crawls[crawl_id] = updated
        return updated


__all__ = [
    "ScheduledCrawl",
    "SessionScheduler",
    "calculate_next_run_time",
    "default_schedule",
    "validate_cron_expression",
]
