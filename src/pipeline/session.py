# src/pipeline/session.py
# Crawl session runner
# ====================

"""
Entry point for one end-to-end crawl session.

``CrawlSessionRunner.start`` is what the CLI, the HTTP trigger and the
scheduler all call. It decides which sources take part, refuses to start
while another live session owns the progress file, seeds the progress
record, runs the crawl phase through ``RegionCoordinator`` and the
enrichment phase through ``EnrichmentStage``, and always leaves the progress
record in a terminal state.

Per-source and per-item problems never reach the caller; they end up as
counters and region messages. A store-level failure ends the session as
``failed`` and is reported in the returned ``SessionReport``.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from config.settings import SESSION_CONFIG
from src.collectors.base_collector import build_http_client
from src.collectors.source_fetcher import SourceFetcher
from src.contracts.progress import SessionProgress
from src.contracts.source import Source
from src.dedup.detector import DuplicateDetector
from src.enrichment.polisher import Polisher, build_polisher
from src.enrichment.stage import EnrichmentStage
from src.errors import (
    ProgressStoreError,
    SessionAbort,
    SessionAlreadyRunning,
    SourceInactive,
    SourceNotFound,
)
from src.progress.store import ProgressStore
from src.scoring.quality_assessor import QualityAssessor
from src.storage.base import ArticleStore
from src.utils.datetime_utils import utc_now
from src.utils.logger import SessionLogger, StructuredLogMixin, get_logger

from .crawl_job import CrawlJob, Fetcher
from .region_coordinator import RegionCoordinator, RegionKey, group_by_region


class SessionParams(BaseModel):
    """Session trigger parameters; accepts snake_case or camelCase keys."""

    source_id: Optional[str] = None
    target_languages: List[str] = Field(
        default_factory=lambda: list(SESSION_CONFIG.get("target_languages", ["zh", "en"]))
    )
    articles_per_language: int = Field(
        default_factory=lambda: int(SESSION_CONFIG.get("articles_per_language", 50)),
        ge=1,
        le=500,
    )
    only_today_news: bool = Field(
        default_factory=lambda: bool(SESSION_CONFIG.get("only_today_news", True))
    )
    enable_polishing: bool = Field(
        default_factory=lambda: bool(SESSION_CONFIG.get("enable_polishing", True))
    )
    min_quality_score: Optional[int] = Field(default=None, ge=0, le=100)

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )

    @field_validator("target_languages")
    @classmethod
    def _normalize_languages(cls, value: List[str]) -> List[str]:
        normalized = list(dict.fromkeys(item.strip().lower() for item in value if item.strip()))
        if not normalized:
            raise ValueError("target_languages must contain at least one language")
        return normalized


class RegionSummary(BaseModel):
    language: str
    region: str
    status: str
    articles_found: int = 0
    articles_processed: int = 0
    articles_polished: int = 0
    message: Optional[str] = None
    error: Optional[str] = None


class SessionReport(BaseModel):
    session_id: Optional[str]
    status: str
    regions: List[RegionSummary] = Field(default_factory=list)
    totals: Dict[str, int] = Field(default_factory=dict)
    duration_seconds: float = 0.0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "completed"


def is_session_live(
    progress: SessionProgress, now: datetime, stale_after_minutes: int
) -> bool:
    """True when ``progress`` is active and its heartbeat is recent."""
    if not progress.is_active:
        return False
    heartbeat = progress.updated_at or progress.start_time
    if heartbeat is None:
        return False
    if heartbeat.tzinfo is None:
        heartbeat = heartbeat.replace(tzinfo=now.tzinfo)
    return now - heartbeat < timedelta(minutes=stale_after_minutes)


class CrawlSessionRunner(StructuredLogMixin):
    """
    Builds and runs crawl sessions against one article store.

    The duplicate detector lives as long as the runner, so it is hydrated
    from the store once per process and then kept current by every session.
    """

    def __init__(
        self,
        store: ArticleStore,
        progress: Optional[ProgressStore] = None,
        *,
        polisher: Optional[Polisher] = None,
        assessor: Optional[QualityAssessor] = None,
        detector: Optional[DuplicateDetector] = None,
        fetcher_factory: Optional[Callable[[httpx.AsyncClient], Fetcher]] = None,
        client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
        stale_after_minutes: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.progress = progress or ProgressStore()
        self.polisher = polisher
        self.assessor = assessor or QualityAssessor()
        self.detector = detector or DuplicateDetector(store)
        self.fetcher_factory = fetcher_factory or SourceFetcher
        self.client_factory = client_factory or build_http_client
        self.stale_after_minutes = int(
            stale_after_minutes
            if stale_after_minutes is not None
            else SESSION_CONFIG.get("stale_after_minutes", 30)
        )
        self._clock = clock or utc_now
        self.module_logger = get_logger().create_module_logger("pipeline.session")
        self._log_context: Dict[str, Any] = {}

    # Preconditions
    # =============

    def ensure_not_running(self) -> SessionProgress:
        """Raise ``SessionAlreadyRunning`` if a live session owns the store."""
        current = self.progress.read()
        if is_session_live(current, self._clock(), self.stale_after_minutes):
            raise SessionAlreadyRunning(current.session_id or "unknown")
        return current

    def resolve_sources(self, params: SessionParams) -> List[Source]:
        if params.source_id:
            source = self.store.find_source_by_id(params.source_id)
            if source is None:
                raise SourceNotFound(params.source_id)
            if not source.is_active:
                raise SourceInactive(params.source_id)
            return [source]
        return self.store.list_active_sources()

    # Running
    # =======

    async def start(
        self,
        params: SessionParams,
        *,
        resume: bool = False,
        session_id: Optional[str] = None,
    ) -> SessionReport:
        """
        Run one session to completion.

        Raises ``SessionAlreadyRunning``, ``SourceNotFound`` or
        ``SourceInactive`` before anything is written; everything after that
        is reported through the returned ``SessionReport``. ``session_id``
        lets a caller announce the id before the session starts; it is
        ignored when an abandoned session is resumed.
        """
        previous = self.ensure_not_running()
        sources = self.resolve_sources(params)
        if params.source_id:
            groups = group_by_region(sources)
        else:
            groups = group_by_region(sources, params.target_languages)
        quota = params.articles_per_language

        processed: List[str] = []
        if resume and previous.is_active and previous.session_id:
            session_id = previous.session_id
            processed = sorted(self.progress.processed_sources_for(session_id))

        source_ids = [source.id for members in groups.values() for source in members]
        seeds: List[Tuple[str, str, int]] = [
            (language, region, quota) for language, region in groups.keys()
        ]
        session_id = self.progress.start_session(
            source_ids,
            seeds,
            target_languages=params.target_languages,
            articles_per_language=quota,
            session_id=session_id,
            processed_sources=[source_id for source_id in processed if source_id in source_ids],
        )
        self._log_context = {"session_id": session_id}
        session_logger = SessionLogger(session_id)
        session_logger.log_session_start(len(source_ids), len(groups))

        start = time.perf_counter()
        error: Optional[str] = None
        try:
            await self._run_phases(session_id, params, groups, quota, processed, session_logger)
            self.progress.finish_session("completed")
        except SessionAbort as exc:
            error = str(exc)
            self._fail(exc)
        except Exception as exc:
            error = f"{type(exc).__name__}: {exc}"
            self._fail(exc)

        report = self._build_report(self.progress.read(), time.perf_counter() - start, error)
        session_logger.log_session_summary(
            {
                "status": report.status,
                "sources_processed": report.totals.get("sources_processed", 0),
                "articles_found": report.totals.get("articles_found", 0),
                "articles_processed": report.totals.get("articles_processed", 0),
                "articles_polished": report.totals.get("articles_polished", 0),
                "duration_seconds": report.duration_seconds,
            }
        )
        return report

    async def _run_phases(
        self,
        session_id: str,
        params: SessionParams,
        groups: Dict[RegionKey, List[Source]],
        quota: int,
        processed: List[str],
        session_logger: SessionLogger,
    ) -> None:
        context = {"session_id": session_id}
        client = self.client_factory()
        polisher = self.polisher or build_polisher()
        try:
            job = CrawlJob(
                self.fetcher_factory(client),
                self.detector,
                self.assessor,
                only_today_news=params.only_today_news,
                default_min_quality=params.min_quality_score,
                log_context=context,
            )
            coordinator = RegionCoordinator(
                job,
                self.progress,
                store=self.store,
                session_logger=session_logger,
                log_context=context,
            )
            crawl = await coordinator.run(groups, quota, skip_sources=set(processed))

            self.progress.write(status="polishing", current_source=None)
            stage = EnrichmentStage(
                polisher,
                self.store,
                self.progress,
                target_languages=params.target_languages,
                enable_polishing=params.enable_polishing,
                log_context=context,
            )
            report = await stage.run(crawl.items_by_region())
            self._emit_log(
                "info",
                "session.enrichment.completed",
                details={
                    "completed": report.completed,
                    "failed": report.failed,
                    "pending": report.pending,
                },
            )
        finally:
            await client.aclose()
            if self.polisher is None and hasattr(polisher, "aclose"):
                await polisher.aclose()

    def _fail(self, exc: BaseException) -> None:
        self._emit_log(
            "error",
            "session.failed",
            details={"error": str(exc), "type": type(exc).__name__},
        )
        try:
            self.progress.finish_session("failed", error=str(exc))
        except ProgressStoreError as store_exc:
            self._emit_log(
                "error",
                "session.progress_unwritable",
                details={"error": str(store_exc)},
            )

    @staticmethod
    def _build_report(
        progress: SessionProgress, duration: float, error: Optional[str]
    ) -> SessionReport:
        regions = [
            RegionSummary(
                language=entry.language,
                region=entry.region,
                status=entry.status,
                articles_found=entry.articles_found,
                articles_processed=entry.articles_processed,
                articles_polished=entry.articles_polished,
                message=entry.message,
                error=entry.error,
            )
            for entry in progress.regions
        ]
        status = progress.status
        if error and status not in ("completed", "failed"):
            status = "failed"
        return SessionReport(
            session_id=progress.session_id,
            status=status,
            regions=regions,
            totals={
                "sources_total": progress.total_sources,
                "sources_processed": progress.completed_sources,
                "articles_found": progress.articles_found,
                "articles_processed": progress.articles_processed,
                "articles_polished": progress.articles_polished,
            },
            duration_seconds=round(duration, 3),
            error=error or progress.error,
        )


__all__ = [
    "CrawlSessionRunner",
    "RegionSummary",
    "SessionParams",
    "SessionReport",
    "is_session_live",
]
