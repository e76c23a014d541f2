# src/pipeline/region_coordinator.py
# Concurrent per-region crawl tracks
# ==================================

"""
Fans a session out into one crawl track per (language, region) pair.

Tracks run concurrently on the event loop; inside a track, sources are
crawled one after the other in catalogue order until the region's quota of
accepted articles is met or its sources run out. A failing source is written
into the region's progress and the track moves on: one bad feed never stops
its region, let alone the others.

The only failure that escapes is a progress store write error. It surfaces
as ``SessionAbort`` once every track has settled, and the session runner
then fails whatever regions did not finish.
"""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import (
    Any,
    Collection,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

from src.contracts.crawl import AcceptedItem, CrawlJobResult
from src.contracts.source import Source
from src.errors import FetchError, ProgressStoreError, SessionAbort
from src.progress.store import ProgressStore
from src.storage.base import ArticleStore
from src.utils.datetime_utils import utc_now
from src.utils.logger import SessionLogger, StructuredLogMixin, get_logger

from .crawl_job import CrawlJob

RegionKey = Tuple[str, str]

QUOTA_REACHED = "quota reached"
SOURCES_EXHAUSTED = "sources exhausted before quota"
NO_ARTICLES = "no articles found"


def group_by_region(
    sources: Iterable[Source], languages: Optional[Collection[str]] = None
) -> "OrderedDict[RegionKey, List[Source]]":
    """Group active sources by ``(language, country)``, keeping their order."""
    wanted = {language.lower() for language in languages} if languages else None
    groups: "OrderedDict[RegionKey, List[Source]]" = OrderedDict()
    for source in sources:
        if not source.is_active:
            continue
        if wanted is not None and source.language not in wanted:
            continue
        groups.setdefault(source.region_key, []).append(source)
    return groups


@dataclass
class TrackResult:
    key: RegionKey
    items: List[AcceptedItem] = field(default_factory=list)
    results: List[CrawlJobResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    message: str = NO_ARTICLES
    failed: bool = False


@dataclass
class CoordinatorResult:
    """Everything the crawl phase produced, in region order."""

    tracks: List[TrackResult] = field(default_factory=list)

    @property
    def items(self) -> List[AcceptedItem]:
        return [item for track in self.tracks for item in track.items]

    @property
    def errors(self) -> List[str]:
        return [error for track in self.tracks for error in track.errors]

    @property
    def job_results(self) -> List[CrawlJobResult]:
        return [result for track in self.tracks for result in track.results]

    def items_by_region(self) -> "OrderedDict[RegionKey, List[AcceptedItem]]":
        return OrderedDict((track.key, list(track.items)) for track in self.tracks)


class RegionCoordinator(StructuredLogMixin):
    """Runs the crawl phase of a session."""

    def __init__(
        self,
        job: CrawlJob,
        progress: ProgressStore,
        *,
        store: Optional[ArticleStore] = None,
        session_logger: Optional[SessionLogger] = None,
        log_context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.job = job
        self.progress = progress
        self.store = store
        self.session_logger = session_logger
        self.module_logger = get_logger().create_module_logger("pipeline.coordinator")
        self._log_context: Dict[str, Any] = dict(log_context or {})

    async def run(
        self,
        groups: Mapping[RegionKey, Sequence[Source]],
        quota: int,
        *,
        skip_sources: Collection[str] = (),
    ) -> CoordinatorResult:
        """
        Crawl every group concurrently and return the accepted items.

        ``skip_sources`` lists sources the current session already handled
        before a restart. Raises ``SessionAbort`` when progress could not be
        persisted.
        """
        start = time.perf_counter()
        self._emit_log(
            "info",
            "coordinator.start",
            details={"regions": len(groups), "quota": quota},
        )
        outcomes = await asyncio.gather(
            *(
                self._run_track(key, list(sources), quota, skip_sources)
                for key, sources in groups.items()
            ),
            return_exceptions=True,
        )

        result = CoordinatorResult()
        abort: Optional[BaseException] = None
        for key, outcome in zip(groups.keys(), outcomes):
            if isinstance(outcome, TrackResult):
                result.tracks.append(outcome)
            elif isinstance(outcome, Exception):
                abort = abort or outcome
                result.tracks.append(
                    TrackResult(key=key, errors=[str(outcome)], failed=True)
                )
            else:
                raise outcome

        self._emit_log(
            "info" if abort is None else "error",
            "coordinator.completed",
            latency=time.perf_counter() - start,
            details={
                "accepted": len(result.items),
                "errors": len(result.errors),
                "aborted": abort is not None,
            },
        )
        if abort is not None:
            raise SessionAbort(f"crawl phase aborted: {abort}") from abort
        return result

    async def _run_track(
        self,
        key: RegionKey,
        sources: List[Source],
        quota: int,
        skip_sources: Collection[str],
    ) -> TrackResult:
        language, region = key
        track = TrackResult(key=key)
        self.progress.update_region(
            language,
            region,
            status="crawling",
            quota=quota,
            total_sources=len(sources),
            start_time=utc_now(),
        )

        try:
            for source in sources:
                if len(track.items) >= quota:
                    break
                if source.id in skip_sources:
                    continue
                await self._crawl_source(track, source, quota)
        except ProgressStoreError:
            raise
        except Exception as exc:
            # Not a per-source failure: the track itself broke.
            track.failed = True
            track.errors.append(f"{type(exc).__name__}: {exc}")
            self._emit_log(
                "error",
                "coordinator.track.failed",
                region=f"{language}-{region}",
                details={"error": str(exc)},
            )
            self.progress.update_region(
                language,
                region,
                status="failed",
                error=str(exc),
                current_source=None,
                end_time=utc_now(),
            )
            return track

        if len(track.items) >= quota:
            track.message = QUOTA_REACHED
        elif track.items:
            track.message = SOURCES_EXHAUSTED
        else:
            track.message = NO_ARTICLES
        self.progress.update_region(
            language,
            region,
            status="completed",
            message=track.message,
            current_source=None,
            end_time=utc_now(),
        )
        self._emit_log(
            "info",
            "coordinator.track.completed",
            region=f"{language}-{region}",
            details={"accepted": len(track.items), "message": track.message},
        )
        return track

    async def _crawl_source(self, track: TrackResult, source: Source, quota: int) -> None:
        language, region = track.key
        self.progress.update_region(language, region, current_source=source.name)
        self.progress.write(current_source=source.name)

        remaining = quota - len(track.items)
        source_quota = min(
            remaining, source.max_articles_per_crawl(self.job.default_max_articles)
        )
        try:
            result = await self.job.run(source, quota=source_quota)
        except ProgressStoreError:
            raise
        except Exception as exc:
            reason = exc.reason if isinstance(exc, FetchError) else type(exc).__name__
            message = f"{source.name}: {exc}"
            track.errors.append(message)
            self._emit_log(
                "warning",
                "coordinator.source.failed",
                source_id=source.id,
                region=f"{language}-{region}",
                details={"reason": reason, "error": str(exc)},
            )
            self.progress.update_region(
                language, region, error=message, message=f"{source.name} failed ({reason})"
            )
            self._record_crawl(source, success=False, error=str(exc))
            if self.session_logger:
                self.session_logger.log_source_processing(
                    source.id, "failed", {"error": str(exc)}
                )
        else:
            track.results.append(result)
            track.errors.extend(f"{source.id}: {error}" for error in result.errors)
            track.items.extend(result.items)
            self.progress.increment(
                language,
                region,
                articles_found=result.found,
                articles_processed=len(result.items),
            )
            self._record_crawl(source, success=True, articles=len(result.items))
            if self.session_logger:
                self.session_logger.log_source_processing(
                    source.id, "completed", result.stats()
                )

        self.progress.mark_source_processed(source.id)
        entry = self.progress.read().region(language, region)
        completed = entry.completed_sources + 1 if entry is not None else 1
        self.progress.update_region(language, region, completed_sources=completed)

    def _record_crawl(
        self,
        source: Source,
        *,
        success: bool,
        articles: int = 0,
        error: Optional[str] = None,
    ) -> None:
        if self.store is None:
            return
        try:
            self.store.record_source_crawl(
                source.id, success=success, articles=articles, error=error
            )
        except Exception as exc:
            # Bookkeeping only; the crawl outcome stands.
            self._emit_log(
                "warning",
                "coordinator.record_failed",
                source_id=source.id,
                details={"error": str(exc)},
            )


__all__ = [
    "CoordinatorResult",
    "NO_ARTICLES",
    "QUOTA_REACHED",
    "RegionCoordinator",
    "RegionKey",
    "SOURCES_EXHAUSTED",
    "TrackResult",
    "group_by_region",
]
