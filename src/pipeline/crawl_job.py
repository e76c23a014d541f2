# src/pipeline/crawl_job.py
# Single-source crawl job
# =======================

"""
Runs one source through fetch → duplicate check → filters → quality gate.

Each candidate either becomes an ``AcceptedItem`` or is rejected with a
``CandidateRejection`` whose ``category`` names the counter it lands in
(duplicate, filtered, failed). Rejections are expected and never leave the
job; the only exception that does is ``FetchError`` when the source as a
whole could not be retrieved.

The job stops examining candidates as soon as the caller's quota of accepted
items is reached, so a region that only needs two more articles never pays
for scoring the rest of a long feed.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Protocol

from config.settings import COLLECTION_CONFIG, QUALITY_CONFIG, TIMEZONE
from src.collectors.base_collector import FetchOutcome
from src.contracts.crawl import AcceptedItem, CandidateItem, CrawlJobResult
from src.contracts.source import Source
from src.dedup.detector import DuplicateDetector
from src.errors import (
    CandidateRejection,
    DuplicateRejection,
    FetchError,
    FilterRejection,
    QualityRejection,
)
from src.scoring.quality_assessor import QualityAssessor
from src.utils.datetime_utils import is_same_local_day, utc_now
from src.utils.logger import StructuredLogMixin, get_logger


class Fetcher(Protocol):
    async def fetch(self, source: Source) -> FetchOutcome: ...


class CrawlJob(StructuredLogMixin):
    """Turns one source into a ``CrawlJobResult``."""

    def __init__(
        self,
        fetcher: Fetcher,
        detector: DuplicateDetector,
        assessor: Optional[QualityAssessor] = None,
        *,
        only_today_news: bool = False,
        timezone_name: Optional[str] = None,
        default_min_quality: Optional[int] = None,
        default_max_articles: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
        log_context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.fetcher = fetcher
        self.detector = detector
        self.assessor = assessor or QualityAssessor()
        self.only_today_news = only_today_news
        self.timezone_name = timezone_name or TIMEZONE
        self.default_min_quality = int(
            default_min_quality
            if default_min_quality is not None
            else QUALITY_CONFIG.get("default_min_quality_score", 25)
        )
        self.default_max_articles = int(
            default_max_articles
            if default_max_articles is not None
            else COLLECTION_CONFIG.get("default_max_articles_per_crawl", 50)
        )
        self._clock = clock or utc_now
        self.module_logger = get_logger().create_module_logger("pipeline.crawl_job")
        self._log_context: Dict[str, Any] = dict(log_context or {})

    async def run(self, source: Source, quota: Optional[int] = None) -> CrawlJobResult:
        """
        Crawl ``source`` and accept at most ``quota`` items.

        ``quota`` defaults to the source's ``max_articles_per_crawl``. Raises
        ``FetchError`` only when the fetch itself fails.
        """
        limit = quota if quota is not None else source.max_articles_per_crawl(
            self.default_max_articles
        )
        result = CrawlJobResult(source_id=source.id, source_name=source.name)
        start = time.perf_counter()
        self._emit_log(
            "debug",
            "crawl.job.start",
            source_id=source.id,
            details={"quota": limit, "type": source.type},
        )

        try:
            outcome = await self.fetcher.fetch(source)
        except FetchError as exc:
            result.status = "failed"
            result.errors.append(str(exc))
            result.duration_seconds = time.perf_counter() - start
            self._emit_log(
                "warning",
                "crawl.job.failed",
                source_id=source.id,
                latency=result.duration_seconds,
                details={"reason": exc.reason, "error": str(exc)},
            )
            raise

        result.found = outcome.found
        result.failed = len(outcome.item_errors)
        result.errors.extend(outcome.item_errors)

        threshold = source.min_quality_score(self.default_min_quality)
        for candidate in outcome.items:
            if result.accepted >= limit:
                result.quota_reached = True
                break
            result.processed += 1
            try:
                accepted = self._evaluate(candidate, source, threshold)
            except CandidateRejection as rejection:
                result.count(rejection.category)
                self._emit_log(
                    "debug",
                    "crawl.job.rejected",
                    source_id=source.id,
                    details={
                        "category": rejection.category,
                        "reason": rejection.reason,
                        "title": candidate.title[:80],
                    },
                )
                continue
            self.detector.add_content(candidate.title, candidate.url)
            result.items.append(accepted)
            result.accepted += 1
        else:
            result.quota_reached = result.accepted >= limit

        result.status = "completed"
        result.duration_seconds = time.perf_counter() - start
        self._emit_log(
            "info",
            "crawl.job.completed",
            source_id=source.id,
            latency=result.duration_seconds,
            details={**result.stats(), "quota_reached": result.quota_reached},
        )
        return result

    def _evaluate(
        self, candidate: CandidateItem, source: Source, threshold: int
    ) -> AcceptedItem:
        if not candidate.title or not candidate.url:
            raise CandidateRejection("missing title or link")
        if self.detector.is_duplicate(candidate.title, candidate.url):
            raise DuplicateRejection("already known")
        self._check_filters(candidate, source)

        score = self.assessor.score(
            candidate.title,
            candidate.content,
            source_min_quality=source.filters.min_quality_score,
        )
        if score < threshold:
            raise QualityRejection(score, threshold)
        return AcceptedItem.from_candidate(
            candidate, source, score, self.assessor.is_high_quality(score)
        )

    def _check_filters(self, candidate: CandidateItem, source: Source) -> None:
        filters = source.filters
        text = f"{candidate.title} {candidate.content}".lower()
        if filters.required_keywords and not any(
            keyword.lower() in text for keyword in filters.required_keywords
        ):
            raise FilterRejection("no required keyword")
        for keyword in filters.excluded_keywords:
            if keyword.lower() in text:
                raise FilterRejection(f"excluded keyword {keyword!r}")
        length = len(candidate.content)
        if filters.min_content_length and length < filters.min_content_length:
            raise FilterRejection(f"content length {length} < {filters.min_content_length}")
        if filters.max_content_length and length > filters.max_content_length:
            raise FilterRejection(f"content length {length} > {filters.max_content_length}")
        if (
            self.only_today_news
            and candidate.published_at is not None
            and not is_same_local_day(candidate.published_at, self._clock(), self.timezone_name)
        ):
            raise FilterRejection("not published today")


__all__ = ["CrawlJob", "Fetcher"]
