"""Read-only progress view with the computed completion figures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from src.contracts.progress import ACTIVE_SESSION_STATUSES, SessionProgress

CRAWL_WEIGHT = 50.0
POLISH_WEIGHT = 50.0


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def build_progress_snapshot(
    progress: SessionProgress,
    now: Optional[datetime] = None,
    *,
    stale_after_minutes: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Serializable snapshot of ``progress`` plus percentage, duration and ETA.

    Crawling and enrichment each weigh half of the total. The ETA divides
    elapsed time by the units done so far (sources crawled plus articles
    enriched) and multiplies by the units still outstanding.
    """
    now = _aware(now or datetime.now(timezone.utc))

    crawl_progress = (
        progress.completed_sources / progress.total_sources * CRAWL_WEIGHT
        if progress.total_sources
        else 0.0
    )
    polish_progress = (
        progress.articles_polished / progress.articles_processed * POLISH_WEIGHT
        if progress.articles_processed
        else 0.0
    )
    total_progress = round(min(crawl_progress + polish_progress, 100.0), 1)

    duration = 0.0
    if progress.start_time is not None:
        end = _aware(progress.end_time) if progress.end_time else now
        duration = max(0.0, (end - _aware(progress.start_time)).total_seconds())

    eta = 0.0
    active = progress.status in ACTIVE_SESSION_STATUSES
    if active and progress.start_time is not None:
        done = progress.completed_sources + progress.articles_polished
        remaining = (
            progress.total_sources + progress.articles_processed - done
        )
        if done > 0:
            eta = max(0.0, duration / done * remaining)

    stale = False
    if active and stale_after_minutes and progress.updated_at is not None:
        stale = now - _aware(progress.updated_at) > timedelta(minutes=stale_after_minutes)

    snapshot = progress.model_dump(mode="json", by_alias=True)
    snapshot.update(
        {
            "crawlProgress": round(crawl_progress, 1),
            "polishProgress": round(polish_progress, 1),
            "totalProgress": total_progress,
            "durationSeconds": round(duration, 1),
            "etaSeconds": round(eta, 1),
            "canResume": active and progress.session_id is not None,
            "isStale": stale,
        }
    )
    return snapshot


__all__ = ["CRAWL_WEIGHT", "POLISH_WEIGHT", "build_progress_snapshot"]
