"""Enrichment stage: localize accepted items per region and persist them."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from src.contracts.article import Article, ArticleDraft
from src.contracts.crawl import AcceptedItem
from src.errors import EnrichmentError
from src.progress.store import ProgressStore
from src.storage.base import ArticleStore
from src.utils.datetime_utils import utc_now
from src.utils.logger import StructuredLogMixin, get_logger
from src.utils.text_cleaner import extract_keywords, generate_slug, generate_summary

from .polisher import Polisher

RegionKey = Tuple[str, str]


@dataclass
class EnrichmentReport:
    articles: List[Article] = field(default_factory=list)
    completed: int = 0
    failed: int = 0
    pending: int = 0

    @property
    def total(self) -> int:
        return self.completed + self.failed + self.pending


def _localized(language: str, text: str) -> Dict[str, str]:
    return {language: text}


class EnrichmentStage(StructuredLogMixin):
    """
    Polishes every accepted item into the session's target languages.

    Regions are handled one after the other and items in crawl order. When
    the capability fails for an item, the item is stored with its original
    text and status ``failed``; with polishing disabled it is stored as
    ``pending``. Either way every accepted item reaches the store.
    """

    def __init__(
        self,
        polisher: Polisher,
        store: ArticleStore,
        progress: ProgressStore,
        *,
        target_languages: Sequence[str],
        enable_polishing: bool = True,
        log_context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.polisher = polisher
        self.store = store
        self.progress = progress
        self.target_languages = list(target_languages)
        self.enable_polishing = enable_polishing
        self.module_logger = get_logger().create_module_logger("enrichment.stage")
        self._log_context: Dict[str, Any] = dict(log_context or {})

    async def run(
        self, items_by_region: Mapping[RegionKey, Sequence[AcceptedItem]]
    ) -> EnrichmentReport:
        report = EnrichmentReport()
        for (language, region), items in items_by_region.items():
            await self._run_region(language, region, list(items), report)
        return report

    async def _run_region(
        self, language: str, region: str, items: List[AcceptedItem], report: EnrichmentReport
    ) -> None:
        entry = self.progress.read().region(language, region)
        region_failed = entry is not None and entry.status == "failed"
        if not region_failed:
            self.progress.update_region(language, region, status="polishing")

        start = time.perf_counter()
        for item in items:
            self.progress.update_region(language, region, current_source=item.source_name)
            article = await self._enrich_item(item)
            report.articles.append(article)
            if article.enrichment_status == "completed":
                report.completed += 1
            elif article.enrichment_status == "failed":
                report.failed += 1
            else:
                report.pending += 1
            self.progress.increment(language, region, articles_polished=1)

        final = {"current_source": None, "end_time": utc_now()}
        if not region_failed:
            final["status"] = "completed"
        self.progress.update_region(language, region, **final)
        self._emit_log(
            "info",
            "enrichment.region.completed",
            region=f"{language}-{region}",
            latency=time.perf_counter() - start,
            details={"items": len(items)},
        )

    async def _enrich_item(self, item: AcceptedItem) -> Article:
        candidate = item.candidate
        original_summary = candidate.summary or generate_summary(candidate.content)
        titles = _localized(item.language, candidate.title)
        contents = _localized(item.language, candidate.content)
        summaries = _localized(item.language, original_summary)
        status = "pending"
        error: Optional[str] = None

        if self.enable_polishing:
            try:
                titles, contents, summaries = {}, {}, {}
                for target in self.target_languages:
                    polished = await self.polisher.polish(
                        candidate.title,
                        candidate.content,
                        original_summary,
                        target,
                        source_language=item.language,
                    )
                    titles[target] = polished.title
                    contents[target] = polished.body
                    summaries[target] = polished.summary
                status = "completed"
            except EnrichmentError as exc:
                titles = _localized(item.language, candidate.title)
                contents = _localized(item.language, candidate.content)
                summaries = _localized(item.language, original_summary)
                status = "failed"
                error = str(exc)
                self._emit_log(
                    "warning",
                    "enrichment.item.failed",
                    source_id=item.source_id,
                    details={"url": candidate.url, "error": error},
                )

        draft = ArticleDraft(
            title=titles,
            content=contents,
            summary=summaries,
            slug=generate_slug(candidate.title),
            category=item.category,
            source_id=item.source_id,
            source_name=item.source_name,
            source_type=item.source_type,
            source_url=candidate.url,
            language=item.language,
            country=item.country,
            original_title=candidate.title,
            original_content=candidate.content,
            original_summary=original_summary,
            quality_score=item.quality_score,
            enrichment_status=status,
            enrichment_error=error,
            keywords=extract_keywords(f"{candidate.title} {candidate.content}"),
            image_url=candidate.image_url,
            author=candidate.author,
            published_at=candidate.published_at,
        )
        return self.store.create_article(draft)


__all__ = ["EnrichmentReport", "EnrichmentStage"]
