"""Process-local article store used by dry runs and tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from src.contracts.article import Article, ArticleDraft, ArticleFilter
from src.contracts.source import Source


class InMemoryArticleStore:
    """``ArticleStore`` backed by plain lists; nothing survives the process."""

    def __init__(
        self,
        sources: Optional[Iterable[Source]] = None,
        articles: Optional[Iterable[Article]] = None,
    ) -> None:
        self.sources: Dict[str, Source] = {source.id: source for source in sources or ()}
        self.articles: List[Article] = list(articles or ())
        self.crawl_log: List[Dict[str, object]] = []

    def create_article(self, draft: ArticleDraft) -> Article:
        now = datetime.now(timezone.utc)
        next_id = max((article.id for article in self.articles), default=0) + 1
        article = Article(
            **draft.model_dump(), id=next_id, created_at=now, updated_at=now
        )
        self.articles.append(article)
        return article

    def list_articles(self, article_filter: Optional[ArticleFilter] = None) -> List[Article]:
        article_filter = article_filter or ArticleFilter()
        selected = [
            article
            for article in reversed(self.articles)
            if (not article_filter.source_id or article.source_id == article_filter.source_id)
            and (
                not article_filter.enrichment_status
                or article.enrichment_status == article_filter.enrichment_status
            )
            and (not article_filter.language or article.language == article_filter.language)
            and (not article_filter.since or article.created_at >= article_filter.since)
        ]
        if article_filter.limit:
            selected = selected[: article_filter.limit]
        return selected

    def find_source_by_id(self, source_id: str) -> Optional[Source]:
        return self.sources.get(source_id)

    def list_active_sources(self) -> List[Source]:
        return [source for source in self.sources.values() if source.is_active]

    def record_source_crawl(
        self,
        source_id: str,
        *,
        success: bool,
        articles: int = 0,
        error: Optional[str] = None,
    ) -> None:
        self.crawl_log.append(
            {"source_id": source_id, "success": success, "articles": articles, "error": error}
        )


__all__ = ["InMemoryArticleStore"]
