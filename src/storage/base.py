"""Article store interface consumed by the pipeline."""

from __future__ import annotations

from typing import List, Optional, Protocol, runtime_checkable

from src.contracts.article import Article, ArticleDraft, ArticleFilter
from src.contracts.source import Source


@runtime_checkable
class ArticleStore(Protocol):
    """
    Persistence collaborator for crawl sessions.

    The pipeline never keeps long-lived article or source collections of its
    own; everything durable goes through these calls.
    """

    def create_article(self, draft: ArticleDraft) -> Article: ...

    def list_articles(self, article_filter: Optional[ArticleFilter] = None) -> List[Article]: ...

    def find_source_by_id(self, source_id: str) -> Optional[Source]: ...

    def list_active_sources(self) -> List[Source]: ...

    def record_source_crawl(
        self,
        source_id: str,
        *,
        success: bool,
        articles: int = 0,
        error: Optional[str] = None,
    ) -> None: ...


__all__ = ["ArticleStore"]
