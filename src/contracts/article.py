"""Contracts for finished articles handed to the article store."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

EnrichmentStatus = Literal["pending", "completed", "failed"]
ENRICHMENT_STATUSES = ("pending", "completed", "failed")


class ArticleDraft(BaseModel):
    """
    Everything needed to create an article.

    Localized fields are ``{language: text}`` maps; the ``original_*`` fields
    always hold the crawled text so enrichment never loses the source copy.
    """

    title: Dict[str, str]
    content: Dict[str, str]
    summary: Dict[str, str]
    slug: str = Field(min_length=1)
    category: str
    source_id: str
    source_name: str
    source_type: str
    source_url: str
    language: str
    country: str
    original_title: str
    original_content: str
    original_summary: str
    quality_score: int = Field(ge=0, le=100)
    enrichment_status: EnrichmentStatus = "pending"
    enrichment_error: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    image_url: Optional[str] = None
    author: Optional[str] = None
    published_at: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _require_localized_title(self) -> "ArticleDraft":
        if not any(value.strip() for value in self.title.values()):
            raise ValueError("title map must contain at least one non-empty entry")
        return self


class Article(ArticleDraft):
    """A persisted article as returned by the store."""

    id: int
    views: int = 0
    likes: int = 0
    shares: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(extra="ignore", from_attributes=True)


class ArticleFilter(BaseModel):
    """Query parameters accepted by ``ArticleStore.list_articles``."""

    source_id: Optional[str] = None
    enrichment_status: Optional[EnrichmentStatus] = None
    language: Optional[str] = None
    since: Optional[datetime] = None
    limit: Optional[int] = Field(default=None, ge=1)

    def as_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


__all__ = [
    "Article",
    "ArticleDraft",
    "ArticleFilter",
    "ENRICHMENT_STATUSES",
    "EnrichmentStatus",
]
