# src/storage/models.py
# Data models for the Newsdesk article store
# ==========================================

"""
SQLAlchemy tables behind the article store.

Articles keep their localized title/content/summary as JSON maps keyed by
language code, next to the crawled originals, so an article whose enrichment
failed is still complete and can be polished again later. Sources mirror the
``config.sources`` catalogue plus the crawl bookkeeping the pipeline updates
after every run.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Article(Base):
    """A finished article as persisted by the enrichment stage."""

    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slug = Column(String(120), nullable=False, index=True)

    # Localized content: {"zh": "...", "en": "..."}
    title = Column(JSON, nullable=False)
    content = Column(JSON, nullable=False)
    summary = Column(JSON, nullable=False)

    # Crawled originals
    original_title = Column(String(500), nullable=False)
    original_content = Column(Text, nullable=False, default="")
    original_summary = Column(Text, nullable=False, default="")

    category = Column(String(50), index=True)
    keywords = Column(JSON)
    image_url = Column(String(1000))
    author = Column(String(200))

    source_id = Column(String(50), nullable=False, index=True)
    source_name = Column(String(100), nullable=False)
    source_type = Column(String(20), nullable=False)
    source_url = Column(String(1000), nullable=False, index=True)
    language = Column(String(10), nullable=False)
    country = Column(String(10), nullable=False)

    quality_score = Column(Integer, nullable=False, default=0)
    enrichment_status = Column(String(20), nullable=False, default="pending", index=True)
    enrichment_error = Column(Text)

    # Engagement counters
    views = Column(Integer, nullable=False, default=0)
    likes = Column(Integer, nullable=False, default=0)
    shares = Column(Integer, nullable=False, default=0)

    published_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        Index("idx_articles_source_created", "source_id", "created_at"),
        Index("idx_articles_status_created", "enrichment_status", "created_at"),
    )

    def __repr__(self):
        return f"<Article(id={self.id}, slug='{self.slug}', source='{self.source_id}')>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "slug": self.slug,
            "title": self.title,
            "summary": self.summary,
            "category": self.category,
            "source_id": self.source_id,
            "source_name": self.source_name,
            "language": self.language,
            "country": self.country,
            "quality_score": self.quality_score,
            "enrichment_status": self.enrichment_status,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Source(Base):
    """A catalogue source plus its crawl history."""

    __tablename__ = "sources"

    id = Column(String(50), primary_key=True)
    name = Column(String(100), nullable=False)
    type = Column(String(20), nullable=False, default="rss")
    url = Column(String(1000), nullable=False)
    category = Column(String(50), nullable=False, default="general")
    language = Column(String(10), nullable=False)
    country = Column(String(10), nullable=False)
    region = Column(String(30))
    is_active = Column(Boolean, nullable=False, default=True)
    crawl_interval_minutes = Column(Integer, nullable=False, default=60)

    filters = Column(JSON)
    scraping_config = Column(JSON)
    api_config = Column(JSON)

    # Crawl bookkeeping
    last_crawled_at = Column(DateTime(timezone=True))
    last_success_at = Column(DateTime(timezone=True))
    total_articles_collected = Column(Integer, nullable=False, default=0)
    consecutive_failures = Column(Integer, nullable=False, default=0)
    error_message = Column(Text)

    def __repr__(self):
        return f"<Source(id='{self.id}', type='{self.type}', active={self.is_active})>"


def create_all_tables(engine) -> None:
    Base.metadata.create_all(engine)


__all__ = ["Article", "Base", "Source", "create_all_tables"]
