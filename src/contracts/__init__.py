"""Shared contracts for validated pipeline payloads."""

from .article import Article, ArticleDraft, ArticleFilter, EnrichmentStatus
from .crawl import AcceptedItem, CandidateItem, CrawlJobResult
from .progress import RegionProgress, SessionProgress
from .source import ApiConfig, ScrapingConfig, Source, SourceFilters

__all__ = [
    "AcceptedItem",
    "ApiConfig",
    "Article",
    "ArticleDraft",
    "ArticleFilter",
    "CandidateItem",
    "CrawlJobResult",
    "EnrichmentStatus",
    "RegionProgress",
    "ScrapingConfig",
    "SessionProgress",
    "Source",
    "SourceFilters",
]
