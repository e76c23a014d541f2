"""Contracts produced while crawling one source."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .source import Source


class CandidateItem(BaseModel):
    """Raw content extracted by a fetcher, before any acceptance decision."""

    title: str
    content: str = ""
    url: str
    summary: Optional[str] = None
    published_at: Optional[datetime] = None
    author: Optional[str] = None
    image_url: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("title", "url", mode="before")
    @classmethod
    def _strip(cls, value: object) -> str:
        return str(value or "").strip()


class AcceptedItem(BaseModel):
    """A candidate that passed every gate, tagged with its origin."""

    candidate: CandidateItem
    source_id: str
    source_name: str
    source_type: str
    category: str
    language: str
    country: str
    quality_score: int = Field(ge=0, le=100)
    high_quality: bool = False

    @classmethod
    def from_candidate(
        cls, candidate: CandidateItem, source: Source, score: int, high_quality: bool
    ) -> "AcceptedItem":
        return cls(
            candidate=candidate,
            source_id=source.id,
            source_name=source.name,
            source_type=source.type,
            category=source.category,
            language=source.language,
            country=source.country,
            quality_score=score,
            high_quality=high_quality,
        )

    @property
    def region_key(self) -> tuple:
        return (self.language, self.country)


JobStatus = Literal["running", "completed", "failed"]


class CrawlJobResult(BaseModel):
    """
    Outcome of one single-source crawl.

    ``found`` counts extracted candidates (plus items the fetcher had to
    skip), ``processed`` the candidates examined before the quota stopped the
    job, ``accepted`` the items returned in ``items``.
    """

    source_id: str
    source_name: str = ""
    status: JobStatus = "running"
    found: int = 0
    processed: int = 0
    accepted: int = 0
    duplicate: int = 0
    filtered: int = 0
    failed: int = 0
    items: List[AcceptedItem] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    duration_seconds: float = 0.0
    quota_reached: bool = False

    def count(self, category: str) -> None:
        setattr(self, category, getattr(self, category) + 1)

    def stats(self) -> Dict[str, int]:
        return {
            "found": self.found,
            "processed": self.processed,
            "accepted": self.accepted,
            "duplicate": self.duplicate,
            "filtered": self.filtered,
            "failed": self.failed,
        }


__all__ = ["AcceptedItem", "CandidateItem", "CrawlJobResult", "JobStatus"]
