"""Contracts describing configured feeds."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

FetchKind = Literal["rss", "web_scraping", "api"]


class SourceFilters(BaseModel):
    """Per-source acceptance rules applied by the crawl job."""

    required_keywords: List[str] = Field(default_factory=list)
    excluded_keywords: List[str] = Field(default_factory=list)
    min_content_length: Optional[int] = Field(default=None, ge=0)
    max_content_length: Optional[int] = Field(default=None, ge=1)
    min_quality_score: Optional[int] = Field(default=None, ge=0, le=100)
    max_articles_per_crawl: Optional[int] = Field(default=None, ge=1)

    model_config = ConfigDict(extra="ignore")

    @field_validator("required_keywords", "excluded_keywords", mode="before")
    @classmethod
    def _normalize_keywords(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [str(item).strip() for item in value if str(item).strip()]

    @model_validator(mode="after")
    def _check_length_bounds(self) -> "SourceFilters":
        if (
            self.min_content_length is not None
            and self.max_content_length is not None
            and self.min_content_length > self.max_content_length
        ):
            raise ValueError("min_content_length must not exceed max_content_length")
        return self


class ScrapingConfig(BaseModel):
    """CSS selectors for listing-page scraping."""

    list_selector: str = "a"
    link_selector: str = "a"
    title_selector: str = "h1"
    content_selector: str = "article"
    summary_selector: Optional[str] = None
    author_selector: Optional[str] = None
    image_selector: Optional[str] = None
    date_selector: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class ApiConfig(BaseModel):
    """JSON endpoint description with dotted response paths."""

    endpoint: str
    method: Literal["GET", "POST"] = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    params: Dict[str, Any] = Field(default_factory=dict)
    items_path: Optional[str] = None
    response_mapping: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")


class Source(BaseModel):
    """A configured feed; read-only to the pipeline."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    type: FetchKind = "rss"
    url: str
    category: str = "general"
    language: str
    country: str
    region: Optional[str] = None
    is_active: bool = True
    crawl_interval_minutes: int = Field(default=60, ge=1)
    filters: SourceFilters = Field(default_factory=SourceFilters)
    scraping_config: Optional[ScrapingConfig] = None
    api_config: Optional[ApiConfig] = None

    model_config = ConfigDict(extra="ignore", from_attributes=True)

    @field_validator("language", mode="before")
    @classmethod
    def _normalize_language(cls, value: Any) -> str:
        return str(value or "").strip().lower()

    @field_validator("country", mode="before")
    @classmethod
    def _normalize_country(cls, value: Any) -> str:
        return str(value or "").strip().upper()

    @field_validator("filters", mode="before")
    @classmethod
    def _default_filters(cls, value: Any) -> Any:
        return value if value is not None else {}

    @property
    def region_key(self) -> Tuple[str, str]:
        return (self.language, self.country)

    def min_quality_score(self, default: int) -> int:
        value = self.filters.min_quality_score
        return default if value is None else value

    def max_articles_per_crawl(self, default: int) -> int:
        value = self.filters.max_articles_per_crawl
        return default if value is None else value

    @classmethod
    def from_catalogue(cls, source_id: str, entry: Dict[str, Any]) -> "Source":
        """Build a Source from a ``config.sources`` dictionary entry."""
        return cls.model_validate({"id": source_id, **entry})


__all__ = ["ApiConfig", "FetchKind", "ScrapingConfig", "Source", "SourceFilters"]
