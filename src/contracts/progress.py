"""Durable session and per-region progress records."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SessionStatus = Literal["idle", "crawling", "polishing", "completed", "failed"]
RegionStatus = Literal["pending", "crawling", "polishing", "completed", "failed"]
TERMINAL_STATUSES = ("completed", "failed")
ACTIVE_SESSION_STATUSES = ("crawling", "polishing")


class _ProgressModel(BaseModel):
    # Stored JSON uses camelCase keys; Python code uses snake_case.
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        validate_assignment=True,
    )


class RegionProgress(_ProgressModel):
    language: str
    region: str
    status: RegionStatus = "pending"
    quota: int = Field(default=0, ge=0)
    total_sources: int = 0
    completed_sources: int = 0
    articles_found: int = 0
    articles_processed: int = 0
    articles_polished: int = 0
    current_source: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.language, self.region)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class SessionProgress(_ProgressModel):
    session_id: Optional[str] = None
    status: SessionStatus = "idle"
    total_sources: int = 0
    completed_sources: int = 0
    current_source: Optional[str] = None
    articles_found: int = 0
    articles_processed: int = 0
    articles_polished: int = 0
    target_languages: List[str] = Field(default_factory=list)
    articles_per_language: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    processed_sources: List[str] = Field(default_factory=list)
    regions: List[RegionProgress] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_SESSION_STATUSES

    def region(self, language: str, region: str) -> Optional[RegionProgress]:
        for entry in self.regions:
            if entry.language == language and entry.region == region:
                return entry
        return None

    def all_regions_terminal(self) -> bool:
        return all(entry.is_terminal for entry in self.regions)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


__all__ = [
    "ACTIVE_SESSION_STATUSES",
    "RegionProgress",
    "RegionStatus",
    "SessionProgress",
    "SessionStatus",
    "TERMINAL_STATUSES",
]
