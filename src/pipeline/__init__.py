"""Crawl pipeline: single-source jobs, region fan-out and session runner."""

from .crawl_job import CrawlJob
from .region_coordinator import (
    CoordinatorResult,
    RegionCoordinator,
    TrackResult,
    group_by_region,
)
from .session import CrawlSessionRunner, SessionParams, SessionReport

__all__ = [
    "CoordinatorResult",
    "CrawlJob",
    "CrawlSessionRunner",
    "RegionCoordinator",
    "SessionParams",
    "SessionReport",
    "TrackResult",
    "group_by_region",
]
