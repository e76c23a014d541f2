"""
Source fetchers: RSS feeds, scraped listing pages and JSON APIs.
"""

from .api_fetcher import ApiFetcher
from .base_collector import BaseFetcher, FetchOutcome, build_http_client
from .page_scraper import PageScraper
from .rss_fetcher import RSSFetcher
from .source_fetcher import AVAILABLE_FETCHERS, SourceFetcher
from .source_probe import probe_source


def get_available_fetch_kinds():
    return list(AVAILABLE_FETCHERS.keys())


__all__ = [
    "AVAILABLE_FETCHERS",
    "ApiFetcher",
    "BaseFetcher",
    "FetchOutcome",
    "PageScraper",
    "RSSFetcher",
    "SourceFetcher",
    "build_http_client",
    "get_available_fetch_kinds",
    "probe_source",
]
