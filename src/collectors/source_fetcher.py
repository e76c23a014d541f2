"""Dispatch a Source to the fetcher for its fetch kind."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Type

import httpx

from src.contracts.source import Source
from src.errors import FetchError

from .api_fetcher import ApiFetcher
from .base_collector import BaseFetcher, FetchOutcome, SleepFn
from .page_scraper import PageScraper
from .rss_fetcher import RSSFetcher

AVAILABLE_FETCHERS: Dict[str, Type[BaseFetcher]] = {
    "rss": RSSFetcher,
    "web_scraping": PageScraper,
    "api": ApiFetcher,
}


class SourceFetcher:
    """
    Single entry point used by the crawl job.

    Fetchers are created lazily and share the caller's HTTP client.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        collection_config: Optional[Mapping[str, Any]] = None,
        rate_limiting_config: Optional[Mapping[str, Any]] = None,
        sleep: Optional[SleepFn] = None,
    ) -> None:
        self.client = client
        self._options: Dict[str, Any] = {
            "collection_config": collection_config,
            "rate_limiting_config": rate_limiting_config,
            "sleep": sleep,
        }
        self._fetchers: Dict[str, BaseFetcher] = {}

    def fetcher_for(self, kind: str) -> BaseFetcher:
        if kind not in self._fetchers:
            fetcher_cls = AVAILABLE_FETCHERS.get(kind)
            if fetcher_cls is None:
                raise FetchError(f"unsupported fetch kind: {kind}", reason="unsupported")
            self._fetchers[kind] = fetcher_cls(self.client, **self._options)
        return self._fetchers[kind]

    async def fetch(self, source: Source) -> FetchOutcome:
        try:
            fetcher = self.fetcher_for(source.type)
        except FetchError as exc:
            exc.source_id = source.id
            exc.url = source.url
            raise
        return await fetcher.fetch(source)
