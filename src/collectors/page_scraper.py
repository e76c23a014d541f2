# src/collectors/page_scraper.py
"""Listing-page scraper driven by per-source CSS selectors."""

from __future__ import annotations

from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from src.contracts.crawl import CandidateItem
from src.contracts.source import ScrapingConfig, Source
from src.errors import FetchError
from src.utils.datetime_utils import parse_to_utc
from src.utils.text_cleaner import clean_html, normalize_text

from .base_collector import BaseFetcher, FetchOutcome


class PageScraper(BaseFetcher):
    """
    Follows article links found on a listing page.

    At most ``scraping_max_articles`` links are visited, one at a time with
    ``scraping_delay_seconds`` between requests; each article page has its own
    shorter timeout and failures on one page only skip that page.
    """

    fetch_kind = "web_scraping"

    async def _fetch_items(self, source: Source) -> FetchOutcome:
        if source.scraping_config is None:
            raise FetchError(
                "web_scraping source has no scraping_config",
                source_id=source.id,
                url=source.url,
                reason="unsupported",
            )
        selectors = source.scraping_config
        listing = await self._request(source.url, source_id=source.id)
        links = self._extract_links(listing.text, source.url, selectors)

        outcome = FetchOutcome()
        delay = float(self.collection_config.get("scraping_delay_seconds", 1.0))
        article_timeout = float(self.collection_config.get("article_timeout_seconds", 5.0))
        for index, link in enumerate(links):
            if index and delay:
                await self._sleep(delay)
            try:
                page = await self._request(link, source_id=source.id, timeout=article_timeout)
            except FetchError as exc:
                outcome.item_errors.append(f"item {index}: {exc}")
                continue
            try:
                outcome.items.append(self._parse_article(page.text, link, selectors))
            except ValueError as exc:
                outcome.item_errors.append(f"item {index}: {exc}")
        return outcome

    def _extract_links(
        self, html: str, base_url: str, selectors: ScrapingConfig
    ) -> List[str]:
        limit = int(self.collection_config.get("scraping_max_articles", 10))
        soup = BeautifulSoup(html, "html.parser")
        links: List[str] = []
        for node in soup.select(selectors.list_selector):
            anchor = node if node.name == "a" else node.select_one(selectors.link_selector)
            href = anchor.get("href") if anchor is not None else None
            if not href:
                continue
            absolute = urljoin(base_url, href)
            if absolute not in links:
                links.append(absolute)
            if len(links) >= limit:
                break
        return links

    @staticmethod
    def _select_text(soup: BeautifulSoup, selector: Optional[str]) -> str:
        if not selector:
            return ""
        node = soup.select_one(selector)
        return normalize_text(node.get_text(" ")) if node is not None else ""

    def _parse_article(
        self, html: str, url: str, selectors: ScrapingConfig
    ) -> CandidateItem:
        soup = BeautifulSoup(html, "html.parser")
        title = self._select_text(soup, selectors.title_selector)
        content_node = soup.select_one(selectors.content_selector)
        if not title or content_node is None:
            raise ValueError("missing title or content")

        image_url = None
        if selectors.image_selector:
            image = soup.select_one(selectors.image_selector)
            if image is not None and image.get("src"):
                image_url = urljoin(url, image["src"])

        published_at = None
        if selectors.date_selector:
            date_node = soup.select_one(selectors.date_selector)
            if date_node is not None:
                published_at = parse_to_utc(
                    date_node.get("datetime") or date_node.get_text(" ").strip()
                )

        return CandidateItem(
            title=title,
            content=clean_html(str(content_node)),
            url=url,
            summary=self._select_text(soup, selectors.summary_selector) or None,
            author=self._select_text(soup, selectors.author_selector) or None,
            image_url=image_url,
            published_at=published_at,
        )
