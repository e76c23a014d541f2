# src/collectors/rss_fetcher.py
"""RSS/Atom fetcher tolerant of the usual real-world feed damage."""

from __future__ import annotations

import codecs
import re
from typing import Any, Optional

import feedparser

from src.contracts.crawl import CandidateItem
from src.contracts.source import Source
from src.errors import FetchError
from src.utils.datetime_utils import parse_to_utc
from src.utils.text_cleaner import clean_html, first_image_url, normalize_text

from .base_collector import BaseFetcher, FetchOutcome

_ENCODING_RE = re.compile(rb"""encoding=["']([^"']+)["']""")
_PROLOG_ENCODING_RE = re.compile(r"""(<\?xml[^>]*encoding=)["'][^"']+["']""")
_BARE_AMPERSAND_RE = re.compile(r"&(?!(?:amp|lt|gt|quot|apos|#\d+|#x[0-9a-fA-F]+);)")
_ACCEPTABLE_BOZO = ("InvalidDocument", "UndeclaredNamespace", "CharacterEncodingOverride")


def detect_declared_encoding(raw: bytes) -> str:
    """Encoding named in the XML prolog, or UTF-8 when absent or unknown."""
    match = _ENCODING_RE.search(raw[:200])
    if not match:
        return "utf-8"
    declared = match.group(1).decode("ascii", errors="ignore").strip()
    try:
        return codecs.lookup(declared).name
    except LookupError:
        return "utf-8"


def decode_feed_bytes(raw: bytes) -> str:
    text = raw.decode(detect_declared_encoding(raw), errors="replace")
    return text.lstrip("\ufeff")


def sanitize_feed_xml(text: str) -> str:
    """
    Re-escape bare ampersands and re-declare the prolog as UTF-8.

    The body has already been decoded, so the original declaration would
    mislead feedparser into decoding a second time.
    """
    text = _BARE_AMPERSAND_RE.sub("&amp;", text.lstrip("\ufeff"))
    return _PROLOG_ENCODING_RE.sub(r'\1"utf-8"', text, count=1)


def _is_acceptable_bozo(parsed_feed: Any) -> bool:
    if not parsed_feed.bozo:
        return True
    exception_name = parsed_feed.bozo_exception.__class__.__name__
    return exception_name in _ACCEPTABLE_BOZO


class RSSFetcher(BaseFetcher):
    """Feeds parsed with feedparser, one ``CandidateItem`` per usable entry."""

    fetch_kind = "rss"

    async def _fetch_items(self, source: Source) -> FetchOutcome:
        response = await self._request(source.url, source_id=source.id)
        text = sanitize_feed_xml(decode_feed_bytes(response.content))
        parsed_feed = feedparser.parse(text.encode("utf-8"))

        if parsed_feed.bozo and not parsed_feed.entries:
            if not _is_acceptable_bozo(parsed_feed):
                raise FetchError(
                    f"malformed feed: {parsed_feed.bozo_exception}",
                    source_id=source.id,
                    url=source.url,
                    reason="malformed",
                )
        elif parsed_feed.bozo:
            self._emit_log(
                "debug",
                "fetcher.rss.bozo_tolerated",
                source_id=source.id,
                details={"error": str(parsed_feed.bozo_exception)},
            )

        outcome = FetchOutcome()
        for index, entry in enumerate(parsed_feed.entries):
            try:
                outcome.items.append(self._entry_to_candidate(entry))
            except (ValueError, TypeError, KeyError, AttributeError) as exc:
                outcome.item_errors.append(f"item {index}: {exc}")
        if outcome.item_errors:
            self._emit_log(
                "warning",
                "fetcher.rss.items_skipped",
                source_id=source.id,
                details={"errors": outcome.item_errors[:5], "count": len(outcome.item_errors)},
            )
        return outcome

    def _entry_to_candidate(self, entry: Any) -> CandidateItem:
        title = normalize_text(entry.get("title", ""))
        link = (entry.get("link") or "").strip()
        if not title or not link:
            raise ValueError("missing title or link")

        raw_html, from_full_content = self._raw_body(entry)
        summary: Optional[str] = None
        if from_full_content and entry.get("summary"):
            summary = clean_html(entry.get("summary")) or None

        return CandidateItem(
            title=title,
            content=clean_html(raw_html),
            url=link,
            summary=summary,
            published_at=self._published_at(entry),
            author=(entry.get("author") or None),
            image_url=first_image_url(raw_html) or self._media_image(entry),
        )

    @staticmethod
    def _raw_body(entry: Any) -> tuple:
        contents = entry.get("content") or []
        for content in contents:
            value = content.get("value") if hasattr(content, "get") else None
            if value:
                return value, True
        return entry.get("summary") or entry.get("description") or "", False

    @staticmethod
    def _published_at(entry: Any):
        for key in ("published_parsed", "updated_parsed"):
            if entry.get(key):
                return parse_to_utc(entry.get(key))
        for key in ("published", "updated", "pubDate"):
            if entry.get(key):
                return parse_to_utc(entry.get(key))
        return None

    @staticmethod
    def _media_image(entry: Any) -> Optional[str]:
        for key in ("media_content", "media_thumbnail"):
            for media in entry.get(key) or []:
                url = media.get("url")
                if url:
                    return url
        for link in entry.get("links") or []:
            if link.get("rel") == "enclosure" and str(link.get("type", "")).startswith(
                "image/"
            ):
                return link.get("href")
        return None
