# src/collectors/api_fetcher.py
"""JSON API fetcher mapping arbitrary payloads onto candidate items."""

from __future__ import annotations

import json
import os
from string import Template
from typing import Any, Dict, List, Mapping, Optional

from src.contracts.crawl import CandidateItem
from src.contracts.source import Source
from src.errors import FetchError
from src.utils.datetime_utils import parse_to_utc
from src.utils.text_cleaner import clean_html, normalize_text

from .base_collector import BaseFetcher, FetchOutcome

DEFAULT_MAPPING = {
    "title": "title",
    "content": "content",
    "summary": "summary",
    "url": "url",
    "image": "image",
    "author": "author",
    "published_at": "published_at",
}


def resolve_path(payload: Any, path: Optional[str]) -> Any:
    """Follow a dotted path (``data.items.0.title``) through dicts and lists."""
    if not path:
        return payload
    current = payload
    for segment in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(segment)
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            current = current[index] if index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def _expand_env(values: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        key: Template(value).safe_substitute(os.environ) if isinstance(value, str) else value
        for key, value in values.items()
    }


class ApiFetcher(BaseFetcher):
    fetch_kind = "api"

    async def _fetch_items(self, source: Source) -> FetchOutcome:
        api = source.api_config
        if api is None:
            raise FetchError(
                "api source has no api_config",
                source_id=source.id,
                url=source.url,
                reason="unsupported",
            )

        response = await self._request(
            api.endpoint,
            source_id=source.id,
            method=api.method,
            headers=_expand_env(api.headers),
            params=_expand_env(api.params) if api.method == "GET" else None,
            json_body=_expand_env(api.params) if api.method == "POST" else None,
        )
        try:
            payload = response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise FetchError(
                f"invalid JSON payload: {exc}",
                source_id=source.id,
                url=api.endpoint,
                reason="malformed",
            ) from exc

        raw_items = resolve_path(payload, api.items_path)
        if not isinstance(raw_items, list):
            raise FetchError(
                f"items path {api.items_path!r} did not resolve to a list",
                source_id=source.id,
                url=api.endpoint,
                reason="malformed",
            )

        mapping = {**DEFAULT_MAPPING, **api.response_mapping}
        outcome = FetchOutcome()
        for index, raw in enumerate(raw_items):
            try:
                outcome.items.append(self._map_item(raw, mapping))
            except (ValueError, TypeError) as exc:
                outcome.item_errors.append(f"item {index}: {exc}")
        return outcome

    @staticmethod
    def _map_item(raw: Any, mapping: Dict[str, str]) -> CandidateItem:
        if not isinstance(raw, Mapping):
            raise TypeError("item is not an object")

        def text(field: str) -> str:
            value = resolve_path(raw, mapping.get(field))
            return str(value) if value is not None else ""

        title = normalize_text(text("title"))
        url = text("url").strip()
        if not title or not url:
            raise ValueError("missing title or link")
        summary = clean_html(text("summary")) or None
        return CandidateItem(
            title=title,
            content=clean_html(text("content")),
            url=url,
            summary=summary,
            author=text("author") or None,
            image_url=text("image") or None,
            published_at=parse_to_utc(resolve_path(raw, mapping.get("published_at"))),
        )


__all__: List[str] = ["ApiFetcher", "resolve_path"]
