# src/dedup/detector.py
# Duplicate detection for crawled candidates
# ==========================================

"""
Keeps the crawler from storing the same story twice.

The detector holds three process-local indexes: source URLs, canonical
(lowercased, whitespace-collapsed) titles and the token set of every title.
They are filled lazily from the article store the first time a decision is
needed, and then extended with every item the current session accepts, so a
story that appears in two feeds in the same run is only kept once.

``reset`` only clears the hydrated flag; neither the cache nor the durable
article set is discarded, so re-hydrating from an unchanged store gives the
same decisions as before.
"""

from __future__ import annotations

import time
from typing import Any, Dict, FrozenSet, List, Optional, Set

from config.settings import DEDUP_CONFIG
from src.contracts.article import ArticleFilter
from src.storage.base import ArticleStore
from src.utils.dedupe import canonical_title, canonical_url, jaccard_similarity, title_tokens
from src.utils.logger import StructuredLogMixin, get_logger


class DuplicateDetector(StructuredLogMixin):
    """URL, exact-title and title-similarity duplicate checks."""

    def __init__(
        self,
        store: Optional[ArticleStore] = None,
        *,
        threshold: Optional[float] = None,
        hydration_limit: Optional[int] = None,
    ) -> None:
        self.store = store
        self.threshold = float(
            threshold
            if threshold is not None
            else DEDUP_CONFIG.get("title_similarity_threshold", 0.8)
        )
        self.hydration_limit = int(
            hydration_limit
            if hydration_limit is not None
            else DEDUP_CONFIG.get("hydration_limit", 5000)
        )
        self.module_logger = get_logger().create_module_logger("dedup")
        self._log_context: Dict[str, Any] = {}
        self._urls: Set[str] = set()
        self._titles: Set[str] = set()
        self._token_sets: List[FrozenSet[str]] = []
        self._hydrated = False

    @property
    def is_hydrated(self) -> bool:
        return self._hydrated

    def hydrate(self) -> int:
        """Load stored articles once; later calls are no-ops until ``reset``."""
        if self._hydrated:
            return 0
        start = time.perf_counter()
        loaded = 0
        if self.store is not None:
            articles = self.store.list_articles(ArticleFilter(limit=self.hydration_limit))
            for article in articles:
                titles = [article.original_title, *article.title.values()]
                for title in titles:
                    self._remember_title(title)
                self._remember_url(article.source_url)
                loaded += 1
        self._hydrated = True
        self._emit_log(
            "debug",
            "dedup.hydrated",
            latency=time.perf_counter() - start,
            details={"articles": loaded, "titles": len(self._titles)},
        )
        return loaded

    def is_duplicate(self, title: str, url: str) -> bool:
        self.hydrate()
        url_key = canonical_url(url)
        if url_key and url_key in self._urls:
            return True
        title_key = canonical_title(title)
        if title_key and title_key in self._titles:
            return True
        tokens = title_tokens(title)
        if not tokens:
            return False
        return any(
            jaccard_similarity(tokens, known) > self.threshold
            for known in self._token_sets
        )

    def add_content(self, title: str, url: str) -> None:
        """Register an accepted item so later candidates are checked against it."""
        self.hydrate()
        self._remember_title(title)
        self._remember_url(url)

    def reset(self) -> None:
        """Force re-hydration on the next check; known titles and URLs are kept."""
        self._hydrated = False

    def _remember_title(self, title: Optional[str]) -> None:
        key = canonical_title(title or "")
        if not key or key in self._titles:
            return
        self._titles.add(key)
        self._token_sets.append(title_tokens(key))

    def _remember_url(self, url: Optional[str]) -> None:
        key = canonical_url(url or "")
        if key:
            self._urls.add(key)


__all__ = ["DuplicateDetector"]
