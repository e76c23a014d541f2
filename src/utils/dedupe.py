"""Title normalization and similarity helpers for duplicate detection."""

from __future__ import annotations

import re
from typing import FrozenSet

from src.utils.text_cleaner import normalize_text

_TOKEN_SPLIT_RE = re.compile(r"\s+")


def canonical_title(title: str) -> str:
    """Lowercased, whitespace-collapsed title used for exact matching."""
    return normalize_text(title or "").lower()


def title_tokens(title: str) -> FrozenSet[str]:
    canonical = canonical_title(title)
    if not canonical:
        return frozenset()
    return frozenset(token for token in _TOKEN_SPLIT_RE.split(canonical) if token)


def jaccard_similarity(left: FrozenSet[str], right: FrozenSet[str]) -> float:
    """|A ∩ B| / |A ∪ B|; two empty sets are considered dissimilar."""
    if not left and not right:
        return 0.0
    union = left | right
    return len(left & right) / len(union)


def canonical_url(url: str) -> str:
    return (url or "").strip()
