# src/scoring/quality_assessor.py
# Content quality assessment for crawled items
# ============================================

"""
Every candidate that survives duplicate and filter checks is scored here
before the crawl job decides to keep it.

The score is additive and fully transparent: a base value is adjusted by
title shape, body length and structure, keyword coverage for the trade press
we follow, sentence repetition and spam phrasing, then clamped to 0-100.
Keyword tables and thresholds come from ``QUALITY_CONFIG`` so editors can
tune them without touching the algorithm.

The assessor never looks at the network or the clock, so the same text and
the same tables always produce the same number.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from config.settings import QUALITY_CONFIG

_SENTENCE_SPLIT_RE = re.compile(r"[.!?。！？]")

# (minimum source tier, bonus), checked in order
SOURCE_TIER_BONUSES = ((85, 10), (75, 7), (65, 5))


def _count_matches(haystack: str, needles: Iterable[str]) -> int:
    return sum(1 for needle in needles if needle and needle.lower() in haystack)


class QualityAssessor:
    """
    Scores ``(title, body)`` pairs on a 0-100 scale.

    ``score`` is the number the crawl gate compares against a source's
    ``min_quality_score``; ``breakdown`` returns the same computation with
    each contribution listed, which is what the debug logs and tests use.
    """

    def __init__(self, quality_config: Optional[Mapping[str, Any]] = None) -> None:
        cfg = dict(quality_config or QUALITY_CONFIG)
        self.base_score = int(cfg.get("base_score", 40))
        self.high_quality_threshold = int(cfg.get("high_quality_threshold", 70))
        self.default_min_quality_score = int(cfg.get("default_min_quality_score", 25))
        self.domain_keywords: List[str] = list(cfg.get("domain_keywords", []))
        self.title_spam_phrases: List[str] = list(cfg.get("title_spam_phrases", []))
        self.business_keywords: List[str] = list(cfg.get("business_keywords", []))
        self.body_spam_phrases: List[str] = list(cfg.get("body_spam_phrases", []))
        self.technical_terms: List[str] = list(cfg.get("technical_terms", []))

    def score(
        self, title: str, body: str, *, source_min_quality: Optional[int] = None
    ) -> int:
        """Final clamped score for one item."""
        return self.breakdown(title, body, source_min_quality=source_min_quality)[
            "score"
        ]

    def is_high_quality(self, score: int) -> bool:
        """Auxiliary classification; not the acceptance gate."""
        return score >= self.high_quality_threshold

    def breakdown(
        self, title: str, body: str, *, source_min_quality: Optional[int] = None
    ) -> Dict[str, Any]:
        title = title or ""
        body = body or ""
        parts: Dict[str, float] = {"base": self.base_score}

        if title:
            parts["title"] = self._title_component(title)
        if body:
            parts["body"] = self._body_component(body)
        if source_min_quality:
            parts["source_tier"] = self._source_tier_bonus(source_min_quality)

        combined = f"{title} {body}".lower()
        parts["technical_terms"] = min(
            10, _count_matches(combined, self.technical_terms) * 2
        )

        raw = sum(parts.values())
        final = max(0, min(100, int(round(raw))))
        return {"score": final, "raw": raw, "components": parts}

    def _title_component(self, title: str) -> float:
        lowered = title.lower()
        length = len(title)
        points = 0.0
        if 15 <= length <= 120:
            points += 15
        if 25 <= length <= 80:
            points += 5
        points += min(10, _count_matches(lowered, self.domain_keywords) * 3)
        if any(phrase.lower() in lowered for phrase in self.title_spam_phrases):
            points -= 25
        return points

    def _body_component(self, body: str) -> float:
        lowered = body.lower()
        length = len(body)
        points = 0.0
        for threshold in (300, 600, 1200):
            if length >= threshold:
                points += 10
        if length < 150:
            points -= 20

        paragraphs = [line for line in body.split("\n") if line.strip()]
        if len(paragraphs) >= 3:
            points += 5
        if len(paragraphs) >= 5:
            points += 5

        points += min(10, _count_matches(lowered, self.business_keywords) * 2)

        sentences = [
            sentence.strip().lower()
            for sentence in _SENTENCE_SPLIT_RE.split(body)
            if len(sentence.strip()) > 10
        ]
        if sentences:
            unique_ratio = len(set(sentences)) / len(sentences)
            points += round(unique_ratio * 10)
            if unique_ratio < 0.7:
                points -= 15

        points -= _count_matches(lowered, self.body_spam_phrases) * 8
        return points

    @staticmethod
    def _source_tier_bonus(min_quality: int) -> int:
        for tier, bonus in SOURCE_TIER_BONUSES:
            if min_quality >= tier:
                return bonus
        return 0


__all__ = ["QualityAssessor", "SOURCE_TIER_BONUSES"]
