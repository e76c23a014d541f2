import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

from src.utils.dedupe import (
    canonical_title,
    canonical_url,
    jaccard_similarity,
    title_tokens,
)


def test_canonical_title_collapses_case_and_whitespace():
    assert canonical_title("  Breaking   Runway  News ") == "breaking runway news"
    assert canonical_title("") == ""


def test_title_tokens_are_unique_words():
    tokens = title_tokens("Paris Paris fashion week")
    assert tokens == frozenset({"paris", "fashion", "week"})
    assert title_tokens("   ") == frozenset()


def test_jaccard_similarity_bounds():
    left = title_tokens("new spring collection revealed")
    right = title_tokens("new spring collection")
    assert jaccard_similarity(left, right) == 0.75
    assert jaccard_similarity(left, left) == 1.0
    assert jaccard_similarity(frozenset(), frozenset()) == 0.0
    assert jaccard_similarity(left, frozenset()) == 0.0


def test_canonical_url_strips_whitespace_only():
    assert canonical_url("  https://a.example.com/Story?id=1 ") == (
        "https://a.example.com/Story?id=1"
    )
    assert canonical_url(None) == ""
