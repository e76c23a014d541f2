import sys
from pathlib import Path

from hypothesis import given, settings
from hypothesis import strategies as st

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

from src.dedup import DuplicateDetector
from src.storage.memory import InMemoryArticleStore
from src.utils.dedupe import canonical_title, jaccard_similarity, title_tokens

from pipeline_fakes import make_draft

TEN_WORDS = "cotton prices climb as mills restock ahead of autumn season"


def test_url_and_exact_title_matches_are_duplicates():
    detector = DuplicateDetector(threshold=0.8)
    detector.add_content("Cotton prices climb", "https://news.example.com/a")

    assert detector.is_duplicate("Entirely different", "https://news.example.com/a")
    assert detector.is_duplicate("  COTTON   prices climb ", "https://news.example.com/b")
    assert not detector.is_duplicate("Silk exports slow", "https://news.example.com/c")


def test_similarity_must_exceed_threshold():
    detector = DuplicateDetector(threshold=0.8)
    detector.add_content(TEN_WORDS, "https://news.example.com/a")

    # one extra token: 10/11 shared
    assert detector.is_duplicate(TEN_WORDS + " again", "https://news.example.com/b")
    # one replaced token out of nine: 8/10 shared, not above 0.8
    nine_words = " ".join(TEN_WORDS.split()[:9])
    changed = nine_words.replace("autumn", "spring")
    fresh = DuplicateDetector(threshold=0.8)
    fresh.add_content(nine_words, "https://news.example.com/c")
    assert not fresh.is_duplicate(changed, "https://news.example.com/d")


def test_hydrates_once_from_store():
    store = InMemoryArticleStore()
    store.create_article(
        make_draft(
            "Denim makers bet on recycled fibres",
            "https://stored.example.com/1",
            title={"zh": "牛仔布厂商押注再生纤维"},
        )
    )
    detector = DuplicateDetector(store, threshold=0.8)

    assert not detector.is_hydrated
    assert detector.is_duplicate("牛仔布厂商押注再生纤维", "https://other.example.com/x")
    assert detector.is_duplicate("Denim makers bet on recycled fibres", "https://x.example.com")
    assert detector.is_duplicate("Something else", "https://stored.example.com/1")
    assert detector.is_hydrated
    assert detector.hydrate() == 0


def test_reset_only_forces_rehydration():
    store = InMemoryArticleStore()
    store.create_article(make_draft("Stored headline", "https://stored.example.com/1"))
    detector = DuplicateDetector(store)
    detector.add_content("Accepted this session", "https://session.example.com/1")

    before = [
        detector.is_duplicate("Stored headline", "https://n.example.com/1"),
        detector.is_duplicate("Accepted this session", "https://n.example.com/2"),
        detector.is_duplicate("Brand new story", "https://n.example.com/3"),
    ]
    detector.reset()
    detector.reset()
    assert not detector.is_hydrated
    assert detector.hydrate() == 1
    after = [
        detector.is_duplicate("Stored headline", "https://n.example.com/1"),
        detector.is_duplicate("Accepted this session", "https://n.example.com/2"),
        detector.is_duplicate("Brand new story", "https://n.example.com/3"),
    ]
    assert before == after == [True, True, False]


def test_empty_titles_are_never_similar():
    assert jaccard_similarity(frozenset(), frozenset()) == 0.0
    assert title_tokens("   ") == frozenset()
    assert canonical_title(" A  b ") == "a b"


WORDS = st.lists(st.sampled_from(["cotton", "silk", "wool", "denim", "linen", "knit"]), max_size=6)


@given(WORDS, WORDS)
@settings(max_examples=100)
def test_jaccard_is_symmetric_and_bounded(left, right):
    a = title_tokens(" ".join(left))
    b = title_tokens(" ".join(right))
    assert jaccard_similarity(a, b) == jaccard_similarity(b, a)
    assert 0.0 <= jaccard_similarity(a, b) <= 1.0
    if a:
        assert jaccard_similarity(a, a) == 1.0
