import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

from src.dedup import DuplicateDetector
from src.errors import FetchError
from src.pipeline.crawl_job import CrawlJob
from src.scoring import QualityAssessor

from pipeline_fakes import (
    QUIET_QUALITY_CONFIG,
    StubFetcher,
    candidate,
    make_source,
    outcome,
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


def build_job(script, *, detector=None, **kwargs):
    fetcher = StubFetcher(script)
    job = CrawlJob(
        fetcher,
        detector or DuplicateDetector(threshold=0.8),
        QualityAssessor(QUIET_QUALITY_CONFIG),
        timezone_name="UTC",
        **kwargs,
    )
    return job, fetcher


@pytest.mark.anyio
async def test_duplicate_filtered_and_accepted_are_counted():
    detector = DuplicateDetector(threshold=0.8)
    detector.add_content("Cotton prices climb again", "https://news.example.com/known")
    source = make_source("s1", filters={"excluded_keywords": ["sponsored"]})
    items = [
        candidate("Cotton prices climb again", url="https://news.example.com/other"),
        candidate("Sponsored look at autumn coats"),
        candidate("Denim mills report record orders"),
    ]
    job, _ = build_job({"s1": outcome(items)}, detector=detector)

    result = await job.run(source, quota=10)

    assert result.stats() == {
        "found": 3,
        "processed": 3,
        "accepted": 1,
        "duplicate": 1,
        "filtered": 1,
        "failed": 0,
    }
    assert result.status == "completed"
    assert not result.quota_reached
    accepted = result.items[0]
    assert accepted.candidate.title == "Denim mills report record orders"
    assert accepted.source_id == "s1"
    assert accepted.region_key == ("en", "US")
    assert detector.is_duplicate("Denim mills report record orders", "https://x.example.com")


@pytest.mark.anyio
async def test_stops_examining_once_quota_is_met():
    titles = [
        "Wool auction prices rise sharply",
        "Linen exporters face shipping delays",
        "Silk weavers adopt digital looms",
        "Knitwear brands cut wholesale prices",
        "Leather tanneries invest in water recycling",
    ]
    job, _ = build_job({"s1": outcome(candidate(title) for title in titles)})

    result = await job.run(make_source("s1"), quota=2)

    assert result.accepted == 2
    assert result.processed == 2
    assert result.found == 5
    assert result.quota_reached
    assert [item.candidate.title for item in result.items] == titles[:2]


@pytest.mark.anyio
async def test_source_limit_is_used_without_explicit_quota():
    titles = ["Wool auction prices rise sharply", "Linen exporters face shipping delays"]
    job, _ = build_job({"s1": outcome(candidate(title) for title in titles)})
    source = make_source("s1", filters={"max_articles_per_crawl": 1})

    result = await job.run(source)

    assert result.accepted == 1
    assert result.quota_reached


@pytest.mark.anyio
async def test_item_errors_count_as_failed():
    job, _ = build_job(
        {
            "s1": outcome(
                [candidate("Wool auction prices rise sharply")],
                errors=["item 2: missing title or link"],
            )
        }
    )

    result = await job.run(make_source("s1"), quota=5)

    assert result.found == 2
    assert result.failed == 1
    assert result.accepted == 1
    assert "item 2: missing title or link" in result.errors


@pytest.mark.anyio
async def test_fetch_error_propagates():
    error = FetchError("feed unreachable", source_id="s1", reason="timeout")
    job, fetcher = build_job({"s1": error})

    with pytest.raises(FetchError) as excinfo:
        await job.run(make_source("s1"), quota=5)

    assert excinfo.value.reason == "timeout"
    assert fetcher.calls == ["s1"]


@pytest.mark.anyio
async def test_only_today_filters_older_items_and_keeps_undated_ones():
    now = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
    items = [
        candidate(
            "Yesterday's runway recap in full",
            published_at=datetime(2026, 3, 9, 18, 0, tzinfo=timezone.utc),
        ),
        candidate(
            "Morning briefing on cotton futures",
            published_at=datetime(2026, 3, 10, 7, 30, tzinfo=timezone.utc),
        ),
        candidate("Undated note on mill capacity"),
    ]
    job, _ = build_job(
        {"s1": outcome(items)}, only_today_news=True, clock=lambda: now
    )

    result = await job.run(make_source("s1"), quota=10)

    assert result.filtered == 1
    assert [item.candidate.title for item in result.items] == [
        "Morning briefing on cotton futures",
        "Undated note on mill capacity",
    ]


@pytest.mark.anyio
async def test_content_filters():
    source = make_source(
        "s1",
        filters={"required_keywords": ["cotton"], "min_content_length": 50},
    )
    items = [
        candidate("Silk weavers adopt digital looms", content="Looms. " * 20),
        candidate("Cotton note", content="cotton"),
        candidate("Cotton harvest beats forecasts"),
    ]
    job, _ = build_job({"s1": outcome(items)})

    result = await job.run(source, quota=10)

    assert result.filtered == 2
    assert [item.candidate.title for item in result.items] == [
        "Cotton harvest beats forecasts"
    ]


@pytest.mark.anyio
async def test_quality_gate_uses_source_threshold():
    strict = make_source("strict", filters={"min_quality_score": 100})
    lenient = make_source("lenient", filters={"min_quality_score": 0})
    short = [candidate("Short body story", content="Tiny body.")]

    job, _ = build_job({"strict": outcome(short), "lenient": outcome(short)})
    strict_result = await job.run(strict, quota=5)
    assert strict_result.filtered == 1
    assert strict_result.accepted == 0

    job, _ = build_job({"strict": outcome(short), "lenient": outcome(short)})
    lenient_result = await job.run(lenient, quota=5)
    assert lenient_result.accepted == 1
    assert lenient_result.items[0].quality_score < 100
