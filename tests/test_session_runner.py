import sys
from datetime import timedelta
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

from src.contracts.progress import SessionProgress
from src.dedup import DuplicateDetector
from src.errors import (
    ProgressStoreError,
    SessionAlreadyRunning,
    SourceInactive,
    SourceNotFound,
)
from src.pipeline.session import CrawlSessionRunner, SessionParams, is_session_live
from src.progress.store import ProgressStore
from src.scoring import QualityAssessor
from src.storage.memory import InMemoryArticleStore
from src.utils.datetime_utils import utc_now

from pipeline_fakes import (
    QUIET_QUALITY_CONFIG,
    ScriptedPolisher,
    StubFetcher,
    candidate,
    make_source,
    outcome,
)

EN_TITLES = [
    "Wool auction prices rise sharply",
    "Linen exporters face shipping delays",
    "Silk weavers adopt digital looms",
]


@pytest.fixture
def anyio_backend():
    return "asyncio"


class DummyHttpClient:
    def __init__(self):
        self.closed = False

    async def aclose(self):
        self.closed = True


class ExplodingProgressStore(ProgressStore):
    def increment(self, language, region, **deltas):
        raise ProgressStoreError("disk full")


def default_sources():
    return [
        make_source("s1"),
        make_source("z1", language="zh", country="CN"),
        make_source("s2"),
        make_source("off", is_active=False),
    ]


def default_script():
    return {
        "s1": outcome(candidate(title) for title in EN_TITLES),
        "z1": outcome([candidate("上海时装周开幕")]),
        "s2": outcome([candidate("Knitwear brands cut wholesale prices")]),
    }


def build_runner(tmp_path, *, progress=None, script=None, clock=None, polisher=None):
    store = InMemoryArticleStore(default_sources())
    fetcher = StubFetcher(script or default_script())
    clients = []

    def client_factory():
        client = DummyHttpClient()
        clients.append(client)
        return client

    runner = CrawlSessionRunner(
        store,
        progress or ProgressStore(tmp_path / "progress.json"),
        polisher=polisher or ScriptedPolisher(),
        assessor=QualityAssessor(QUIET_QUALITY_CONFIG),
        detector=DuplicateDetector(store, threshold=0.8),
        fetcher_factory=lambda client: fetcher,
        client_factory=client_factory,
        stale_after_minutes=30,
        clock=clock,
    )
    return runner, store, fetcher, clients


def params(**overrides):
    values = {
        "target_languages": ["zh", "en"],
        "articles_per_language": 2,
        "only_today_news": False,
        "enable_polishing": True,
    }
    values.update(overrides)
    return SessionParams(**values)


def test_session_params_accept_camel_case_and_normalize_languages():
    parsed = SessionParams.model_validate(
        {"targetLanguages": [" EN", "zh", "en"], "articlesPerLanguage": 3}
    )
    assert parsed.target_languages == ["en", "zh"]
    assert parsed.articles_per_language == 3

    with pytest.raises(ValueError):
        SessionParams(target_languages=[" "])
    with pytest.raises(ValueError):
        SessionParams(articles_per_language=0)


@pytest.mark.anyio
async def test_full_session_crawls_enriches_and_completes(tmp_path):
    runner, store, fetcher, clients = build_runner(tmp_path)

    report = await runner.start(params())

    assert report.succeeded
    assert fetcher.calls == ["s1", "z1"]
    assert [(region.language, region.region) for region in report.regions] == [
        ("en", "US"),
        ("zh", "CN"),
    ]
    en, zh = report.regions
    assert (en.articles_processed, en.articles_polished) == (2, 2)
    assert (zh.articles_processed, zh.articles_polished) == (1, 1)
    assert en.status == zh.status == "completed"
    assert report.totals["articles_processed"] == 3
    assert report.totals["articles_polished"] == 3

    assert len(store.articles) == 3
    assert all(set(article.title) == {"zh", "en"} for article in store.articles)
    assert all(article.enrichment_status == "completed" for article in store.articles)
    assert [client.closed for client in clients] == [True]

    record = runner.progress.read()
    assert record.status == "completed"
    assert record.session_id == report.session_id
    assert record.end_time is not None


@pytest.mark.anyio
async def test_second_session_skips_already_stored_stories(tmp_path):
    runner, store, _, _ = build_runner(tmp_path)
    await runner.start(params())

    report = await runner.start(params())

    assert report.succeeded
    # the third English story and the one from the second feed were unseen
    assert report.totals["articles_processed"] == 2
    assert report.regions[1].message == "no articles found"
    assert len(store.articles) == 5


@pytest.mark.anyio
async def test_single_source_session_ignores_language_filter(tmp_path):
    runner, store, fetcher, _ = build_runner(tmp_path)

    report = await runner.start(params(source_id="z1", target_languages=["en"]))

    assert report.succeeded
    assert fetcher.calls == ["z1"]
    assert store.articles[0].title == {"en": "[en] 上海时装周开幕"}


@pytest.mark.anyio
async def test_live_session_blocks_a_new_one(tmp_path):
    progress = ProgressStore(tmp_path / "progress.json")
    running_id = progress.start_session(["s1"], [("en", "US", 2)])
    runner, _, fetcher, _ = build_runner(tmp_path, progress=progress)

    with pytest.raises(SessionAlreadyRunning) as excinfo:
        await runner.start(params())

    assert excinfo.value.session_id == running_id
    assert fetcher.calls == []
    assert progress.read().session_id == running_id


@pytest.mark.anyio
async def test_unknown_or_inactive_source_is_refused_before_any_write(tmp_path):
    runner, _, fetcher, _ = build_runner(tmp_path)

    with pytest.raises(SourceNotFound):
        await runner.start(params(source_id="missing"))
    with pytest.raises(SourceInactive):
        await runner.start(params(source_id="off"))

    assert fetcher.calls == []
    assert not runner.progress.path.exists()


@pytest.mark.anyio
async def test_announced_session_id_is_used(tmp_path):
    runner, _, _, _ = build_runner(tmp_path)

    report = await runner.start(params(), session_id="session-99999999999999")

    assert report.session_id == "session-99999999999999"


@pytest.mark.anyio
async def test_resume_skips_sources_the_abandoned_session_finished(tmp_path):
    progress = ProgressStore(tmp_path / "progress.json")
    progress.start_session(["s1", "s2"], [("en", "US", 2)], session_id="session-7")
    progress.mark_source_processed("s1")

    def later():
        return utc_now() + timedelta(hours=2)

    runner, _, fetcher, _ = build_runner(tmp_path, progress=progress, clock=later)

    report = await runner.start(params(target_languages=["en"]), resume=True)

    assert report.session_id == "session-7"
    assert fetcher.calls == ["s2"]
    assert progress.read().processed_sources == ["s1", "s2"]


@pytest.mark.anyio
async def test_progress_failure_ends_session_as_failed(tmp_path):
    progress = ExplodingProgressStore(tmp_path / "progress.json")
    runner, store, _, clients = build_runner(tmp_path, progress=progress)

    report = await runner.start(params())

    assert report.status == "failed"
    assert "crawl phase aborted" in report.error
    assert all(region.status == "failed" for region in report.regions)
    assert store.articles == []
    assert clients[0].closed


def test_is_session_live():
    now = utc_now()
    active = SessionProgress(status="crawling", updated_at=now - timedelta(minutes=5))
    stale = SessionProgress(status="crawling", updated_at=now - timedelta(minutes=45))
    done = SessionProgress(status="completed", updated_at=now)

    assert is_session_live(active, now, 30)
    assert not is_session_live(stale, now, 30)
    assert not is_session_live(done, now, 30)