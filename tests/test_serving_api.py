import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

from src.dedup import DuplicateDetector
from src.pipeline.session import CrawlSessionRunner
from src.progress.store import ProgressStore
from src.scoring import QualityAssessor
from src.serving import create_app
from src.storage.memory import InMemoryArticleStore

from pipeline_fakes import (
    QUIET_QUALITY_CONFIG,
    ScriptedPolisher,
    StubFetcher,
    candidate,
    make_draft,
    make_source,
    outcome,
)


class DummyHttpClient:
    async def aclose(self):
        return None


@pytest.fixture()
def store() -> InMemoryArticleStore:
    store = InMemoryArticleStore([make_source("s1"), make_source("off", is_active=False)])
    store.create_article(make_draft("Stored pending story", "https://stored.example.com/1"))
    store.create_article(
        make_draft(
            "Stored polished story",
            "https://stored.example.com/2",
            enrichment_status="completed",
        )
    )
    store.create_article(
        make_draft("Other source story", "https://other.example.com/3", source_id="other")
    )
    return store


@pytest.fixture()
def runner(tmp_path, store) -> CrawlSessionRunner:
    fetcher = StubFetcher({"s1": outcome([candidate("Wool auction prices rise sharply")])})
    return CrawlSessionRunner(
        store,
        ProgressStore(tmp_path / "progress.json"),
        polisher=ScriptedPolisher(),
        assessor=QualityAssessor(QUIET_QUALITY_CONFIG),
        detector=DuplicateDetector(store, threshold=0.8),
        fetcher_factory=lambda client: fetcher,
        client_factory=DummyHttpClient,
    )


@pytest.fixture()
def client(runner) -> TestClient:
    return TestClient(create_app(runner))


def test_healthz_without_database_details(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "details": {}}


def test_trigger_crawl_runs_session_in_background(client, runner):
    response = client.post(
        "/v1/crawl",
        json={"targetLanguages": ["en"], "articlesPerLanguage": 2, "onlyTodayNews": False},
    )

    assert response.status_code == 202
    body = response.json()
    assert body["started"] is True
    session_id = body["session_id"]

    progress = client.get("/v1/crawl/progress").json()
    assert progress["sessionId"] == session_id
    assert progress["status"] == "completed"
    assert progress["articlesProcessed"] == 1
    assert progress["canResume"] is False
    assert len(runner.store.articles) == 4


def test_trigger_crawl_refuses_while_a_session_is_live(client, runner):
    runner.progress.start_session(["s1"], [("en", "US", 2)])

    response = client.post("/v1/crawl", json={"targetLanguages": ["en"]})

    assert response.status_code == 409
    assert "still running" in response.json()["detail"]


def test_trigger_crawl_validates_source(client):
    assert client.post("/v1/crawl", json={"sourceId": "missing"}).status_code == 404
    assert client.post("/v1/crawl", json={"sourceId": "off"}).status_code == 400
    assert client.post("/v1/crawl", json={"articlesPerLanguage": 0}).status_code == 422
    assert client.post("/v1/crawl", json={"unknownField": 1}).status_code == 422


def test_progress_when_nothing_ran(client):
    snapshot = client.get("/v1/crawl/progress").json()
    assert snapshot["status"] == "idle"
    assert snapshot["totalProgress"] == 0.0
    assert snapshot["regions"] == []


def test_list_articles_filters(client):
    response = client.get("/v1/articles", params={"source_id": "stored", "status": "pending"})
    assert response.status_code == 200
    payload = response.json()
    assert [article["original_title"] for article in payload["data"]] == [
        "Stored pending story"
    ]
    assert payload["filters"] == {
        "source_id": "stored",
        "enrichment_status": "pending",
        "limit": 20,
    }
    assert payload["meta"]["returned"] == 1

    newest_first = client.get("/v1/articles", params={"limit": 2}).json()
    assert [article["original_title"] for article in newest_first["data"]] == [
        "Other source story",
        "Stored polished story",
    ]


def test_list_articles_rejects_bad_parameters(client):
    assert client.get("/v1/articles", params={"status": "archived"}).status_code == 400
    assert client.get("/v1/articles", params={"limit": 0}).status_code == 422
    assert client.get("/v1/articles", params={"limit": 101}).status_code == 422
