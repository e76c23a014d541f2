import asyncio
import sys
from pathlib import Path

import httpx
import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

from src.contracts.crawl import AcceptedItem
from src.enrichment import (
    ChatCompletionPolisher,
    EnrichmentStage,
    PassthroughPolisher,
    build_polisher,
    clean_ai_response,
)
from src.errors import EnrichmentError
from src.progress.store import ProgressStore
from src.storage.memory import InMemoryArticleStore

from pipeline_fakes import GOOD_BODY, ScriptedPolisher, candidate, make_source

LLM_CONFIG = {
    "provider": "chat_completions",
    "api_url": "https://llm.example.com/v1/chat/completions",
    "api_key": "test-key",
    "model": "test-model",
    "source_language": "zh",
}


@pytest.fixture
def anyio_backend():
    return "asyncio"


class DummyResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no json body")
        return self._payload


class DummyClient:
    def __init__(self, response=None, error=None):
        self.response = response or DummyResponse(
            payload={"choices": [{"message": {"content": "Refined article text"}}]}
        )
        self.error = error
        self.calls = []

    async def post(self, url, json=None, headers=None):
        self.calls.append({"url": url, "json": json, "headers": headers})
        if self.error is not None:
            raise self.error
        return self.response


def accepted(title, source, score=60):
    return AcceptedItem.from_candidate(candidate(title), source, score, False)


def seeded_progress(tmp_path, regions):
    progress = ProgressStore(tmp_path / "progress.json")
    progress.start_session(["s1"], regions, target_languages=["zh", "en"])
    return progress


@pytest.mark.anyio
async def test_failed_item_keeps_original_text_and_the_rest_continue(tmp_path):
    source = make_source("s1", language="zh", country="CN")
    progress = seeded_progress(tmp_path, [("zh", "CN", 2)])
    store = InMemoryArticleStore()
    polisher = ScriptedPolisher(fail_titles={"秋冬新品发布"})
    stage = EnrichmentStage(polisher, store, progress, target_languages=["zh", "en"])

    report = await stage.run(
        {("zh", "CN"): [accepted("上海时装周开幕", source), accepted("秋冬新品发布", source)]}
    )

    assert (report.completed, report.failed, report.pending) == (1, 1, 0)
    first, second = store.list_articles()[::-1]
    assert first.enrichment_status == "completed"
    assert first.title == {"zh": "[zh] 上海时装周开幕", "en": "[en] 上海时装周开幕"}
    assert set(first.content) == {"zh", "en"}
    assert first.original_title == "上海时装周开幕"
    assert second.enrichment_status == "failed"
    assert second.title == {"zh": "秋冬新品发布"}
    assert second.content == {"zh": GOOD_BODY}
    assert "model unavailable" in second.enrichment_error

    record = progress.read()
    assert record.articles_polished == 2
    region = record.region("zh", "CN")
    assert region.status == "completed"
    assert region.articles_polished == 2
    assert region.current_source is None


@pytest.mark.anyio
async def test_disabled_polishing_stores_pending_articles(tmp_path):
    source = make_source("s1")
    progress = seeded_progress(tmp_path, [("en", "US", 1)])
    store = InMemoryArticleStore()
    polisher = ScriptedPolisher()
    stage = EnrichmentStage(
        polisher, store, progress, target_languages=["en"], enable_polishing=False
    )

    report = await stage.run({("en", "US"): [accepted("Wool auction prices rise", source)]})

    assert report.pending == 1
    assert polisher.calls == []
    article = store.list_articles()[0]
    assert article.enrichment_status == "pending"
    assert article.title == {"en": "Wool auction prices rise"}
    assert article.slug == "wool-auction-prices-rise"
    assert article.summary["en"].endswith("...")
    assert "wool" in article.keywords


@pytest.mark.anyio
async def test_failed_region_keeps_its_status_but_items_are_stored(tmp_path):
    source = make_source("s1")
    progress = seeded_progress(tmp_path, [("en", "US", 1)])
    progress.update_region("en", "US", status="failed", error="track broke")
    store = InMemoryArticleStore()
    stage = EnrichmentStage(ScriptedPolisher(), store, progress, target_languages=["en"])

    await stage.run({("en", "US"): [accepted("Wool auction prices rise", source)]})

    assert len(store.articles) == 1
    assert progress.read().region("en", "US").status == "failed"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("润色后的标题：秋冬新品发布会亮相上海", "秋冬新品发布会亮相上海"),
        (
            'Here is the polished title: "Autumn collections arrive early"',
            "Autumn collections arrive early",
        ),
        ("秋冬新品发布会亮相上海。希望这个润色版本符合您的要求", "秋冬新品发布会亮相上海。"),
        ("  Plain answer without preamble  ", "Plain answer without preamble"),
        ("Ok", "Ok"),
        ("润色后的标题：短", "润色后的标题：短"),
    ],
)
def test_clean_ai_response(raw, expected):
    assert clean_ai_response(raw) == expected


@pytest.mark.anyio
async def test_same_language_polish_makes_one_call_per_field():
    client = DummyClient()
    polisher = ChatCompletionPolisher(LLM_CONFIG, client=client)

    result = await polisher.polish("标题内容", "正文内容", "摘要内容", "zh", source_language="zh")

    assert result == ("Refined article text",) * 3
    assert len(client.calls) == 3
    call = client.calls[0]
    assert call["url"] == LLM_CONFIG["api_url"]
    assert call["headers"]["Authorization"] == "Bearer test-key"
    assert call["json"]["model"] == "test-model"
    assert call["json"]["stream"] is False


@pytest.mark.anyio
async def test_cross_language_polish_translates_first():
    client = DummyClient()
    polisher = ChatCompletionPolisher(LLM_CONFIG, client=client)

    await polisher.polish("标题内容", "正文内容", "摘要内容", "en", source_language="zh")

    assert len(client.calls) == 6
    prompts = [call["json"]["messages"][0]["content"] for call in client.calls]
    assert sum(prompt.startswith("Please translate") for prompt in prompts) == 3


@pytest.mark.anyio
async def test_blank_fields_are_not_sent():
    client = DummyClient()
    polisher = ChatCompletionPolisher(LLM_CONFIG, client=client)

    result = await polisher.polish("标题内容", "", "  ", "zh")

    assert len(client.calls) == 1
    assert result.body == ""


@pytest.mark.anyio
@pytest.mark.parametrize(
    "client",
    [
        DummyClient(response=DummyResponse(status_code=500)),
        DummyClient(response=DummyResponse(payload={"choices": []})),
        DummyClient(response=DummyResponse(payload={"choices": [{"message": {"content": " "}}]})),
        DummyClient(error=httpx.ConnectError("connection refused")),
    ],
)
async def test_model_failures_raise_enrichment_error(client):
    polisher = ChatCompletionPolisher(LLM_CONFIG, client=client)

    with pytest.raises(EnrichmentError):
        await polisher.polish("标题内容", "正文内容", "摘要内容", "zh")


class SlowFieldClient(DummyClient):
    """Fails the title request at once while the other fields are still in flight."""

    async def post(self, url, json=None, headers=None):
        self.calls.append({"url": url, "json": json, "headers": headers})
        if json["messages"][0]["content"].endswith("标题内容"):
            return DummyResponse(status_code=500)
        await asyncio.sleep(0.05)
        return self.response


@pytest.mark.anyio
async def test_failed_field_cancels_the_other_model_calls():
    client = SlowFieldClient()
    polisher = ChatCompletionPolisher(LLM_CONFIG, client=client)

    with pytest.raises(EnrichmentError):
        await polisher.polish("标题内容", "正文内容", "摘要内容", "en", source_language="zh")
    calls_at_failure = len(client.calls)
    await asyncio.sleep(0.2)

    assert calls_at_failure == 3
    assert len(client.calls) == calls_at_failure


@pytest.mark.anyio
async def test_missing_api_key_fails_without_calling_the_model():
    client = DummyClient()
    polisher = ChatCompletionPolisher({**LLM_CONFIG, "api_key": None}, client=client)

    with pytest.raises(EnrichmentError):
        await polisher.polish("标题内容", "正文内容", "摘要内容", "zh")
    assert client.calls == []


@pytest.mark.anyio
async def test_build_polisher_selects_provider():
    assert isinstance(build_polisher({"provider": "passthrough"}), PassthroughPolisher)
    assert isinstance(
        build_polisher({**LLM_CONFIG, "api_key": None}), PassthroughPolisher
    )
    polisher = build_polisher(LLM_CONFIG)
    assert isinstance(polisher, ChatCompletionPolisher)
    await polisher.aclose()

    passthrough = PassthroughPolisher()
    assert await passthrough.polish("t", "b", "s", "fr") == ("t", "b", "s")
