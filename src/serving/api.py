"""HTTP surface for triggering crawl sessions and reading their progress."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel, ValidationError

from config.version import PROJECT_VERSION
from src.contracts.article import ArticleFilter
from src.errors import SessionAlreadyRunning, SourceInactive, SourceNotFound
from src.pipeline.session import CrawlSessionRunner, SessionParams
from src.progress.query import build_progress_snapshot
from src.storage.base import ArticleStore
from src.storage.database import get_database_manager
from src.utils.logger import get_logger


class CrawlAccepted(BaseModel):
    started: bool
    session_id: str


class ArticlesEnvelope(BaseModel):
    data: List[Dict[str, Any]]
    filters: Dict[str, Any]
    meta: Dict[str, Any]


def create_app(
    runner: Optional[CrawlSessionRunner] = None,
    store: Optional[ArticleStore] = None,
) -> FastAPI:
    """Create a configured FastAPI application."""

    article_store = store or (runner.store if runner is not None else get_database_manager())
    session_runner = runner or CrawlSessionRunner(article_store)
    api_logger = get_logger().create_module_logger("serving")
    app = FastAPI(title="Newsdesk Crawler API", version=PROJECT_VERSION)

    def get_runner() -> CrawlSessionRunner:
        return session_runner

    def get_store() -> ArticleStore:
        return article_store

    async def run_session(params: SessionParams, session_id: str) -> None:
        try:
            report = await session_runner.start(params, session_id=session_id)
        except (SessionAlreadyRunning, SourceNotFound, SourceInactive) as exc:
            api_logger.warning(
                {
                    "event": "serving.crawl.refused",
                    "session_id": session_id,
                    "details": {"error": str(exc), "type": type(exc).__name__},
                }
            )
            return
        api_logger.info(
            {
                "event": "serving.crawl.finished",
                "session_id": report.session_id,
                "details": {"status": report.status, "totals": report.totals},
            }
        )

    @app.get("/healthz")
    def health_probe(manager: ArticleStore = Depends(get_store)) -> Dict[str, Any]:
        health = getattr(manager, "get_health_status", None)
        if health is None:
            return {"status": "ok", "details": {}}
        status = health()
        return {
            "status": "ok" if status.get("status") == "healthy" else "degraded",
            "details": status,
        }

    @app.post("/v1/crawl", status_code=202, response_model=CrawlAccepted)
    def trigger_crawl(
        background_tasks: BackgroundTasks,
        params: Optional[SessionParams] = None,
        crawl_runner: CrawlSessionRunner = Depends(get_runner),
    ) -> CrawlAccepted:
        params = params or SessionParams()
        try:
            crawl_runner.ensure_not_running()
            crawl_runner.resolve_sources(params)
        except SessionAlreadyRunning as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except SourceNotFound as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except SourceInactive as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        session_id = crawl_runner.progress.next_session_id()
        background_tasks.add_task(run_session, params, session_id)
        return CrawlAccepted(started=True, session_id=session_id)

    @app.get("/v1/crawl/progress")
    def crawl_progress(
        crawl_runner: CrawlSessionRunner = Depends(get_runner),
    ) -> Dict[str, Any]:
        return build_progress_snapshot(
            crawl_runner.progress.read(),
            stale_after_minutes=crawl_runner.stale_after_minutes,
        )

    @app.get("/v1/articles", response_model=ArticlesEnvelope)
    def list_articles(
        source_id: Optional[str] = Query(None),
        status: Optional[str] = Query(None),
        limit: int = Query(20, ge=1, le=100),
        manager: ArticleStore = Depends(get_store),
    ) -> ArticlesEnvelope:
        try:
            article_filter = ArticleFilter(
                source_id=source_id, enrichment_status=status, limit=limit
            )
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail="invalid article filter") from exc

        articles = manager.list_articles(article_filter)
        return ArticlesEnvelope(
            data=[article.model_dump(mode="json") for article in articles],
            filters=article_filter.as_dict(),
            meta={
                "returned": len(articles),
                "generated_at": datetime.now(timezone.utc).isoformat(),
            },
        )

    return app


__all__ = ["create_app"]
