# src/storage/database.py
# Database manager for the Newsdesk article store
# ===============================================

"""
SQLAlchemy implementation of the ``ArticleStore`` interface.

``DatabaseManager`` hides engine and session handling from the pipeline:
callers hand it validated contracts (``ArticleDraft``, ``ArticleFilter``) and
get contracts back (``Article``, ``Source``), never ORM rows, so nothing
outside this package depends on SQLAlchemy. SQLite is the default backend;
PostgreSQL is selected with ``database.driver = "postgresql"``.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional

from sqlalchemy import create_engine, desc
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config.settings import DATABASE_CONFIG
from src.contracts.article import Article, ArticleDraft, ArticleFilter
from src.contracts.source import Source

from .models import Article as ArticleRow
from .models import Base
from .models import Source as SourceRow

import logging

logger = logging.getLogger(__name__)

_SOURCE_FIELDS = (
    "name",
    "type",
    "url",
    "category",
    "language",
    "country",
    "region",
    "is_active",
    "crawl_interval_minutes",
    "filters",
    "scraping_config",
    "api_config",
)


class DatabaseManager:
    """
    Owns the engine, the session factory and every article/source query.

    One instance per process is enough; ``get_database_manager`` returns the
    shared one built from ``DATABASE_CONFIG``.
    """

    def __init__(self, database_config: Optional[Mapping[str, Any]] = None):
        self.config = dict(database_config or DATABASE_CONFIG)
        self.engine = None
        self.SessionLocal = None
        self._setup_database()

    def _setup_database(self) -> None:
        try:
            backend = self.config.get("type", "sqlite")
            if backend == "sqlite":
                db_path = self.config["path"]
                connect_args = {"check_same_thread": False, "timeout": 20}
                if str(db_path) == ":memory:":
                    # one shared connection, otherwise every checkout sees an empty database
                    self.engine = create_engine(
                        "sqlite://", connect_args=connect_args, poolclass=StaticPool
                    )
                else:
                    db_path = Path(db_path)
                    db_path.parent.mkdir(parents=True, exist_ok=True)
                    self.engine = create_engine(
                        f"sqlite:///{db_path}",
                        echo=False,
                        connect_args=connect_args,
                        pool_pre_ping=True,
                    )
            elif backend == "postgresql":
                database_url = (
                    f"postgresql://{self.config['user']}:{self.config.get('password') or ''}"
                    f"@{self.config['host']}:{self.config['port']}/{self.config['name']}"
                )
                self.engine = create_engine(
                    database_url,
                    echo=False,
                    pool_size=int(self.config.get("pool_size", 5)),
                    max_overflow=int(self.config.get("max_overflow", 10)),
                    pool_pre_ping=True,
                )
            else:
                raise ValueError(f"Unsupported database type: {backend}")

            self.SessionLocal = sessionmaker(
                autocommit=False,
                autoflush=False,
                bind=self.engine,
                expire_on_commit=False,
            )
            Base.metadata.create_all(self.engine)
            logger.info(f"Database ready: {backend}")
        except Exception as e:
            logger.error(f"Database setup failed: {e}")
            raise

    @contextmanager
    def get_session(self) -> Iterator[Session]:
        """
        Transactional scope: commit on success, roll back and re-raise on error.

            with db_manager.get_session() as session:
                session.query(ArticleRow).count()
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database operation failed: {e}")
            raise
        finally:
            session.close()

    # =====================================
    # ARTICLES
    # =====================================

    def create_article(self, draft: ArticleDraft) -> Article:
        with self.get_session() as session:
            row = ArticleRow(**draft.model_dump())
            session.add(row)
            session.flush()
            article = Article.model_validate(row)
        logger.debug(
            f"Article {article.id} stored for {draft.source_id} "
            f"({draft.enrichment_status})"
        )
        return article

    def list_articles(self, article_filter: Optional[ArticleFilter] = None) -> List[Article]:
        article_filter = article_filter or ArticleFilter()
        with self.get_session() as session:
            query = session.query(ArticleRow)
            if article_filter.source_id:
                query = query.filter(ArticleRow.source_id == article_filter.source_id)
            if article_filter.enrichment_status:
                query = query.filter(
                    ArticleRow.enrichment_status == article_filter.enrichment_status
                )
            if article_filter.language:
                query = query.filter(ArticleRow.language == article_filter.language)
            if article_filter.since:
                query = query.filter(ArticleRow.created_at >= article_filter.since)
            query = query.order_by(desc(ArticleRow.created_at), desc(ArticleRow.id))
            if article_filter.limit:
                query = query.limit(article_filter.limit)
            return [Article.model_validate(row) for row in query.all()]

    def count_articles(self) -> int:
        with self.get_session() as session:
            return session.query(ArticleRow).count()

    def get_health_status(self) -> Dict[str, Any]:
        try:
            with self.get_session() as session:
                total_articles = session.query(ArticleRow).count()
                active_sources = (
                    session.query(SourceRow).filter(SourceRow.is_active.is_(True)).count()
                )
        except Exception as e:
            return {"status": "unhealthy", "error": str(e)}
        return {
            "status": "healthy",
            "database_type": self.config.get("type", "sqlite"),
            "total_articles": total_articles,
            "active_sources": active_sources,
        }

    # =====================================
    # SOURCES
    # =====================================

    def find_source_by_id(self, source_id: str) -> Optional[Source]:
        with self.get_session() as session:
            row = session.get(SourceRow, source_id)
            return Source.model_validate(row) if row is not None else None

    def list_active_sources(self) -> List[Source]:
        with self.get_session() as session:
            rows = (
                session.query(SourceRow)
                .filter(SourceRow.is_active.is_(True))
                .order_by(SourceRow.id)
                .all()
            )
            return [Source.model_validate(row) for row in rows]

    def initialize_sources(self, sources_config: Mapping[str, Dict[str, Any]]) -> int:
        """
        Upsert the catalogue into the ``sources`` table.

        Entries are validated through the ``Source`` contract first, so a bad
        catalogue entry fails here rather than in the middle of a crawl.
        """
        validated = [
            Source.from_catalogue(source_id, entry)
            for source_id, entry in sources_config.items()
        ]
        with self.get_session() as session:
            for source in validated:
                values = source.model_dump(include=set(_SOURCE_FIELDS))
                row = session.get(SourceRow, source.id)
                if row is None:
                    session.add(SourceRow(id=source.id, **values))
                else:
                    for key, value in values.items():
                        setattr(row, key, value)
        logger.info(f"{len(validated)} sources initialized/updated")
        return len(validated)

    def record_source_crawl(
        self,
        source_id: str,
        *,
        success: bool,
        articles: int = 0,
        error: Optional[str] = None,
    ) -> None:
        """Update crawl bookkeeping after one source was processed."""
        now = datetime.now(timezone.utc)
        with self.get_session() as session:
            row = session.get(SourceRow, source_id)
            if row is None:
                return
            row.last_crawled_at = now
            if success:
                row.last_success_at = now
                row.total_articles_collected = (row.total_articles_collected or 0) + articles
                row.consecutive_failures = 0
                row.error_message = None
            else:
                row.consecutive_failures = (row.consecutive_failures or 0) + 1
                row.error_message = error

    def get_source_stats(self, source_id: str) -> Dict[str, Any]:
        with self.get_session() as session:
            row = session.get(SourceRow, source_id)
            if row is None:
                return {}
            return {
                "last_crawled_at": row.last_crawled_at,
                "last_success_at": row.last_success_at,
                "total_articles_collected": row.total_articles_collected,
                "consecutive_failures": row.consecutive_failures,
                "error_message": row.error_message,
            }


# Process-wide manager
# ====================

_db_manager: Optional[DatabaseManager] = None


def get_database_manager() -> DatabaseManager:
    """Return the shared manager, creating it from ``DATABASE_CONFIG`` on first use."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager
