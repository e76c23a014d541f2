"""
Storage package for the Newsdesk crawler.

Article store interface, the SQLAlchemy-backed manager and an in-memory
store for dry runs.
"""

from .base import ArticleStore
from .database import DatabaseManager, get_database_manager
from .memory import InMemoryArticleStore
from .models import Base, create_all_tables


def initialize_database(sources_config=None) -> DatabaseManager:
    """Create tables and, when given, upsert the source catalogue."""
    db_manager = get_database_manager()
    if sources_config:
        db_manager.initialize_sources(sources_config)
    return db_manager


__all__ = [
    "ArticleStore",
    "Base",
    "DatabaseManager",
    "InMemoryArticleStore",
    "create_all_tables",
    "get_database_manager",
    "initialize_database",
]
