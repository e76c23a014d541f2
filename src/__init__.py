"""
Main package of the Newsdesk crawler.

Holds the functional modules: fetchers, quality gate, duplicate detection,
crawl pipeline, enrichment, progress tracking, storage and utilities.
"""

from config.version import PROJECT_VERSION, PYTHON_REQUIRES_SPECIFIER

from .pipeline import CrawlSessionRunner, SessionParams, SessionReport
from .progress import ProgressStore, build_progress_snapshot
from .serving import create_app
from .storage import DatabaseManager, InMemoryArticleStore, get_database_manager
from .utils import get_logger, setup_logging

__version__ = PROJECT_VERSION
__description__ = (
    "Multi-region news crawler with quality gating, deduplication and enrichment"
)

__package_info__ = {
    "name": "newsdesk_crawler",
    "version": __version__,
    "description": __description__,
    "author": "Newsdesk Team",
    "license": "MIT",
    "python_requires": PYTHON_REQUIRES_SPECIFIER,
}

__all__ = [
    "CrawlSessionRunner",
    "DatabaseManager",
    "InMemoryArticleStore",
    "ProgressStore",
    "SessionParams",
    "SessionReport",
    "build_progress_snapshot",
    "create_app",
    "get_database_manager",
    "get_logger",
    "setup_logging",
]
