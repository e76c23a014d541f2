"""Durable session progress and the read-only progress query."""

from .query import build_progress_snapshot
from .store import ProgressStore

__all__ = ["ProgressStore", "build_progress_snapshot"]
