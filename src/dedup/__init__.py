"""Duplicate detection for crawled candidates."""

from .detector import DuplicateDetector

__all__ = ["DuplicateDetector"]
