"""
Shared utilities: logging, text cleanup, dates and duplicate helpers.
"""

from .logger import SessionLogger, get_logger, setup_logging

__all__ = [
    "SessionLogger",
    "get_logger",
    "setup_logging",
]
