"""Cron-driven crawl session scheduling."""

from .session_scheduler import (
    ScheduledCrawl,
    SessionScheduler,
    calculate_next_run_time,
    default_schedule,
    validate_cron_expression,
)

__all__ = [
    "ScheduledCrawl",
    "SessionScheduler",
    "calculate_next_run_time",
    "default_schedule",
    "validate_cron_expression",
]
