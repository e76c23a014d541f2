"""Retry classification and exponential backoff for remote fetches."""

from __future__ import annotations

import random
from typing import Any, Callable, Dict, Mapping, Optional

from config.settings import RATE_LIMITING_CONFIG


def is_retryable_status(
    status_code: int, config: Optional[Mapping[str, Any]] = None
) -> bool:
    cfg = config if config is not None else RATE_LIMITING_CONFIG
    return status_code in set(cfg.get("retry_statuses", (429, 500, 502, 503, 504)))


def backoff_delay(
    attempt: int,
    config: Optional[Mapping[str, Any]] = None,
    *,
    jitter: Optional[Callable[[float, float], float]] = None,
) -> float:
    """``min(backoff_max, backoff_base * 2**attempt + U(0, jitter_max))``."""

    cfg: Dict[str, Any] = dict(config if config is not None else RATE_LIMITING_CONFIG)
    base = float(cfg.get("backoff_base", 0.5))
    max_b = float(cfg.get("backoff_max", 10.0))
    jitter_fn = jitter or random.uniform
    extra = jitter_fn(0, float(cfg.get("jitter_max", 0.3)))
    return min(max_b, (base * (2**attempt)) + extra)
