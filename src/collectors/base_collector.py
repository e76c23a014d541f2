# src/collectors/base_collector.py
# Base class for every source fetcher
# ===================================

"""
Common contract for the three fetch kinds (RSS feeds, scraped listing pages
and JSON APIs).

``BaseFetcher.fetch`` is a template method: it logs the start of a fetch,
delegates extraction to ``_fetch_items`` and logs the outcome. Subclasses only
decide how a response becomes ``CandidateItem`` objects; retries, backoff,
timeouts and the response size guard live in ``_request`` so that every kind
fails the same way, with a ``FetchError`` carrying a reason code.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Mapping, Optional

import httpx

from config.settings import COLLECTION_CONFIG, RATE_LIMITING_CONFIG
from src.contracts.crawl import CandidateItem
from src.contracts.source import Source
from src.errors import FetchError
from src.utils.logger import StructuredLogMixin, get_logger

from .rate_limit_utils import backoff_delay, is_retryable_status

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from src.utils.logger import PipelineLogger

SleepFn = Callable[[float], Awaitable[Any]]


@dataclass
class FetchOutcome:
    """Items a fetcher extracted plus the per-item problems it skipped."""

    items: List[CandidateItem] = field(default_factory=list)
    item_errors: List[str] = field(default_factory=list)

    @property
    def found(self) -> int:
        return len(self.items) + len(self.item_errors)


class BaseFetcher(StructuredLogMixin, ABC):
    """
    Abstract fetcher bound to a shared ``httpx.AsyncClient``.

    The client is owned by the caller (one per session) so connection pools
    are reused across sources.
    """

    fetch_kind = "base"

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        collection_config: Optional[Mapping[str, Any]] = None,
        rate_limiting_config: Optional[Mapping[str, Any]] = None,
        logger_factory: Optional["PipelineLogger"] = None,
        sleep: Optional[SleepFn] = None,
    ) -> None:
        self.client = client
        self.collection_config = dict(collection_config or COLLECTION_CONFIG)
        self.rate_limiting_config = dict(rate_limiting_config or RATE_LIMITING_CONFIG)
        self.logger_factory = logger_factory or get_logger()
        self.module_logger = self.logger_factory.create_module_logger(
            f"collectors.{self.fetch_kind}"
        )
        self._sleep: SleepFn = sleep or asyncio.sleep
        self._log_context: Dict[str, Any] = {"fetch_kind": self.fetch_kind}

    async def fetch(self, source: Source) -> FetchOutcome:
        """Retrieve and parse ``source``; raises ``FetchError`` on total failure."""

        start = time.perf_counter()
        self._emit_log(
            "debug",
            "fetcher.source.start",
            source_id=source.id,
            details={"url": source.url},
        )
        try:
            outcome = await self._fetch_items(source)
        except FetchError as exc:
            if exc.source_id is None:
                exc.source_id = source.id
            self._emit_log(
                "warning",
                "fetcher.source.failed",
                source_id=source.id,
                latency=time.perf_counter() - start,
                details={"reason": exc.reason, "error": str(exc), "url": exc.url},
            )
            raise

        self._emit_log(
            "info",
            "fetcher.source.completed",
            source_id=source.id,
            latency=time.perf_counter() - start,
            details={
                "items": len(outcome.items),
                "item_errors": len(outcome.item_errors),
            },
        )
        return outcome

    @abstractmethod
    async def _fetch_items(self, source: Source) -> FetchOutcome:
        """Kind-specific extraction."""

    async def _request(
        self,
        url: str,
        *,
        source_id: str,
        method: str = "GET",
        timeout: Optional[float] = None,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, Any]] = None,
        json_body: Any = None,
    ) -> httpx.Response:
        """Issue one request with retries on transient failures."""

        max_retries = int(self.rate_limiting_config.get("max_retries", 2))
        request_timeout = timeout or float(
            self.collection_config.get("request_timeout_seconds", 10.0)
        )
        max_bytes = int(self.collection_config.get("max_response_bytes", 10 * 1024 * 1024))
        last_error: Optional[FetchError] = None

        for attempt in range(0, max_retries + 1):
            try:
                response = await self.client.request(
                    method,
                    url,
                    timeout=request_timeout,
                    headers=dict(headers) if headers else None,
                    params=dict(params) if params else None,
                    json=json_body,
                )
            except httpx.TimeoutException as exc:
                last_error = FetchError(
                    f"timed out after {request_timeout}s: {exc}",
                    source_id=source_id,
                    url=url,
                    reason="timeout",
                )
            except httpx.ConnectError as exc:
                last_error = FetchError(
                    f"connection failed: {exc}",
                    source_id=source_id,
                    url=url,
                    reason="network",
                )
            except httpx.HTTPError as exc:
                raise FetchError(
                    f"transport error: {exc}",
                    source_id=source_id,
                    url=url,
                    reason="network",
                ) from exc
            else:
                status = response.status_code
                if is_retryable_status(status, self.rate_limiting_config):
                    last_error = FetchError(
                        f"HTTP {status}",
                        source_id=source_id,
                        url=url,
                        reason="http_status",
                        status_code=status,
                    )
                elif status >= 400:
                    raise FetchError(
                        f"HTTP {status}",
                        source_id=source_id,
                        url=url,
                        reason="http_status",
                        status_code=status,
                    )
                else:
                    size = len(response.content)
                    if size > max_bytes:
                        raise FetchError(
                            f"response of {size} bytes exceeds {max_bytes}",
                            source_id=source_id,
                            url=url,
                            reason="malformed",
                            status_code=status,
                        )
                    return response

            if attempt < max_retries:
                delay = backoff_delay(attempt, self.rate_limiting_config)
                self._emit_log(
                    "debug",
                    "fetcher.request.retry",
                    source_id=source_id,
                    details={
                        "attempt": attempt + 1,
                        "delay": round(delay, 3),
                        "error": str(last_error),
                    },
                )
                await self._sleep(delay)

        assert last_error is not None
        self._emit_log(
            "warning",
            "fetcher.request.retry_exhausted",
            source_id=source_id,
            details={"url": url, "error": str(last_error)},
        )
        raise last_error


def build_http_client(
    collection_config: Optional[Mapping[str, Any]] = None,
) -> httpx.AsyncClient:
    """One client per session with the configured identification headers."""

    cfg = collection_config or COLLECTION_CONFIG
    headers = {
        "User-Agent": cfg["user_agent"],
        "Accept": cfg["accept"],
        "Accept-Language": cfg["accept_language"],
        "Accept-Encoding": "gzip, deflate",
        "Cache-Control": "no-cache",
    }
    return httpx.AsyncClient(
        headers=headers,
        follow_redirects=True,
        timeout=float(cfg["request_timeout_seconds"]),
    )
