"""Exception taxonomy shared by the crawl and enrichment pipeline."""

from __future__ import annotations

from typing import Optional

FETCH_REASONS = ("network", "timeout", "http_status", "malformed", "unsupported")


class PipelineError(RuntimeError):
    """Base class for every error raised by the pipeline."""


class FetchError(PipelineError):
    """A source could not be retrieved or parsed as a whole."""

    def __init__(
        self,
        message: str,
        *,
        source_id: Optional[str] = None,
        url: Optional[str] = None,
        reason: str = "network",
        status_code: Optional[int] = None,
    ) -> None:
        if reason not in FETCH_REASONS:
            raise ValueError(f"unknown fetch failure reason: {reason}")
        super().__init__(message)
        self.source_id = source_id
        self.url = url
        self.reason = reason
        self.status_code = status_code

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"{base} (reason={self.reason}, status={self.status_code})"
        return f"{base} (reason={self.reason})"


class EnrichmentError(PipelineError):
    """The enrichment capability failed for one item."""


class SessionAbort(PipelineError):
    """A whole session had to stop, e.g. because progress could not be persisted."""


class SessionAlreadyRunning(PipelineError):
    """Another live session owns the progress store."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"session {session_id} is still running")
        self.session_id = session_id


class SourceNotFound(PipelineError):
    def __init__(self, source_id: str) -> None:
        super().__init__(f"source {source_id} does not exist")
        self.source_id = source_id


class SourceInactive(PipelineError):
    def __init__(self, source_id: str) -> None:
        super().__init__(f"source {source_id} is not active")
        self.source_id = source_id


class ProgressStoreError(PipelineError):
    """The progress file could not be written."""


# Expected rejections
# ===================
# Raised and caught inside the crawl job only; ``category`` is the counter key.


class CandidateRejection(Exception):
    category = "failed"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class DuplicateRejection(CandidateRejection):
    category = "duplicate"


class FilterRejection(CandidateRejection):
    category = "filtered"


class QualityRejection(CandidateRejection):
    category = "filtered"

    def __init__(self, score: int, threshold: int) -> None:
        super().__init__(f"quality score {score} below {threshold}")
        self.score = score
        self.threshold = threshold


__all__ = [
    "CandidateRejection",
    "DuplicateRejection",
    "EnrichmentError",
    "FETCH_REASONS",
    "FetchError",
    "FilterRejection",
    "PipelineError",
    "ProgressStoreError",
    "QualityRejection",
    "SessionAbort",
    "SessionAlreadyRunning",
    "SourceInactive",
    "SourceNotFound",
]
