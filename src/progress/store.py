# src/progress/store.py
# File-backed progress store for crawl sessions
# =============================================

"""
Durable record of what the current (or last) crawl session is doing.

The whole ``SessionProgress`` document lives in one JSON file that is
rewritten on every update: the new content goes to a temporary file in the
same directory and is moved over the old one with ``os.replace``, so a reader
never sees half a document. A missing or unreadable file simply means "no
session yet"; it is never an error.

The store is single-writer. All methods are synchronous read-merge-write
operations without awaits in between, so concurrent region tracks running on
one event loop cannot interleave inside an update. Nothing guards against a
second process writing the same file.
"""

from __future__ import annotations

import json
import os
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from pydantic import ValidationError

from config.settings import PROGRESS_CONFIG
from src.contracts.progress import RegionProgress, SessionProgress, TERMINAL_STATUSES
from src.errors import ProgressStoreError
from src.utils.logger import StructuredLogMixin, get_logger

SESSION_ID_PREFIX = "session-"
GENERIC_REGION_FAILURE = "session aborted before this region finished"

RegionSeed = Tuple[str, str, int]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def session_sequence(session_id: Optional[str]) -> int:
    """Numeric part of a session id; 0 for missing or foreign ids."""
    if not session_id or not session_id.startswith(SESSION_ID_PREFIX):
        return 0
    suffix = session_id[len(SESSION_ID_PREFIX) :]
    return int(suffix) if suffix.isdigit() else 0


class ProgressStore(StructuredLogMixin):
    """Reads and atomically rewrites the session progress file."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path or PROGRESS_CONFIG["file_path"])
        self.module_logger = get_logger().create_module_logger("progress")
        self._log_context: Dict[str, Any] = {}
        self._record: Optional[SessionProgress] = None

    # Reading
    # =======

    def read(self) -> SessionProgress:
        """Current record from disk; defaults when absent or corrupt."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            self._record = SessionProgress()
            return self._record.model_copy(deep=True)
        except OSError as exc:
            self._emit_log("warning", "progress.read_failed", details={"error": str(exc)})
            self._record = SessionProgress()
            return self._record.model_copy(deep=True)

        try:
            self._record = SessionProgress.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError, TypeError) as exc:
            self._emit_log(
                "warning",
                "progress.corrupt",
                details={"path": str(self.path), "error": str(exc)[:200]},
            )
            self._record = SessionProgress()
        return self._record.model_copy(deep=True)

    def _current(self) -> SessionProgress:
        if self._record is None:
            self.read()
        assert self._record is not None
        return self._record

    def processed_sources_for(self, session_id: str) -> Set[str]:
        """
        Sources already handled by ``session_id``.

        Empty unless the stored record belongs to that very session, so a new
        session never skips work recorded by an earlier one.
        """
        record = self._current()
        if record.session_id != session_id:
            return set()
        return set(record.processed_sources)

    # Writing
    # =======

    def write(self, **partial: Any) -> SessionProgress:
        """Merge session-level fields into the record and persist it."""
        record = self._current()
        data = record.model_dump()
        data.update(partial)
        data["updated_at"] = _utcnow()
        updated = SessionProgress.model_validate(data)
        self._persist(updated)
        return updated.model_copy(deep=True)

    def _persist(self, record: SessionProgress) -> None:
        payload = record.model_dump(mode="json", by_alias=True)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                prefix=".progress-",
                suffix=".tmp",
                dir=str(self.path.parent),
                delete=False,
            ) as handle:
                tmp_path = Path(handle.name)
                json.dump(payload, handle, ensure_ascii=False, indent=2)
        except OSError as exc:
            raise ProgressStoreError(f"cannot write progress file {self.path}: {exc}") from exc
        try:
            os.replace(tmp_path, self.path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise ProgressStoreError(f"cannot replace progress file {self.path}: {exc}") from exc
        self._record = record

    def next_session_id(self) -> str:
        """Millisecond timestamp id, strictly above the stored one."""
        candidate = int(time.time() * 1000)
        previous = session_sequence(self._current().session_id)
        return f"{SESSION_ID_PREFIX}{max(candidate, previous + 1)}"

    def start_session(
        self,
        source_ids: Sequence[str],
        regions: Iterable[RegionSeed],
        *,
        target_languages: Optional[Sequence[str]] = None,
        articles_per_language: int = 0,
        session_id: Optional[str] = None,
        processed_sources: Optional[Sequence[str]] = None,
    ) -> str:
        """
        Reset the record for a new session.

        ``regions`` holds ``(language, region, quota)`` triples; one pending
        ``RegionProgress`` is seeded per triple. Passing ``session_id`` and
        ``processed_sources`` keeps an abandoned session's identity when
        resuming it.
        """
        session_id = session_id or self.next_session_id()
        now = _utcnow()
        processed = list(dict.fromkeys(processed_sources or ()))
        seeded: List[RegionProgress] = [
            RegionProgress(language=language, region=region, quota=quota)
            for language, region, quota in regions
        ]
        record = SessionProgress(
            session_id=session_id,
            status="crawling",
            total_sources=len(source_ids),
            completed_sources=len(processed),
            target_languages=list(target_languages or []),
            articles_per_language=articles_per_language,
            start_time=now,
            updated_at=now,
            processed_sources=processed,
            regions=seeded,
        )
        self._persist(record)
        self._emit_log(
            "info",
            "progress.session_started",
            session_id=session_id,
            details={"sources": len(source_ids), "regions": len(seeded)},
        )
        return session_id

    def update_region(self, language: str, region: str, **partial: Any) -> RegionProgress:
        """Upsert the ``(language, region)`` entry with ``partial`` fields."""
        record = self._current()
        regions = [entry.model_copy(deep=True) for entry in record.regions]
        for index, entry in enumerate(regions):
            if entry.key == (language, region):
                data = entry.model_dump()
                data.update(partial)
                regions[index] = RegionProgress.model_validate(data)
                target = regions[index]
                break
        else:
            target = RegionProgress.model_validate(
                {"language": language, "region": region, **partial}
            )
            regions.append(target)
        self.write(regions=[entry.model_dump() for entry in regions])
        return target.model_copy(deep=True)

    def increment(self, language: str, region: str, **deltas: int) -> RegionProgress:
        """
        Add ``deltas`` to a region's counters and to the same session totals.

        Only ``articles_found``, ``articles_processed`` and
        ``articles_polished`` are accepted.
        """
        allowed = {"articles_found", "articles_processed", "articles_polished"}
        unknown = set(deltas) - allowed
        if unknown:
            raise ValueError(f"cannot increment {sorted(unknown)}")
        record = self._current()
        entry = record.region(language, region) or RegionProgress(
            language=language, region=region
        )
        region_values = {key: getattr(entry, key) + value for key, value in deltas.items()}
        session_values = {key: getattr(record, key) + value for key, value in deltas.items()}
        updated = self.update_region(language, region, **region_values)
        self.write(**session_values)
        return updated

    def mark_source_processed(self, source_id: str) -> bool:
        """Record ``source_id`` once; returns False when it was already listed."""
        record = self._current()
        if source_id in record.processed_sources:
            return False
        self.write(
            processed_sources=[*record.processed_sources, source_id],
            completed_sources=record.completed_sources + 1,
        )
        return True

    def finish_session(self, status: str, *, error: Optional[str] = None) -> SessionProgress:
        """
        Move the session to a terminal status.

        ``failed`` first fails every region that has not finished; ``completed``
        requires every region to be terminal already.
        """
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"{status!r} is not a terminal status")
        record = self._current()
        now = _utcnow()
        regions = []
        for entry in record.regions:
            data = entry.model_dump()
            if not entry.is_terminal:
                if status == "completed":
                    raise ValueError(
                        f"region {entry.language}/{entry.region} is still {entry.status}"
                    )
                data.update(status="failed", error=GENERIC_REGION_FAILURE, end_time=now)
            regions.append(data)
        updated = self.write(
            status=status,
            error=error,
            end_time=now,
            current_source=None,
            regions=regions,
        )
        self._emit_log(
            "info" if status == "completed" else "warning",
            "progress.session_finished",
            session_id=record.session_id,
            details={"status": status, "error": error},
        )
        return updated

    def clear(self) -> None:
        """Forget any recorded session."""
        self._persist(SessionProgress(updated_at=_utcnow()))


__all__ = [
    "GENERIC_REGION_FAILURE",
    "ProgressStore",
    "RegionSeed",
    "SESSION_ID_PREFIX",
    "session_sequence",
]
