"""Structured logging helpers shared by pipeline components."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Tuple

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from loguru import logger

from src.utils.logger import SessionLogger, StructuredLogMixin


class RecordingLogger:
    def __init__(self) -> None:
        self.records: List[Tuple[str, Any]] = []

    def info(self, message: Any) -> None:
        self.records.append(("info", message))

    def warning(self, message: Any) -> None:
        self.records.append(("warning", message))


class Component(StructuredLogMixin):
    def __init__(self, context: Dict[str, Any]) -> None:
        self.module_logger = RecordingLogger()
        self._log_context = context


def test_emit_log_merges_context_and_drops_empty_fields():
    component = Component({"session_id": "session-1", "region": "en/US"})

    component._emit_log(
        "info",
        "crawl.job.completed",
        source_id="wwd",
        latency=0.123456,
        details={"accepted": 2},
        attempt=None,
    )

    level, payload = component.module_logger.records[0]
    assert level == "info"
    assert payload == {
        "event": "crawl.job.completed",
        "session_id": "session-1",
        "region": "en/US",
        "source_id": "wwd",
        "latency": 0.1235,
        "details": {"accepted": 2},
    }


def test_emit_log_uses_requested_level():
    component = Component({})

    component._emit_log("warning", "crawl.job.item_failed")

    assert component.module_logger.records == [
        ("warning", {"event": "crawl.job.item_failed"})
    ]


def test_session_logger_narrates_sources():
    messages: List[str] = []
    sink_id = logger.add(lambda message: messages.append(str(message)), format="{message}")
    try:
        session_logger = SessionLogger("session-9")
        session_logger.log_session_start(3, 2)
        session_logger.log_source_processing(
            "wwd", "completed", {"accepted": 2, "found": 5, "duplicate": 1}
        )
        session_logger.log_source_processing("vogue", "failed", {"error": "timeout"})
    finally:
        logger.remove(sink_id)

    output = "".join(messages)
    assert "Session session-9 started: 3 sources across 2 regions" in output
    assert "wwd: 2/5 accepted (dup=1, filtered=0, failed=0)" in output
    assert "vogue: failed - timeout" in output
