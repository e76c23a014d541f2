"""Synchronous reachability check for configured sources."""

from __future__ import annotations

import time
from typing import Any, Dict, Mapping, Optional

import requests

from config.settings import COLLECTION_CONFIG
from src.contracts.source import Source


def _probe_url(source: Source) -> str:
    if source.type == "api" and source.api_config is not None:
        return source.api_config.endpoint
    return source.url


def probe_source(
    source: Source,
    *,
    session: Optional[requests.Session] = None,
    collection_config: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    GET the source URL once and report what came back.

    Failures are part of the report, never raised, so a CLI listing can show
    every source in one pass.
    """
    cfg = collection_config or COLLECTION_CONFIG
    http = session or requests.Session()
    http.headers.update(
        {
            "User-Agent": cfg["user_agent"],
            "Accept": cfg["accept"],
            "Accept-Language": cfg["accept_language"],
        }
    )
    url = _probe_url(source)
    report: Dict[str, Any] = {
        "source_id": source.id,
        "url": url,
        "ok": False,
        "status_code": None,
        "content_type": None,
        "latency": None,
        "error": None,
    }
    start = time.perf_counter()
    try:
        response = http.get(url, timeout=float(cfg["request_timeout_seconds"]))
    except requests.RequestException as exc:
        report["error"] = f"{type(exc).__name__}: {exc}"
    else:
        report["status_code"] = response.status_code
        report["content_type"] = response.headers.get("content-type")
        report["ok"] = response.status_code < 400
        if not report["ok"]:
            report["error"] = f"HTTP {response.status_code}"
    finally:
        report["latency"] = round(time.perf_counter() - start, 3)
        if session is None:
            http.close()
    return report
