# main.py
# Command line entry point for the Newsdesk crawler
# =================================================

"""
Operator entry point.

Subcommands:

- ``crawl``     run one crawl session (all active sources, or ``--source``)
- ``progress``  show the current or last session's progress
- ``sources``   list the configured sources, optionally probing each one
- ``schedule``  keep the cron scheduler running in the foreground

Every subcommand returns an exit code: 0 when the work completed, 1 when it
failed or was refused (for example because another session is still live).
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from config import (
    ALL_SOURCES,
    SCHEDULER_CONFIG,
    SESSION_CONFIG,
    validate_config,
    validate_sources,
)
from config.version import PROJECT_VERSION
from src.collectors.source_probe import probe_source
from src.errors import SessionAlreadyRunning, SourceInactive, SourceNotFound
from src.pipeline.session import CrawlSessionRunner, SessionParams, SessionReport
from src.progress.query import build_progress_snapshot
from src.progress.store import ProgressStore
from src.scheduler import SessionScheduler, default_schedule
from src.storage import initialize_database
from src.utils import get_logger, setup_logging


def build_runner() -> CrawlSessionRunner:
    """Validate configuration, sync the source catalogue and wire a runner."""
    validate_config()
    validate_sources()
    db_manager = initialize_database(ALL_SOURCES)
    get_logger().log_system_startup(
        version=PROJECT_VERSION,
        config_summary={
            "sources_configured": len(ALL_SOURCES),
            "database_type": db_manager.config.get("type", "sqlite"),
            "target_languages": ", ".join(SESSION_CONFIG["target_languages"]),
            "articles_per_language": SESSION_CONFIG["articles_per_language"],
        },
    )
    return CrawlSessionRunner(db_manager)


def print_report(report: SessionReport) -> None:
    icon = "✅" if report.succeeded else "❌"
    print(f"\n{icon} Session {report.session_id}: {report.status}")
    totals = report.totals
    print(
        f"  • Sources: {totals.get('sources_processed', 0)}/{totals.get('sources_total', 0)}"
    )
    print(f"  • Articles found: {totals.get('articles_found', 0)}")
    print(f"  • Articles accepted: {totals.get('articles_processed', 0)}")
    print(f"  • Articles enriched: {totals.get('articles_polished', 0)}")
    print(f"  • Duration: {report.duration_seconds:.1f}s")
    for region in report.regions:
        line = (
            f"    [{region.language}/{region.region}] {region.status}"
            f" {region.articles_processed} accepted"
        )
        if region.message:
            line += f" - {region.message}"
        print(line)
    if report.error:
        print(f"  • Error: {report.error}")


# Subcommands
# ===========


def cmd_crawl(args: argparse.Namespace) -> int:
    params = SessionParams(
        source_id=args.source,
        target_languages=args.languages or SessionParams().target_languages,
        articles_per_language=args.per_language or SessionParams().articles_per_language,
        only_today_news=not args.all_days,
        enable_polishing=not args.no_polish,
    )
    runner = build_runner()
    try:
        report = asyncio.run(runner.start(params, resume=args.resume))
    except SessionAlreadyRunning as exc:
        print(f"⚠️  {exc}; wait for it to finish or for it to go stale")
        return 1
    except (SourceNotFound, SourceInactive) as exc:
        print(f"❌ {exc}")
        return 1
    print_report(report)
    return 0 if report.succeeded else 1


def cmd_progress(args: argparse.Namespace) -> int:
    snapshot = build_progress_snapshot(ProgressStore().read())
    if args.json:
        print(json.dumps(snapshot, ensure_ascii=False, indent=2))
        return 0

    print(f"📊 Session {snapshot.get('sessionId') or '-'}: {snapshot['status']}")
    print(
        f"  • Progress: {snapshot['totalProgress']}%"
        f" (crawl {snapshot['crawlProgress']}%, enrichment {snapshot['polishProgress']}%)"
    )
    print(
        f"  • Sources: {snapshot['completedSources']}/{snapshot['totalSources']}"
        f" | current: {snapshot.get('currentSource') or '-'}"
    )
    print(f"  • Duration: {snapshot['durationSeconds']}s | ETA: {snapshot['etaSeconds']}s")
    for region in snapshot.get("regions", []):
        print(
            f"    [{region['language']}/{region['region']}] {region['status']}"
            f" found={region['articlesFound']} accepted={region['articlesProcessed']}"
            f" enriched={region['articlesPolished']}/{region['quota']}"
        )
    if snapshot.get("error"):
        print(f"  • Error: {snapshot['error']}")
    return 0


def cmd_sources(args: argparse.Namespace) -> int:
    runner = build_runner()
    sources = runner.store.list_active_sources()
    print(f"🔎 {len(sources)} active sources")
    failures = 0
    for source in sources:
        line = f"  {source.id:<28} {source.type:<13} {source.language}/{source.country}"
        if args.check:
            report = probe_source(source)
            if report["ok"]:
                line += f"  ✅ {report['status_code']} in {report['latency']:.2f}s"
            else:
                failures += 1
                line += f"  ❌ {report['error']}"
        print(line)
    return 1 if failures else 0


async def _run_scheduler(runner: CrawlSessionRunner) -> None:
    scheduler = SessionScheduler(runner)
    crawl = scheduler.add_crawl(default_schedule())
    scheduler.start()
    print(f"⏰ Scheduler running, next crawl at {crawl.next_run_at}")
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown()


def cmd_schedule(args: argparse.Namespace) -> int:
    if not SCHEDULER_CONFIG.get("enabled", True):
        print("⚠️  Scheduler disabled in configuration (scheduler.enabled = false)")
        return 1
    runner = build_runner()
    try:
        asyncio.run(_run_scheduler(runner))
    except KeyboardInterrupt:
        print("\n⚠️  Scheduler stopped by user")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Newsdesk crawler")
    parser.add_argument("--version", action="version", version=PROJECT_VERSION)
    subparsers = parser.add_subparsers(dest="command", required=True)

    crawl = subparsers.add_parser("crawl", help="Run one crawl session")
    crawl.add_argument("--source", help="Crawl a single source by id")
    crawl.add_argument("--languages", nargs="+", help="Target languages, e.g. zh en")
    crawl.add_argument("--per-language", type=int, help="Quota per region")
    crawl.add_argument(
        "--all-days", action="store_true", help="Keep items published before today"
    )
    crawl.add_argument("--no-polish", action="store_true", help="Skip enrichment")
    crawl.add_argument(
        "--resume", action="store_true", help="Continue an abandoned session"
    )
    crawl.set_defaults(handler=cmd_crawl)

    progress = subparsers.add_parser("progress", help="Show session progress")
    progress.add_argument("--json", action="store_true", help="Print the raw snapshot")
    progress.set_defaults(handler=cmd_progress)

    sources = subparsers.add_parser("sources", help="List active sources")
    sources.add_argument("--check", action="store_true", help="Probe each source URL")
    sources.set_defaults(handler=cmd_sources)

    schedule = subparsers.add_parser("schedule", help="Run the cron scheduler")
    schedule.set_defaults(handler=cmd_schedule)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    try:
        return args.handler(args)
    except KeyboardInterrupt:
        print("\n⚠️  Interrupted by user")
        return 1
    except Exception as e:
        get_logger().create_module_logger("main").exception(f"{args.command} failed: {e}")
        print(f"\n❌ Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
