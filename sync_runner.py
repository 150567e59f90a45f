#!/usr/bin/env python3
"""
DRep Sync Runner - fetch, score and persist every registered DRep.

Runs one full sync pass: Koios health check, proposals, enrichment, handle
resolution, dreps upsert, then alignment scores and the daily score-history
snapshot in parallel. Results go to DoltDB (or an in-memory store with
--dry-run).

Exit codes:
    0  success
    1  failure (health check, enrichment, or upsert error rate over threshold)
    2  partial (an optional phase degraded)

Usage:
    uv run python sync_runner.py
    uv run python sync_runner.py --dry-run --limit 100
    uv run python sync_runner.py --handles-file config/handles.yaml --log-file sync.log
"""

import argparse
import asyncio
import sys
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

# Load environment
load_dotenv(Path(__file__).parent / ".env")

from drepscore.collectors.koios import KoiosCollector
from drepscore.config import SyncSettings
from drepscore.db.memory_store import InMemoryStore
from drepscore.db.repository import DoltStore, SyncLogRepository
from drepscore.errors import ConfigError
from drepscore.scorers.drep_score import lovelace_to_ada
from drepscore.scorers.weights_registry import get_scoring_weights
from drepscore.services.handles import StaticHandleResolver
from drepscore.services.sync_orchestrator import (
    STATUS_PARTIAL,
    STATUS_SUCCESS,
    LoggingObserver,
    RunSummary,
    SyncOrchestrator,
)
from drepscore.utils.logger import PipelineLogger

EXIT_CODES = {STATUS_SUCCESS: 0, STATUS_PARTIAL: 2}

console = Console()


def print_summary(summary: RunSummary, top: int = 10):
    """Phase timings, record counts and the top-scored DReps."""
    status_style = {"success": "green", "partial": "yellow", "failure": "red"}.get(summary.status, "white")
    console.print(f"\n[bold]Sync {summary.run_id}[/bold]: [{status_style}]{summary.status}[/{status_style}]")

    timings = Table(title="Phase timings")
    timings.add_column("Phase")
    timings.add_column("ms", justify="right")
    timings.add_column("Errors")
    for phase, ms in summary.phase_timings_ms.items():
        timings.add_row(phase, str(ms), "")
    for phase, messages in summary.phase_errors.items():
        timings.add_row(f"[red]{phase}[/red]", "", "; ".join(messages)[:120])
    console.print(timings)

    counts = Table(title="Records")
    counts.add_column("Count")
    counts.add_column("Value", justify="right")
    for name, value in summary.record_counts.items():
        counts.add_row(name, str(value))
    console.print(counts)

    if summary.enriched:
        leaders = Table(title=f"Top {min(top, len(summary.enriched))} DReps")
        leaders.add_column("DRep")
        leaders.add_column("Score", justify="right")
        leaders.add_column("Part.", justify="right")
        leaders.add_column("Rationale", justify="right")
        leaders.add_column("Reliab.", justify="right")
        leaders.add_column("Profile", justify="right")
        leaders.add_column("ADA", justify="right")
        for enriched in summary.enriched[:top]:
            label = enriched.rep.handle or enriched.rep.profile.name or enriched.id[:24]
            leaders.add_row(
                label,
                str(enriched.drep_score),
                str(enriched.effective_participation),
                str(enriched.rationale_rate_curved),
                str(enriched.reliability.score),
                str(enriched.profile_completeness),
                f"{lovelace_to_ada(enriched.voting_power_lovelace):,.0f}",
            )
        console.print(leaders)

    if summary.error_summary:
        console.print(f"[dim]{summary.error_summary}[/dim]")


async def run_sync(args, logger: PipelineLogger) -> RunSummary:
    settings = SyncSettings.from_env()
    if args.budget_seconds is not None:
        settings = replace(settings, time_budget_seconds=args.budget_seconds)

    weights = get_scoring_weights(args.weights_model)
    store = InMemoryStore(batch_size=settings.upsert_batch_size) if args.dry_run else DoltStore(settings.upsert_batch_size)
    resolver = StaticHandleResolver.from_yaml(args.handles_file) if args.handles_file else None

    if not args.dry_run:
        problem = store.check_connection()
        if problem:
            raise ConfigError(f"DoltDB unreachable (check DOLT_HOST/DOLT_PORT): {problem}")

    observers = [LoggingObserver(logger)]
    if not args.dry_run:
        observers.append(SyncLogRepository(store))

    async with KoiosCollector(settings=settings, logger=logger) as collector:
        orchestrator = SyncOrchestrator(
            collector,
            store,
            settings=settings,
            logger=logger,
            handle_resolver=resolver,
            observers=observers,
            weights=weights,
            limit=args.limit,
        )
        summary = await orchestrator.run()
        logger.debug("Koios metrics", **collector.metrics.as_dict())
    return summary


def main():
    parser = argparse.ArgumentParser(description="DRep sync - score every registered DRep and persist the results")
    parser.add_argument("--dry-run", action="store_true", help="Use an in-memory store instead of DoltDB")
    parser.add_argument("--limit", type=int, help="Only process the first N registered DReps")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console log level (default: INFO)",
    )
    parser.add_argument("--log-file", type=str, help="Also log to logs/<file>")
    parser.add_argument("--budget-seconds", type=float, help="Overall wall-clock budget (default: 280)")
    parser.add_argument("--weights-model", type=str, help="Scoring weights model from config/scoring_weights.yaml")
    parser.add_argument("--handles-file", type=str, help="YAML mapping of drep_id to handle")
    parser.add_argument("--top", type=int, default=10, help="DReps to show in the summary table (default: 10)")
    args = parser.parse_args()

    if args.limit is not None and args.limit < 1:
        parser.error("--limit must be >= 1")

    logger = PipelineLogger(log_level=args.log_level, log_file=args.log_file, phase="Sync")

    try:
        summary = asyncio.run(run_sync(args, logger))
    except ConfigError as e:
        logger.error("Sync not started", exception=e)
        sys.exit(1)

    print_summary(summary, top=args.top)
    sys.exit(EXIT_CODES.get(summary.status, 1))


if __name__ == "__main__":
    main()
