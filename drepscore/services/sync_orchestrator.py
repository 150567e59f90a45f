"""
Sync orchestrator - one full DRep sync pass.

Phases, each timed and caught on its own:

    0. Health check (GET /tip)                 fatal
    1. Fetch + classify proposals              optional
    2. Enrichment (fetch + score every DRep)   fatal
    3. Handle resolution                       optional
    4. Upsert dreps rows                       core (error-rate threshold)
    5. Alignment scores || score history       optional, run concurrently

Outcome:
    success  every phase clean, upsert error rate below threshold
    partial  enrichment and upsert fine, an optional phase degraded
             (including too many per-DRep fetch errors or a blown budget)
    failure  health/enrichment failed, or upsert error rate at/above threshold

Observers get on_phase_complete/on_run_complete synchronously; anything they
raise is logged and ignored.
"""

import asyncio
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional, Protocol, Sequence

from ..collectors.base import BaseCollector
from ..config import SyncSettings
from ..constants import ERROR_SUMMARY_MAX_CHARS
from ..db.repository import SyncStore, UpsertResult
from ..errors import FatalSyncError
from ..models.drep import EnrichedRep, Proposal, Vote
from ..parsers.proposal_classifier import classify_proposals
from ..schemas.phase_contracts import validate_enrichment_output
from ..scorers.alignment import compute_alignment_scores
from ..scorers.weights_registry import ScoringWeights
from ..utils.logger import PipelineLogger
from .enrichment import EnrichmentContext, EnrichmentService
from .handles import HandleResolver

STATUS_SUCCESS = "success"
STATUS_PARTIAL = "partial"
STATUS_FAILURE = "failure"


@dataclass
class RunSummary:
    """Outcome of one sync pass."""

    run_id: str
    status: str
    success: bool
    phase_timings_ms: dict[str, int] = field(default_factory=dict)
    phase_errors: dict[str, list[str]] = field(default_factory=dict)
    record_counts: dict[str, int] = field(default_factory=dict)
    error_summary: str = ""
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    duration_ms: int = 0
    enriched: list[EnrichedRep] = field(default_factory=list, repr=False)

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "success": self.success,
            "phase_timings_ms": self.phase_timings_ms,
            "phase_errors": self.phase_errors,
            "record_counts": self.record_counts,
            "error_summary": self.error_summary,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_ms": self.duration_ms,
        }


class SyncObserver(Protocol):
    def on_phase_complete(self, run_id: str, phase: str, duration_ms: int, error: Optional[str]) -> Any: ...

    def on_run_complete(self, summary: RunSummary) -> Any: ...


class LoggingObserver:
    """Echo phase completions to a logger."""

    def __init__(self, logger: PipelineLogger):
        self.logger = logger

    def on_phase_complete(self, run_id: str, phase: str, duration_ms: int, error: Optional[str]):
        if error:
            self.logger.warning(f"Phase {phase} ended with error", run_id=run_id, duration_ms=duration_ms)
        else:
            self.logger.debug(f"Phase {phase} done", run_id=run_id, duration_ms=duration_ms)

    def on_run_complete(self, summary: RunSummary):
        if summary.error_summary:
            self.logger.warning(f"Sync {summary.status}: {summary.error_summary}", run_id=summary.run_id)


@dataclass
class _RunState:
    """Mutable progress of a run; survives a budget cancellation."""

    run_id: str
    phase_timings_ms: dict[str, int] = field(default_factory=dict)
    phase_errors: dict[str, list[str]] = field(default_factory=dict)
    record_counts: dict[str, int] = field(default_factory=dict)
    enriched: list[EnrichedRep] = field(default_factory=list)
    votes_by_rep: dict[str, list[Vote]] = field(default_factory=dict)
    proposals: dict[tuple[str, int], Proposal] = field(default_factory=dict)
    enrichment_ok: bool = False
    upsert: UpsertResult = field(default_factory=UpsertResult)

    def add_error(self, phase: str, message: str):
        self.phase_errors.setdefault(phase, []).append(message)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _error_summary(phase_errors: dict[str, list[str]]) -> str:
    summary = "; ".join(f"{phase}: {msg}" for phase, messages in phase_errors.items() for msg in messages)
    return summary[:ERROR_SUMMARY_MAX_CHARS]


class SyncOrchestrator:
    """Runs one sync pass against a collector and a store."""

    def __init__(
        self,
        collector: BaseCollector,
        store: SyncStore,
        settings: Optional[SyncSettings] = None,
        logger: Optional[PipelineLogger] = None,
        handle_resolver: Optional[HandleResolver] = None,
        observers: Sequence[SyncObserver] = (),
        id_factory: Callable[[], object] = uuid.uuid4,
        now: Callable[[], datetime] = _utcnow,
        weights: Optional[ScoringWeights] = None,
        limit: Optional[int] = None,
    ):
        """
        Args:
            collector: Upstream source (KoiosCollector in production)
            store: Persistence backend (DoltStore, or InMemoryStore for dry runs)
            settings: Thresholds, budget and fetch tuning
            logger: Pipeline logger
            handle_resolver: Optional drep_id → handle lookup
            observers: Sinks notified of phase and run completion
            id_factory: Produces the run id
            now: Wall clock; the history snapshot date is now().date()
            weights: Scoring weights (default model when None)
            limit: Only enrich the first N registered DReps
        """
        self.collector = collector
        self.store = store
        self.settings = settings or SyncSettings()
        self.logger = logger or PipelineLogger(name="drep_sync.orchestrator", configure_external=False)
        self.handle_resolver = handle_resolver
        self.observers = list(observers)
        self.id_factory = id_factory
        self.now = now
        self.weights = weights
        self.limit = limit

    # =========================================================================
    # Observer plumbing
    # =========================================================================

    def _notify(self, method: str, *args):
        for observer in self.observers:
            try:
                getattr(observer, method)(*args)
            except Exception as e:
                self.logger.warning(f"Observer {type(observer).__name__}.{method} failed: {e}")

    @contextmanager
    def _phase(self, state: _RunState, key: str, description: str):
        """Time a phase into state and notify observers, even on cancellation."""
        start = time.perf_counter()
        error: Optional[str] = None
        try:
            with self.logger.time_phase(key, description):
                yield
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            raise
        except asyncio.CancelledError:
            error = "cancelled (time budget exceeded)"
            raise
        finally:
            duration_ms = int((time.perf_counter() - start) * 1000)
            state.phase_timings_ms[key] = duration_ms
            self._notify("on_phase_complete", state.run_id, key, duration_ms, error)

    # =========================================================================
    # Phases
    # =========================================================================

    async def _fetch_proposals(self, state: _RunState):
        result = await self.collector.fetch_proposals()
        if not result.success:
            state.add_error("proposals", f"proposal fetch failed: {result.error}")
            return
        proposals = classify_proposals(result.records)
        state.proposals = {p.key: p for p in proposals}
        state.record_counts["proposals"] = len(state.proposals)
        state.record_counts["proposals_dropped"] = result.invalid_count
        if result.invalid_count:
            self.logger.warning(f"Dropped {result.invalid_count} malformed proposals", examples=result.validation_errors)

    async def _read_store_inputs(self, state: _RunState) -> tuple[dict, dict]:
        """Link-checker statuses and fetched rationale texts. Missing inputs degrade, not fail."""
        link_statuses: dict = {}
        rationale_texts: dict = {}
        try:
            link_statuses = await asyncio.to_thread(self.store.fetch_link_statuses)
        except Exception as e:
            state.add_error("enrich", f"link statuses unavailable: {e}")
            self.logger.warning("Link statuses unavailable; all links count as unchecked", error=str(e))
        try:
            rationale_texts = await asyncio.to_thread(self.store.fetch_rationale_texts)
        except Exception as e:
            state.add_error("enrich", f"rationale texts unavailable: {e}")
            self.logger.warning("Rationale texts unavailable; only inline rationales count", error=str(e))
        return link_statuses, rationale_texts

    async def _enrich(self, state: _RunState, current_epoch: int):
        link_statuses, rationale_texts = await self._read_store_inputs(state)
        ctx = EnrichmentContext(
            current_epoch=current_epoch,
            proposals=state.proposals,
            rationale_texts=rationale_texts,
            weights=self.weights,
        )
        service = EnrichmentService(self.collector, self.settings, self.logger)
        result = await service.run(ctx, link_statuses=link_statuses, limit=self.limit)

        state.record_counts.update(
            {
                "dreps_listed": result.listed,
                "dreps_enriched": len(result.enriched),
                "votes": sum(len(v) for v in result.votes_by_rep.values()),
                "fetch_errors": result.fetch_errors,
                "dropped_records": result.dropped_records,
            }
        )
        for message in result.errors:
            state.add_error("enrich", message)

        if result.enriched and result.fetch_errors / len(result.enriched) >= self.settings.error_rate_threshold:
            state.add_error(
                "enrich", f"{result.fetch_errors} of {len(result.enriched)} vote fetches failed (empty vote lists used)"
            )
        elif result.fetch_errors:
            self.logger.warning(f"{result.fetch_errors} vote fetches failed; those DReps scored with no votes")

        check = validate_enrichment_output(result.enriched)
        for warning in check.warnings:
            self.logger.warning(f"Enrichment contract: {warning}")
        if not check:
            raise ValueError(f"Enrichment contract violated: {'; '.join(check.errors)}")

        state.enriched = result.enriched
        state.votes_by_rep = result.votes_by_rep
        state.enrichment_ok = True

    def _resolve_handles(self, state: _RunState):
        handles = self.handle_resolver.resolve([e.id for e in state.enriched])
        for enriched in state.enriched:
            handle = handles.get(enriched.id)
            if handle:
                enriched.rep.handle = handle
        state.record_counts["handles_resolved"] = len(handles)

    async def _upsert_dreps(self, state: _RunState):
        rows = [e.to_row() for e in state.enriched]
        try:
            state.upsert = await asyncio.to_thread(self.store.upsert, "dreps", rows, ("id",))
        except Exception as e:
            state.upsert = UpsertResult(errors=len(rows), messages=[str(e)])
        state.record_counts["dreps_upserted"] = state.upsert.success
        state.record_counts["dreps_upsert_errors"] = state.upsert.errors

        if state.upsert.error_rate >= self.settings.error_rate_threshold:
            state.add_error(
                "upsert",
                f"{state.upsert.errors} of {state.upsert.total} rows failed: {'; '.join(state.upsert.messages[:3])}",
            )
        elif state.upsert.errors:
            self.logger.warning(
                f"{state.upsert.errors} of {state.upsert.total} dreps rows failed (below threshold)",
                messages=state.upsert.messages[:3],
            )

    async def _write_alignment(self, state: _RunState) -> UpsertResult:
        rows = [
            compute_alignment_scores(e, state.votes_by_rep.get(e.id, []), state.proposals).to_row(e.id)
            for e in state.enriched
        ]
        result = await asyncio.to_thread(self.store.upsert, "dreps", rows, ("id",))
        state.record_counts["alignment_upserted"] = result.success
        return result

    async def _write_history(self, state: _RunState, epoch_no: int) -> UpsertResult:
        snapshot_date: date = self.now().date()
        rows = [
            {"drep_id": e.id, "snapshot_date": snapshot_date, "epoch_no": epoch_no, **e.pillar_scores()}
            for e in state.enriched
        ]
        result = await asyncio.to_thread(self.store.upsert, "drep_score_history", rows, ("drep_id", "snapshot_date"))
        state.record_counts["history_upserted"] = result.success
        return result

    async def _fan_out(self, state: _RunState, epoch_no: int):
        branches = {
            "alignment": self._write_alignment(state),
            "history": self._write_history(state, epoch_no),
        }
        outcomes = await asyncio.gather(*branches.values(), return_exceptions=True)
        for name, outcome in zip(branches, outcomes):
            if isinstance(outcome, Exception):
                state.add_error(name, f"{type(outcome).__name__}: {outcome}")
                self.logger.error(f"{name} branch failed", exception=outcome)
            elif outcome.errors:
                state.add_error(name, f"{outcome.errors} of {outcome.total} rows failed")

    async def _run_phases(self, state: _RunState):
        try:
            with self._phase(state, "step0_health_ms", "health check"):
                tip = await self.collector.check_health()
        except FatalSyncError as e:
            state.add_error("health", str(e))
            return

        try:
            with self._phase(state, "step1_proposals_ms", "proposal fetch"):
                await self._fetch_proposals(state)
        except Exception as e:
            state.add_error("proposals", f"{type(e).__name__}: {e}")

        try:
            with self._phase(state, "step2_enrich_ms", "enrichment"):
                await self._enrich(state, tip.epoch_no)
        except Exception as e:
            state.add_error("enrich", f"{type(e).__name__}: {e}")
            return

        if self.handle_resolver is not None:
            try:
                with self._phase(state, "step3_handles_ms", "handle resolution"):
                    self._resolve_handles(state)
            except Exception as e:
                state.add_error("handles", f"{type(e).__name__}: {e}")

        try:
            with self._phase(state, "step4_upsert_ms", "dreps upsert"):
                await self._upsert_dreps(state)
        except Exception as e:
            state.upsert = UpsertResult(errors=len(state.enriched), messages=[str(e)])
            state.add_error("upsert", f"{type(e).__name__}: {e}")
        if "upsert" in state.phase_errors:
            return

        try:
            with self._phase(state, "step56_parallel_ms", "alignment + score history"):
                await self._fan_out(state, tip.epoch_no)
        except Exception as e:
            state.add_error("parallel", f"{type(e).__name__}: {e}")

    # =========================================================================
    # Entry point
    # =========================================================================

    def _verdict(self, state: _RunState) -> str:
        if not state.enrichment_ok:
            return STATUS_FAILURE
        if state.upsert.error_rate >= self.settings.error_rate_threshold:
            return STATUS_FAILURE
        if state.phase_errors:
            return STATUS_PARTIAL
        return STATUS_SUCCESS

    def _commit(self, summary: RunSummary):
        message = f"DRep sync {summary.run_id}: {summary.status}, {summary.record_counts.get('dreps_upserted', 0)} dreps"
        try:
            commit_hash = self.store.commit(message)
        except Exception as e:
            self.logger.warning(f"Store commit failed: {e}")
            return
        if commit_hash:
            self.logger.info(f"Committed sync results: {commit_hash}")

    async def run(self) -> RunSummary:
        """Run one sync pass. Never raises for upstream or persistence failures."""
        state = _RunState(run_id=str(self.id_factory()))
        started_at = self.now()
        start = time.perf_counter()
        self.logger.log_sync_start(state.run_id)

        budget = self.settings.time_budget_seconds
        try:
            await asyncio.wait_for(self._run_phases(state), timeout=budget)
        except asyncio.TimeoutError:
            state.add_error("budget", f"time budget of {budget:g}s exceeded")
            self.logger.error(f"Sync exceeded its {budget:g}s budget; reporting what completed")

        status = self._verdict(state)
        summary = RunSummary(
            run_id=state.run_id,
            status=status,
            success=status == STATUS_SUCCESS,
            phase_timings_ms=dict(state.phase_timings_ms),
            phase_errors={phase: list(messages) for phase, messages in state.phase_errors.items()},
            record_counts=dict(state.record_counts),
            error_summary=_error_summary(state.phase_errors),
            started_at=started_at,
            finished_at=self.now(),
            duration_ms=int((time.perf_counter() - start) * 1000),
            enriched=state.enriched,
        )

        if state.record_counts.get("dreps_upserted"):
            self._commit(summary)
        self.logger.log_sync_complete(summary.run_id, summary.status, summary.duration_ms, len(summary.enriched))
        self._notify("on_run_complete", summary)
        return summary
