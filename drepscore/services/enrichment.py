"""
Enrichment service - fetched Koios records in, scored EnrichedReps out.

Two layers:
- enrich_reps(): pure and synchronous. Normalizes votes, works out each
  DRep's available proposals and the active-epoch set, runs every pillar
  scorer and the aggregate, and sorts the result. Same input, same output.
- EnrichmentService.run(): the I/O half. Lists DReps, fetches info,
  metadata and votes batch by batch through the collector, builds Rep
  records and hands everything to enrich_reps().

Available proposals for participation are the classified proposals still
open at or after the DRep's first vote. Without proposal data the largest
vote count of any DRep is used instead, and the active-epoch set falls back
to every epoch in which anyone voted.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Mapping, Optional, Sequence

from ..collectors.base import BaseCollector
from ..config import SyncSettings
from ..models.drep import EnrichedRep, LinkStatus, Proposal, Rep, Vote
from ..parsers.profile_metadata import decode_profile_metadata
from ..parsers.vote_normalizer import epoch_vote_counts, normalize_votes, vote_distribution
from ..schemas.koios import KoiosDRepInfo, KoiosDRepListItem, KoiosDRepMetadata
from ..scorers.drep_score import calculate_drep_score, lovelace_to_ada, size_tier
from ..scorers.participation import deliberation_modifier, effective_participation, participation_rate
from ..scorers.profile import calculate_profile_completeness
from ..scorers.rationale import apply_rationale_curve, rationale_rate_raw
from ..scorers.reliability import (
    active_epochs_from_votes,
    active_proposal_epochs,
    calculate_reliability,
)
from ..scorers.weights_registry import ScoringWeights, get_scoring_weights
from ..utils.epochs import epoch_of

ProposalKey = tuple[str, int]


@dataclass
class EnrichmentContext:
    """Everything scoring needs besides the DReps themselves."""

    current_epoch: int
    proposals: Mapping[ProposalKey, Proposal] = field(default_factory=dict)
    rationale_texts: Mapping[str, str] = field(default_factory=dict)
    weights: Optional[ScoringWeights] = None
    clock: Callable[[float], int] = epoch_of


@dataclass
class EnrichmentResult:
    """Output of one enrichment pass."""

    enriched: list[EnrichedRep] = field(default_factory=list)
    votes_by_rep: dict[str, list[Vote]] = field(default_factory=dict)
    listed: int = 0
    fetch_errors: int = 0
    dropped_records: int = 0
    errors: list[str] = field(default_factory=list)


# =============================================================================
# Pure scoring
# =============================================================================


def available_proposal_count(proposals: Iterable[Proposal], first_vote_epoch: Optional[int]) -> int:
    """Proposals the DRep could have voted on: still open at or after their first vote."""
    if first_vote_epoch is None:
        return sum(1 for _ in proposals)
    return sum(1 for p in proposals if p.epoch_closed is None or p.epoch_closed >= first_vote_epoch)


def sort_enriched(enriched: Iterable[EnrichedRep]) -> list[EnrichedRep]:
    """Score descending, then voting power descending, then id."""
    return sorted(enriched, key=lambda e: (-e.drep_score, -e.voting_power_lovelace, e.id))


def enrich_rep(
    rep: Rep,
    votes: Sequence[Vote],
    ctx: EnrichmentContext,
    available: int,
    active_epochs: Iterable[int],
) -> EnrichedRep:
    """Score one DRep from its normalized votes."""
    weights = ctx.weights or get_scoring_weights()
    tiers = {key: p.importance_tier for key, p in ctx.proposals.items()}

    vote_epochs = [v.epoch for v in votes if v.epoch is not None]
    rep = replace(rep, first_vote_epoch=min(vote_epochs) if vote_epochs else None)

    yes, no, abstain = vote_distribution(votes)
    rate = participation_rate(len(votes), available)
    modifier = deliberation_modifier(yes, no, abstain)
    effective = effective_participation(rate, modifier)

    raw_rationale = rationale_rate_raw(votes, tiers, ctx.rationale_texts)
    curved_rationale = apply_rationale_curve(raw_rationale)

    reliability = calculate_reliability(vote_epochs, active_epochs, rep.first_vote_epoch, ctx.current_epoch)
    profile = calculate_profile_completeness(rep.profile)

    return EnrichedRep(
        rep=rep,
        participation_rate=rate,
        deliberation_modifier=modifier,
        effective_participation=effective,
        rationale_rate_raw=raw_rationale,
        rationale_rate_curved=curved_rationale,
        reliability=reliability,
        profile_completeness=profile,
        drep_score=calculate_drep_score(effective, curved_rationale, reliability.score, profile, weights),
        total_votes=len(votes),
        yes_votes=yes,
        no_votes=no,
        abstain_votes=abstain,
        size_tier=size_tier(lovelace_to_ada(rep.voting_power_lovelace)),
        epoch_vote_counts=epoch_vote_counts(votes),
        last_vote_time=max((v.block_time for v in votes), default=None),
    )


def enrich_reps(
    reps: Sequence[Rep],
    raw_votes: Mapping[str, Sequence[Vote]],
    ctx: EnrichmentContext,
) -> tuple[list[EnrichedRep], dict[str, list[Vote]]]:
    """
    Score every DRep.

    Args:
        reps: DReps to score
        raw_votes: rep id → raw votes (duplicates allowed; missing id = no votes)
        ctx: Proposals, current epoch, fetched rationale texts, weights

    Returns:
        (EnrichedReps sorted by score then voting power, rep id → normalized votes)
    """
    normalized = {rep.id: normalize_votes(raw_votes.get(rep.id, ()), clock=ctx.clock) for rep in reps}
    proposals = list(ctx.proposals.values())

    if proposals:
        active_epochs = active_proposal_epochs(proposals, ctx.current_epoch)
        fallback_available = None
    else:
        active_epochs = active_epochs_from_votes(
            v.epoch for votes in normalized.values() for v in votes if v.epoch is not None
        )
        fallback_available = max((len(votes) for votes in normalized.values()), default=0)

    enriched = []
    for rep in reps:
        votes = normalized[rep.id]
        if fallback_available is None:
            first = min((v.epoch for v in votes if v.epoch is not None), default=None)
            available = available_proposal_count(proposals, first)
        else:
            available = fallback_available
        enriched.append(enrich_rep(rep, votes, ctx, available, active_epochs))

    return sort_enriched(enriched), normalized


# =============================================================================
# Rep assembly
# =============================================================================


def links_by_rep(link_statuses: Mapping[tuple[str, str], object]) -> dict[str, dict[str, object]]:
    """{(drep_id, uri): status} → {drep_id: {uri: status}}."""
    grouped: dict[str, dict[str, object]] = {}
    for (drep_id, uri), status in link_statuses.items():
        grouped.setdefault(drep_id, {})[uri] = status
    return grouped


def build_rep(
    item: KoiosDRepListItem,
    info: Optional[KoiosDRepInfo],
    metadata: Optional[KoiosDRepMetadata],
    link_statuses: Optional[Mapping[str, LinkStatus]] = None,
) -> Rep:
    """Assemble a Rep from its list row, info and anchor metadata (either may be missing)."""
    raw_metadata = metadata.meta_json if metadata else None
    return Rep(
        id=item.drep_id,
        voting_power_lovelace=info.amount_lovelace if info else 0,
        registered=info.registered if info else item.registered,
        profile=decode_profile_metadata(raw_metadata, link_statuses),
        drep_hash=item.drep_hash or item.hex or (info.drep_hash if info else None),
        delegator_count=(info.delegators or 0) if info else 0,
        anchor_url=(info.anchor_url if info else None) or (metadata.url if metadata else None),
        anchor_hash=(info.anchor_hash if info else None) or (metadata.hash if metadata else None),
        raw_metadata=raw_metadata,
    )


class EnrichmentService:
    """Fetch and score every registered DRep through a collector."""

    def __init__(self, collector: BaseCollector, settings: Optional[SyncSettings] = None, logger=None):
        self.collector = collector
        self.settings = settings or SyncSettings()
        self.logger = logger or logging.getLogger(__name__)

    async def run(
        self,
        ctx: EnrichmentContext,
        link_statuses: Optional[Mapping[tuple[str, str], object]] = None,
        limit: Optional[int] = None,
    ) -> EnrichmentResult:
        """
        Fetch and score all registered DReps.

        Raises:
            FatalSyncError: the DRep list could not be fetched
        """
        # Collector counters span its whole session; report this pass only
        metrics = self.collector.metrics
        errors_before = metrics.rep_fetch_errors
        dropped_before = metrics.dropped_records

        listed = await self.collector.list_representatives()
        registered = [item for item in listed if item.registered]
        if limit is not None:
            registered = registered[:limit]
        self.logger.info(f"Enriching {len(registered)} registered DReps ({len(listed)} listed)")

        statuses = links_by_rep(link_statuses or {})
        result = EnrichmentResult(listed=len(listed))
        reps: list[Rep] = []
        raw_votes: dict[str, list[Vote]] = {}

        batch_size = self.settings.batch_size
        total_batches = (len(registered) + batch_size - 1) // batch_size
        for start in range(0, len(registered), batch_size):
            batch = registered[start : start + batch_size]
            ids = [item.drep_id for item in batch]

            info = await self.collector.fetch_info(ids)
            metadata = await self.collector.fetch_metadata(ids)
            for fetched in (info, metadata):
                if not fetched.success:
                    result.errors.append(fetched.error or "batch fetch failed")
            info_by_id = {row.drep_id: row for row in info.records}
            metadata_by_id = {row.drep_id: row for row in metadata.records}

            votes = await self.collector.fetch_votes_batched(ids)

            for item in batch:
                rep = build_rep(
                    item,
                    info_by_id.get(item.drep_id),
                    metadata_by_id.get(item.drep_id),
                    statuses.get(item.drep_id),
                )
                reps.append(rep)
                raw_votes[item.drep_id] = [v.to_vote(item.drep_id) for v in votes.get(item.drep_id, [])]

            self.logger.info(f"Batch {start // batch_size + 1}/{total_batches}: {len(batch)} DReps fetched")

        result.enriched, result.votes_by_rep = enrich_reps(reps, raw_votes, ctx)
        result.fetch_errors = metrics.rep_fetch_errors - errors_before
        result.dropped_records = metrics.dropped_records - dropped_before
        return result
