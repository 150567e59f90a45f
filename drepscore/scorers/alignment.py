"""
Alignment category scores - how a DRep votes, per value dimension.

Pre-computed during sync so the dashboard can match delegator preferences
without replaying votes. Six dimensions, each 0-100 with 50 as neutral:

- treasury_conservative: No on large withdrawals scores high
- treasury_growth:       Yes on withdrawals backed by rationale scores high
- decentralization:      smaller DReps score high (from size tier)
- security:              caution (No/Abstain) + rationale on security-relevant actions
- innovation:            Yes rate on innovation/info actions, blended with participation
- transparency:          the rationale pillar
"""

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from ..models.drep import EnrichedRep, Proposal, SizeTier, Vote, VoteDirection
from .common import round_half_up

NEUTRAL = 50

PREF_TREASURY_CONSERVATIVE = "treasury-conservative"
PREF_TREASURY_GROWTH = "smart-treasury-growth"
PREF_DECENTRALIZATION = "strong-decentralization"
PREF_SECURITY = "protocol-security-first"
PREF_INNOVATION = "innovation-defi-growth"
PREF_GOVERNANCE = "responsible-governance"

# (No points, Yes points) per treasury tier
TREASURY_CONSERVATIVE_POINTS = {
    "major": (100, 10),
    "significant": (90, 30),
    "routine": (50, 50),
}

# Yes-with-rationale points per treasury tier
TREASURY_GROWTH_EXPLAINED_YES = {
    "major": 90,
    "significant": 85,
    "routine": 70,
}
TREASURY_GROWTH_UNEXPLAINED_YES = 60
TREASURY_GROWTH_EXPLAINED_NO = 40
TREASURY_GROWTH_UNEXPLAINED_NO = 20

DECENTRALIZATION_BY_TIER = {
    SizeTier.SMALL: 95,
    SizeTier.MEDIUM: 72,
    SizeTier.LARGE: 40,
    SizeTier.WHALE: 12,
}


@dataclass(frozen=True)
class AlignmentScores:
    """The six per-category scores plus the latest vote time."""

    treasury_conservative: int = NEUTRAL
    treasury_growth: int = NEUTRAL
    decentralization: int = NEUTRAL
    security: int = NEUTRAL
    innovation: int = NEUTRAL
    transparency: int = NEUTRAL
    last_vote_time: Optional[int] = None

    def to_row(self, drep_id: str) -> dict:
        return {
            "id": drep_id,
            "alignment_treasury_conservative": self.treasury_conservative,
            "alignment_treasury_growth": self.treasury_growth,
            "alignment_decentralization": self.decentralization,
            "alignment_security": self.security,
            "alignment_innovation": self.innovation,
            "alignment_transparency": self.transparency,
            "last_vote_time": self.last_vote_time,
        }


def _explained(vote: Vote) -> bool:
    return vote.rationale_ref is not None or bool(vote.inline_rationale)


def _match(votes: Sequence[Vote], proposals: Mapping[tuple[str, int], Proposal]) -> list[tuple[Vote, Proposal]]:
    return [(v, proposals[v.proposal_key]) for v in votes if v.proposal_key in proposals]


def treasury_conservative_score(matched: Sequence[tuple[Vote, Proposal]]) -> int:
    treasury = [(v, p) for v, p in matched if p.proposal_type == "TreasuryWithdrawals"]
    if not treasury:
        return NEUTRAL
    total = 0
    for vote, proposal in treasury:
        no_points, yes_points = TREASURY_CONSERVATIVE_POINTS.get(proposal.treasury_tier or "routine", (50, 50))
        if vote.direction is VoteDirection.NO:
            total += no_points
        elif vote.direction is VoteDirection.YES:
            total += yes_points
        else:
            total += NEUTRAL
    return round_half_up(total / len(treasury))


def treasury_growth_score(matched: Sequence[tuple[Vote, Proposal]]) -> int:
    treasury = [(v, p) for v, p in matched if p.proposal_type == "TreasuryWithdrawals"]
    if not treasury:
        return NEUTRAL
    total = 0
    for vote, proposal in treasury:
        explained = _explained(vote)
        if vote.direction is VoteDirection.YES:
            if explained:
                total += TREASURY_GROWTH_EXPLAINED_YES.get(proposal.treasury_tier or "routine", 70)
            else:
                total += TREASURY_GROWTH_UNEXPLAINED_YES
        elif vote.direction is VoteDirection.NO:
            total += TREASURY_GROWTH_EXPLAINED_NO if explained else TREASURY_GROWTH_UNEXPLAINED_NO
        else:
            total += NEUTRAL
    return round_half_up(total / len(treasury))


def decentralization_score(tier: SizeTier) -> int:
    return DECENTRALIZATION_BY_TIER.get(tier, NEUTRAL)


def security_score(enriched: EnrichedRep, matched: Sequence[tuple[Vote, Proposal]]) -> int:
    relevant = [v for v, p in matched if PREF_SECURITY in p.relevant_prefs]
    if not relevant:
        return round_half_up(enriched.participation_rate * 0.6 + enriched.rationale_rate_raw * 0.4)
    cautious = sum(1 for v in relevant if v.direction is not VoteDirection.YES)
    explained = sum(1 for v in relevant if _explained(v))
    return round_half_up(cautious / len(relevant) * 100 * 0.6 + explained / len(relevant) * 100 * 0.4)


def innovation_score(enriched: EnrichedRep, matched: Sequence[tuple[Vote, Proposal]]) -> int:
    relevant = [
        v for v, p in matched if PREF_INNOVATION in p.relevant_prefs or p.proposal_type == "InfoAction"
    ]
    if not relevant:
        return round_half_up(enriched.participation_rate * 0.5 + 25)
    yes = sum(1 for v in relevant if v.direction is VoteDirection.YES)
    return round_half_up(yes / len(relevant) * 100 * 0.5 + enriched.participation_rate * 0.5)


def compute_alignment_scores(
    enriched: EnrichedRep,
    votes: Sequence[Vote],
    proposals: Mapping[tuple[str, int], Proposal],
) -> AlignmentScores:
    """All six category scores for one DRep."""
    matched = _match(votes, proposals)
    return AlignmentScores(
        treasury_conservative=treasury_conservative_score(matched),
        treasury_growth=treasury_growth_score(matched),
        decentralization=decentralization_score(enriched.size_tier),
        security=security_score(enriched, matched),
        innovation=innovation_score(enriched, matched),
        transparency=enriched.rationale_rate_raw,
        last_vote_time=max((v.block_time for v in votes), default=None),
    )
