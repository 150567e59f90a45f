"""
Domain records for DRep scoring.

Vote and Proposal are immutable facts once observed. EnrichedRep is fully
recomputed on every sync pass and overwritten by id, so it carries no
identity beyond the representative id.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class VoteDirection(str, Enum):
    """On-chain vote choice."""

    YES = "Yes"
    NO = "No"
    ABSTAIN = "Abstain"


class ImportanceTier(str, Enum):
    """How much a proposal counts toward the rationale pillar.

    Weights: Critical=3, Important=2, Standard=1, ExcludedFromRationale=0.
    """

    CRITICAL = "Critical"
    IMPORTANT = "Important"
    STANDARD = "Standard"
    EXCLUDED = "ExcludedFromRationale"

    @property
    def weight(self) -> int:
        return {
            "Critical": 3,
            "Important": 2,
            "Standard": 1,
            "ExcludedFromRationale": 0,
        }[self.value]


class LinkStatus(str, Enum):
    """Latest known state of a social link, set by the link checker."""

    VALID = "valid"
    BROKEN = "broken"
    UNCHECKED = "unchecked"


class SizeTier(str, Enum):
    """Voting power bucket (ADA)."""

    SMALL = "Small"  # < 10k
    MEDIUM = "Medium"  # < 1M
    LARGE = "Large"  # < 10M
    WHALE = "Whale"


@dataclass(frozen=True)
class RationaleRef:
    """Anchor pointing at off-chain rationale content."""

    url: str
    content_hash: Optional[str] = None


@dataclass(frozen=True)
class Vote:
    """One representative's decision on one proposal at one point in time."""

    rep_id: str
    proposal_tx_hash: str
    proposal_index: int
    direction: VoteDirection
    block_time: int
    epoch: Optional[int] = None
    rationale_ref: Optional[RationaleRef] = None
    vote_tx_hash: Optional[str] = None
    inline_rationale: Optional[str] = None  # body.comment / rationale from on-chain meta_json
    voting_power_lovelace: Optional[int] = None

    @property
    def proposal_key(self) -> tuple[str, int]:
        return (self.proposal_tx_hash, self.proposal_index)


@dataclass(frozen=True)
class Proposal:
    """Classified governance action."""

    tx_hash: str
    index: int
    importance_tier: ImportanceTier
    epoch_opened: Optional[int] = None
    epoch_closed: Optional[int] = None
    proposal_type: str = ""
    title: str = ""
    abstract: Optional[str] = None
    withdrawal_amount_ada: Optional[int] = None
    treasury_tier: Optional[str] = None  # 'routine' | 'significant' | 'major'
    relevant_prefs: tuple[str, ...] = ()
    block_time: Optional[int] = None

    @property
    def key(self) -> tuple[str, int]:
        return (self.tx_hash, self.index)


@dataclass(frozen=True)
class SocialLink:
    """A declared reference (website, X, GitHub...) with its checked status."""

    uri: str
    label: str = ""
    link_status: LinkStatus = LinkStatus.UNCHECKED


@dataclass(frozen=True)
class ProfileMetadata:
    """Canonical profile, whatever shape the anchor JSON had."""

    name: Optional[str] = None
    objectives: Optional[str] = None
    motivations: Optional[str] = None
    qualifications: Optional[str] = None
    bio: Optional[str] = None
    social_links: tuple[SocialLink, ...] = ()
    ticker: Optional[str] = None
    description: Optional[str] = None
    email: Optional[str] = None
    shape: str = "empty"  # which decoder branch produced this record


@dataclass
class Rep:
    """A registered delegated representative."""

    id: str
    voting_power_lovelace: int = 0
    registered: bool = True
    profile: ProfileMetadata = field(default_factory=ProfileMetadata)
    first_vote_epoch: Optional[int] = None
    drep_hash: Optional[str] = None
    delegator_count: int = 0
    anchor_url: Optional[str] = None
    anchor_hash: Optional[str] = None
    handle: Optional[str] = None
    raw_metadata: Optional[dict] = None


@dataclass(frozen=True)
class ReliabilityBreakdown:
    """Reliability sub-scores (0-100) plus the raw epoch counts behind them."""

    score: int = 0
    streak: float = 0.0
    recency: float = 0.0
    gap_penalty: float = 0.0
    tenure: float = 0.0
    streak_epochs: int = 0
    recency_epochs: int = 0
    longest_gap_epochs: int = 0
    tenure_epochs: int = 0


@dataclass
class EnrichedRep:
    """Pipeline output for one representative."""

    rep: Rep
    participation_rate: int = 0
    deliberation_modifier: float = 1.0
    effective_participation: int = 0
    rationale_rate_raw: int = 0
    rationale_rate_curved: int = 0
    reliability: ReliabilityBreakdown = field(default_factory=ReliabilityBreakdown)
    profile_completeness: int = 0
    drep_score: int = 0
    total_votes: int = 0
    yes_votes: int = 0
    no_votes: int = 0
    abstain_votes: int = 0
    size_tier: SizeTier = SizeTier.SMALL
    epoch_vote_counts: list[int] = field(default_factory=list)
    last_vote_time: Optional[int] = None

    @property
    def id(self) -> str:
        return self.rep.id

    @property
    def voting_power_lovelace(self) -> int:
        return self.rep.voting_power_lovelace

    def pillar_scores(self) -> dict[str, int]:
        """The four pillars plus the aggregate, keyed by column name."""
        return {
            "effective_participation": self.effective_participation,
            "rationale_rate": self.rationale_rate_curved,
            "reliability_score": self.reliability.score,
            "profile_completeness": self.profile_completeness,
            "score": self.drep_score,
        }

    def to_row(self) -> dict:
        """Row for the dreps table (keyed on id)."""
        profile = self.rep.profile
        return {
            "id": self.rep.id,
            "metadata": self.rep.raw_metadata or {},
            "info": {
                "drepHash": self.rep.drep_hash,
                "handle": self.rep.handle,
                "name": profile.name,
                "ticker": profile.ticker,
                "description": profile.description,
                "votingPowerLovelace": str(self.rep.voting_power_lovelace),
                "delegatorCount": self.rep.delegator_count,
                "totalVotes": self.total_votes,
                "yesVotes": self.yes_votes,
                "noVotes": self.no_votes,
                "abstainVotes": self.abstain_votes,
                "isActive": self.rep.registered and self.rep.voting_power_lovelace > 0,
                "anchorUrl": self.rep.anchor_url,
                "epochVoteCounts": self.epoch_vote_counts,
            },
            "score": self.drep_score,
            "participation_rate": self.participation_rate,
            "rationale_rate": self.rationale_rate_curved,
            "rationale_rate_raw": self.rationale_rate_raw,
            "reliability_score": self.reliability.score,
            "reliability_streak": self.reliability.streak_epochs,
            "reliability_recency": self.reliability.recency_epochs,
            "reliability_longest_gap": self.reliability.longest_gap_epochs,
            "reliability_tenure": self.reliability.tenure_epochs,
            "deliberation_modifier": self.deliberation_modifier,
            "effective_participation": self.effective_participation,
            "size_tier": self.size_tier.value,
            "profile_completeness": self.profile_completeness,
            "anchor_url": self.rep.anchor_url,
            "anchor_hash": self.rep.anchor_hash,
        }
