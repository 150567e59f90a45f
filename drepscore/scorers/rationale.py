"""
Rationale scorer - do they explain their votes?

Each vote is weighted by the importance of the proposal it was cast on
(Critical=3, Important=2, Standard=1; info actions are excluded and do not
enter the denominator). A vote counts as explained when its rationale is
long enough to be meaningful. Content that has not been fetched yet gets
the benefit of the doubt.

The raw rate then goes through a forgiving curve before it reaches the
DRep Score, so the first explanations a DRep writes move the needle most.
"""

from typing import Mapping, Optional, Sequence

from ..models.drep import ImportanceTier, Vote
from .common import clamp_score, finite_or_zero, interpolate_score, round_half_up

MIN_RATIONALE_LENGTH = 50  # characters, after stripping whitespace

# Forgiving curve: raw rate → curved rate
RATIONALE_CURVE_KNOTS = [(0, 0), (20, 30), (60, 70), (100, 100)]

ProposalKey = tuple[str, int]


def has_rationale(vote: Vote, fetched_text: Optional[str] = None, fetched: bool = False) -> bool:
    """Whether a vote carries a qualifying rationale.

    Args:
        vote: The vote to check
        fetched_text: Rationale text resolved from the vote's anchor, if fetched
        fetched: True once the anchor content has been fetched (even if empty)

    Returns:
        True when inline rationale or fetched text is at least
        MIN_RATIONALE_LENGTH characters, or when an anchor exists but has not
        been fetched yet.
    """
    if vote.inline_rationale and len(vote.inline_rationale.strip()) >= MIN_RATIONALE_LENGTH:
        return True
    if vote.rationale_ref is None:
        return False
    if fetched or fetched_text is not None:
        return len((fetched_text or "").strip()) >= MIN_RATIONALE_LENGTH
    return True


def rationale_rate_raw(
    votes: Sequence[Vote],
    tiers: Optional[Mapping[ProposalKey, ImportanceTier]] = None,
    fetched_texts: Optional[Mapping[str, str]] = None,
) -> int:
    """Importance-weighted share of votes with a qualifying rationale (0-100).

    Args:
        votes: Normalized votes for one representative
        tiers: Proposal key → importance tier. Unknown proposals count as
            Standard, so the rate degrades to unweighted without proposal context.
        fetched_texts: vote_tx_hash → fetched rationale text. Votes missing
            from the mapping are treated as not fetched yet.

    Returns:
        Rounded rate, 0 when no vote carries weight.
    """
    tiers = tiers or {}
    fetched_texts = fetched_texts or {}

    total_weight = 0
    explained_weight = 0
    for vote in votes:
        weight = tiers.get(vote.proposal_key, ImportanceTier.STANDARD).weight
        if weight == 0:
            continue
        total_weight += weight
        fetched = vote.vote_tx_hash is not None and vote.vote_tx_hash in fetched_texts
        text = fetched_texts.get(vote.vote_tx_hash) if fetched else None
        if has_rationale(vote, text, fetched=fetched):
            explained_weight += weight

    if total_weight == 0:
        return 0
    return max(0, min(100, round_half_up(explained_weight / total_weight * 100)))


def apply_rationale_curve(raw_rate: float) -> int:
    """Map the raw rate through (0,0) → (20,30) → (60,70) → (100,100).

    Input is clamped to [0, 100]; output is rounded half-up.
    """
    value = max(0.0, min(100.0, finite_or_zero(raw_rate)))
    return clamp_score(interpolate_score(value, RATIONALE_CURVE_KNOTS))
