"""
Reliability calculator - will they keep showing up?

Time-series trustworthiness, separate from raw participation. Only epochs
in which at least one proposal was open ("active epochs") count, between
the DRep's first vote and the current epoch, so quiet governance periods
never read as absence.

Four sub-scores, each 0-100:
1. Streak (35%)      - consecutive active epochs voted, walking back from the latest
2. Recency (30%)     - exponential decay since the last vote, half-life 5 active epochs
3. Gap penalty (20%) - longest run of active epochs without a vote
4. Tenure (15%)      - log-saturating credit for time since the first vote
"""

import math
from typing import Iterable, Optional, Sequence

from ..models.drep import Proposal, ReliabilityBreakdown, Vote
from .common import round_half_up

RELIABILITY_WEIGHTS = {
    "streak": 0.35,
    "recency": 0.30,
    "gap_penalty": 0.20,
    "tenure": 0.15,
}

STREAK_POINTS_PER_EPOCH = 10
RECENCY_HALF_LIFE_EPOCHS = 5
GAP_PENALTY_PER_EPOCH = 12
TENURE_SATURATION_EPOCHS = 60  # ~300 days of tenure reaches full credit


def streak_score(streak_epochs: int) -> float:
    return float(min(100, STREAK_POINTS_PER_EPOCH * streak_epochs))


def recency_score(gaps_since_last_vote: int) -> float:
    return 100 * 0.5 ** (gaps_since_last_vote / RECENCY_HALF_LIFE_EPOCHS)


def gap_penalty_score(longest_gap_epochs: int) -> float:
    return float(max(0, 100 - GAP_PENALTY_PER_EPOCH * longest_gap_epochs))


def tenure_score(epochs_since_first_vote: int) -> float:
    if epochs_since_first_vote <= 0:
        return 0.0
    return min(100.0, 100 * math.log(1 + epochs_since_first_vote) / math.log(1 + TENURE_SATURATION_EPOCHS))


def calculate_reliability(
    vote_epochs: Iterable[int],
    active_epochs: Iterable[int],
    first_vote_epoch: Optional[int],
    current_epoch: int,
) -> ReliabilityBreakdown:
    """Compute the 4-component reliability score.

    Args:
        vote_epochs: Epochs in which the DRep cast at least one vote (duplicates ok)
        active_epochs: Epochs in which at least one proposal was open
        first_vote_epoch: Epoch of the DRep's first vote, None if never voted
        current_epoch: Epoch the sync runs in

    Returns:
        ReliabilityBreakdown with sub-scores and raw epoch counts. All zero
        when the DRep has never voted.
    """
    if first_vote_epoch is None or first_vote_epoch > current_epoch:
        return ReliabilityBreakdown()

    voted = set(vote_epochs)
    window = sorted(e for e in set(active_epochs) if first_vote_epoch <= e <= current_epoch)
    tenure_epochs = current_epoch - first_vote_epoch

    if window:
        streak_epochs = 0
        for epoch in reversed(window):
            if epoch not in voted:
                break
            streak_epochs += 1

        recency_epochs = 0
        for epoch in reversed(window):
            if epoch in voted:
                break
            recency_epochs += 1

        longest_gap = 0
        run = 0
        for epoch in window:
            if epoch in voted:
                run = 0
            else:
                run += 1
                longest_gap = max(longest_gap, run)

        streak = streak_score(streak_epochs)
        recency = recency_score(recency_epochs)
        gap_penalty = gap_penalty_score(longest_gap)
    else:
        # No open proposals in the window: no activity signal, only tenure counts
        streak_epochs = recency_epochs = longest_gap = 0
        streak = recency = gap_penalty = 0.0

    tenure = tenure_score(tenure_epochs)

    weighted = (
        RELIABILITY_WEIGHTS["streak"] * streak
        + RELIABILITY_WEIGHTS["recency"] * recency
        + RELIABILITY_WEIGHTS["gap_penalty"] * gap_penalty
        + RELIABILITY_WEIGHTS["tenure"] * tenure
    )

    return ReliabilityBreakdown(
        score=max(0, min(100, round_half_up(weighted))),
        streak=streak,
        recency=recency,
        gap_penalty=gap_penalty,
        tenure=tenure,
        streak_epochs=streak_epochs,
        recency_epochs=recency_epochs,
        longest_gap_epochs=longest_gap,
        tenure_epochs=tenure_epochs,
    )


def reliability_for_votes(
    votes: Sequence[Vote],
    active_epochs: Iterable[int],
    current_epoch: int,
) -> ReliabilityBreakdown:
    """Convenience wrapper over normalized votes (epochs already filled in)."""
    vote_epochs = [v.epoch for v in votes if v.epoch is not None]
    first = min(vote_epochs) if vote_epochs else None
    return calculate_reliability(vote_epochs, active_epochs, first, current_epoch)


# =============================================================================
# Active Epochs
# =============================================================================


def active_proposal_epochs(proposals: Iterable[Proposal], current_epoch: int) -> set[int]:
    """Epochs in which at least one proposal was open for voting.

    A proposal is open from its proposed epoch through its closing epoch
    (ratified/dropped/expired), or through the current epoch while still live.
    """
    epochs: set[int] = set()
    for proposal in proposals:
        if proposal.epoch_opened is None:
            continue
        closed = proposal.epoch_closed if proposal.epoch_closed is not None else current_epoch
        end = min(closed, current_epoch)
        epochs.update(range(proposal.epoch_opened, end + 1))
    return epochs


def active_epochs_from_votes(all_vote_epochs: Iterable[int]) -> set[int]:
    """Fallback active set when proposal data is unavailable: any epoch anyone voted in."""
    return set(all_vote_epochs)
