"""
Participation & deliberation - does the DRep show up, and do they think?

participation_rate: share of available proposals the DRep voted on.
deliberation_modifier: penalty multiplier for rubber-stamp voting, where
one direction dominates almost every vote.
effective_participation: the two combined; this is the pillar that feeds
the DRep Score.
"""

from .common import finite_or_zero, round_half_up

# (dominant share at or above, modifier), checked top-down.
# Bounds are inclusive so a 9-1 split (exactly 0.90) is already penalized at
# 0.85; with strict bounds exact 0.95 and 0.90 shares would fall one tier lower.
DELIBERATION_THRESHOLDS = [
    (0.95, 0.70),
    (0.90, 0.85),
    (0.85, 0.95),
]
NO_PENALTY = 1.0


def participation_rate(votes_cast: int, available_proposals: int) -> int:
    """Percentage of available proposals voted on, capped at 100.

    Returns 0 when nothing was available to vote on.
    """
    if available_proposals <= 0:
        return 0
    return min(100, max(0, round_half_up(votes_cast / available_proposals * 100)))


def dominant_share(yes: int, no: int, abstain: int) -> float:
    """Largest single-direction share of all votes (0.0 when there are none)."""
    total = yes + no + abstain
    if total <= 0:
        return 0.0
    return max(yes, no, abstain) / total


def deliberation_modifier(yes: int, no: int, abstain: int) -> float:
    """Penalty multiplier for uniform voting.

    95%+ one direction → 0.70, 90%+ → 0.85, 85%+ → 0.95, otherwise 1.0.
    A 9-1 split (0.90) is already a rubber stamp.
    No votes means no signal, so no penalty.
    """
    if yes + no + abstain <= 0:
        return NO_PENALTY
    share = dominant_share(yes, no, abstain)
    for threshold, modifier in DELIBERATION_THRESHOLDS:
        if share >= threshold:
            return modifier
    return NO_PENALTY


def effective_participation(rate: float, modifier: float) -> int:
    """Participation after the deliberation penalty, clamped to [0, 100]."""
    value = round_half_up(finite_or_zero(rate) * finite_or_zero(modifier))
    return max(0, min(100, value))
