"""
DRep Score - the 0-100 accountability aggregate.

    score = 100 × ( w_ep × effective_participation/100
                  + w_r  × rationale_curved/100
                  + w_rel× reliability/100
                  + w_p  × profile_completeness/100 )

Default weights 30/35/20/15 (see weights_registry). A pillar that is
missing or non-finite contributes 0; the result is always an integer in
[0, 100].
"""

from typing import Any, Optional

from ..constants import LOVELACE_PER_ADA
from ..models.drep import SizeTier
from .common import clamp_score, finite_or_zero
from .weights_registry import DEFAULT_WEIGHTS, ScoringWeights

# (upper bound in ADA, tier), checked in order
SIZE_TIER_THRESHOLDS = [
    (10_000, SizeTier.SMALL),
    (1_000_000, SizeTier.MEDIUM),
    (10_000_000, SizeTier.LARGE),
]


def calculate_drep_score(
    effective_participation: Any,
    rationale_curved: Any,
    reliability: Any,
    profile_completeness: Any,
    weights: Optional[ScoringWeights] = None,
) -> int:
    """Weighted aggregate of the four pillars (each 0-100).

    Pillars are clamped to [0, 100] before weighting; None/NaN count as 0.
    """
    weights = weights or DEFAULT_WEIGHTS
    pillars = (
        (weights.effective_participation, effective_participation),
        (weights.rationale, rationale_curved),
        (weights.reliability, reliability),
        (weights.profile_completeness, profile_completeness),
    )
    raw = 0.0
    for weight, value in pillars:
        pillar = max(0.0, min(100.0, finite_or_zero(value)))
        raw += finite_or_zero(weight) * pillar
    return clamp_score(raw)


def lovelace_to_ada(lovelace: Any) -> float:
    """Lovelace (int or numeric string) → ADA. Unparseable input → 0."""
    try:
        return int(lovelace) / LOVELACE_PER_ADA
    except (TypeError, ValueError):
        return 0.0


def size_tier(voting_power_ada: float) -> SizeTier:
    """Bucket a DRep by voting power: Small < 10k, Medium < 1M, Large < 10M, else Whale."""
    for upper, tier in SIZE_TIER_THRESHOLDS:
        if voting_power_ada < upper:
            return tier
    return SizeTier.WHALE
