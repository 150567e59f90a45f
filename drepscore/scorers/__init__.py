"""Deterministic DRep scoring: four pillars, the aggregate, alignment."""

from .alignment import AlignmentScores, compute_alignment_scores
from .drep_score import calculate_drep_score, lovelace_to_ada, size_tier
from .participation import deliberation_modifier, dominant_share, effective_participation, participation_rate
from .profile import calculate_profile_completeness, missing_profile_fields
from .rationale import apply_rationale_curve, has_rationale, rationale_rate_raw
from .reliability import calculate_reliability, reliability_for_votes
from .weights_registry import DEFAULT_WEIGHTS, SCORING_MODEL_VERSION, ScoringWeights, get_scoring_weights

__all__ = [
    # Participation
    "participation_rate",
    "dominant_share",
    "deliberation_modifier",
    "effective_participation",
    # Rationale
    "has_rationale",
    "rationale_rate_raw",
    "apply_rationale_curve",
    # Reliability
    "calculate_reliability",
    "reliability_for_votes",
    # Profile
    "calculate_profile_completeness",
    "missing_profile_fields",
    # Aggregate
    "calculate_drep_score",
    "lovelace_to_ada",
    "size_tier",
    "ScoringWeights",
    "DEFAULT_WEIGHTS",
    "SCORING_MODEL_VERSION",
    "get_scoring_weights",
    # Alignment
    "AlignmentScores",
    "compute_alignment_scores",
]
