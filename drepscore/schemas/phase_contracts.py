"""Phase boundary contracts for the sync pipeline.

Enrichment → persistence is the one boundary with a machine-enforced
contract: every EnrichedRep must carry in-range integer scores before any
row is written. A violation is a scoring bug, so it fails the run instead
of persisting bad data.

Usage:
    from drepscore.schemas.phase_contracts import validate_enrichment_output

    check = validate_enrichment_output(enriched)
    if not check:
        raise ValueError(f"Enrichment contract violated: {check.errors}")
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable

from ..models.drep import EnrichedRep

# Beyond this many violations, only a count is reported
MAX_REPORTED_VIOLATIONS = 10


@dataclass
class PhaseValidationResult:
    """Result of validating a phase's output against its contract."""

    phase: str
    passed: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.passed


def _score_problem(value: Any) -> str | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return f"not a number ({value!r})"
    if isinstance(value, float) and not math.isfinite(value):
        return f"not finite ({value!r})"
    if not 0 <= value <= 100:
        return f"out of range ({value!r})"
    return None


# ============================================================================
# Enrich → Persist boundary
# ============================================================================


def validate_enrichment_output(enriched: Iterable[EnrichedRep]) -> PhaseValidationResult:
    """Validate enrichment output before handing off to persistence.

    Args:
        enriched: EnrichedReps produced by the enrichment pass

    Returns:
        PhaseValidationResult; fails on any out-of-range score or duplicate id
    """
    result = PhaseValidationResult(phase="enrich", passed=True)
    seen: set[str] = set()
    violations = 0
    unnamed = 0

    for item in enriched:
        if item.id in seen:
            violations += 1
            if violations <= MAX_REPORTED_VIOLATIONS:
                result.errors.append(f"{item.id}: duplicate representative id")
        seen.add(item.id)

        scores = {
            **item.pillar_scores(),
            "participation_rate": item.participation_rate,
            "rationale_rate_raw": item.rationale_rate_raw,
        }
        for name, value in scores.items():
            problem = _score_problem(value)
            if problem:
                violations += 1
                if violations <= MAX_REPORTED_VIOLATIONS:
                    result.errors.append(f"{item.id}: {name} {problem}")

        if not item.rep.profile.name:
            unnamed += 1

    if unnamed:
        result.warnings.append(f"{unnamed} representatives have no profile name")
    if violations > MAX_REPORTED_VIOLATIONS:
        result.errors.append(f"... {violations - MAX_REPORTED_VIOLATIONS} more violations")
    result.passed = violations == 0
    return result
