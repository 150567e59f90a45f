"""Scoring weight registry - versioned pillar weights for the DRep Score.

Weights are configuration so that scoring models can coexist (e.g. while a
new model is previewed next to the published one). Models live in
config/scoring_weights.yaml; when the file is missing the built-in default
model is used.

Usage:
    from drepscore.scorers.weights_registry import get_scoring_weights

    weights = get_scoring_weights()            # default model
    weights = get_scoring_weights("participation-heavy")
    # weights.rationale == 0.35
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from ..config import get_config_dir
from ..errors import ConfigError

logger = logging.getLogger(__name__)

# =============================================================================
# Scoring Model Version (semver)
# =============================================================================
# Major: pillar set changes (scores not comparable)
# Minor: reweight within the same pillars (scores shift)
# Patch: bug fix / data plumbing (scores shouldn't change)
#
# History:
#   1.0.0 - participation / rationale / decentralization
#   2.0.0 - effective participation 45 / rationale 35 / consistency 20
#   3.0.0 - effective participation 30 / rationale 35 / reliability 20 / profile 15
SCORING_MODEL_VERSION = "3.0.0"
DEFAULT_MODEL = "default"

WEIGHT_KEYS = ("effective_participation", "rationale", "reliability", "profile_completeness")
WEIGHT_SUM_TOLERANCE = 0.001


@dataclass(frozen=True)
class ScoringWeights:
    """Pillar weights (each 0-1, summing to 1)."""

    effective_participation: float = 0.30
    rationale: float = 0.35
    reliability: float = 0.20
    profile_completeness: float = 0.15
    model: str = DEFAULT_MODEL
    version: str = SCORING_MODEL_VERSION

    def as_dict(self) -> dict[str, float]:
        return {key: getattr(self, key) for key in WEIGHT_KEYS}


DEFAULT_WEIGHTS = ScoringWeights()

# Module-level cache
_registry_cache: Optional[dict[str, ScoringWeights]] = None


def _get_config_path() -> Path:
    return get_config_dir() / "scoring_weights.yaml"


def _validate_weights(name: str, weights: dict) -> None:
    """Every pillar present, non-negative, summing to 1."""
    missing = [key for key in WEIGHT_KEYS if key not in weights]
    if missing:
        raise ConfigError(f"Scoring model '{name}' is missing weights: {missing}")
    negative = [key for key in WEIGHT_KEYS if float(weights[key]) < 0]
    if negative:
        raise ConfigError(f"Scoring model '{name}' has negative weights: {negative}")
    total = sum(float(weights[key]) for key in WEIGHT_KEYS)
    if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
        raise ConfigError(f"Scoring model '{name}' weights sum to {total:.3f}, expected 1.0")


def _load_registry() -> dict[str, ScoringWeights]:
    """Load and cache scoring models from YAML."""
    global _registry_cache
    if _registry_cache is not None:
        return _registry_cache

    config_path = _get_config_path()
    if not config_path.exists():
        logger.warning(f"Scoring weights config not found at {config_path}, using defaults")
        _registry_cache = {DEFAULT_MODEL: DEFAULT_WEIGHTS}
        return _registry_cache

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    models: dict[str, ScoringWeights] = {}
    for name, data in (raw.get("models") or {}).items():
        data = data or {}
        weights = data.get("weights") or {}
        _validate_weights(name, weights)
        models[name] = ScoringWeights(
            **{key: float(weights[key]) for key in WEIGHT_KEYS},
            model=name,
            version=str(data.get("version", SCORING_MODEL_VERSION)),
        )

    if DEFAULT_MODEL not in models:
        models[DEFAULT_MODEL] = DEFAULT_WEIGHTS

    _registry_cache = models
    logger.info(f"Loaded {len(models)} scoring models from {config_path}")
    return _registry_cache


def get_scoring_weights(model: Optional[str] = None) -> ScoringWeights:
    """Weights for a named scoring model (default model when None).

    Raises:
        ConfigError: unknown model name
    """
    registry = _load_registry()
    name = model or DEFAULT_MODEL
    if name not in registry:
        raise ConfigError(f"Unknown scoring model '{name}'. Available: {sorted(registry)}")
    return registry[name]


def list_models() -> list[str]:
    """Names of all configured scoring models."""
    return sorted(_load_registry())


def clear_cache() -> None:
    """Reset the module-level cache (for tests)."""
    global _registry_cache
    _registry_cache = None
