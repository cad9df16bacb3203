"""Numeric constants of the ensemble scoring math.

These are fixed by the scoring and learning formulas; tunable thresholds
live in ``LearningConfig`` instead.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

# Weight controller

ERROR_EPSILON: float = 0.001
"""Floor on the prediction error when computing relative validator performance."""

ACCURACY_EMA_DECAY: float = 0.9
"""Weight of the previous accuracy in the exponential moving average."""

# Trend analysis

MIN_CYCLES_FOR_TRENDS: int = 5
"""Cycles needed before trends are computed; fewer yields neutral trends."""

INSIGHT_TREND_WINDOW: int = 5
"""Trailing cycles compared when describing the accuracy direction."""

INSIGHT_TREND_DELTA: float = 0.1
"""Error change across the insight window that counts as a direction."""

HIGH_ERROR_INSIGHT_THRESHOLD: float = 0.3
"""Prediction error above which a recalibration insight is emitted."""

LEARNING_TREND_WINDOW: int = 10
"""Trailing cycles used for the learning trend in reports."""

MIN_CYCLES_FOR_EFFECTIVENESS: int = 10
"""Cycles needed before effectiveness is measured against the initial baseline."""

EFFECTIVENESS_BASELINE_CYCLES: int = 5
"""Leading cycles that define the initial accuracy baseline."""

# Reporting

LOW_EFFECTIVENESS_THRESHOLD: float = 0.1
HIGH_AVERAGE_ERROR_THRESHOLD: float = 0.2
SYSTEM_ACCURACY_TARGET: float = 0.85

# Dynamic ensemble scoring

CONFIDENCE_MULTIPLIER_SCALE: float = 1.2
CONFIDENCE_MULTIPLIER_MIN: float = 0.5
CONFIDENCE_MULTIPLIER_MAX: float = 1.5
AGREEMENT_STD_SCALE: float = 0.5
"""Score standard deviation at which validator agreement reaches zero."""

COMPLEXITY_CONTEXT_KEY: str = "complexity_score"
"""Context key carrying the suggestion's complexity in [0, 1]."""

HIGH_COMPLEXITY_THRESHOLD: float = 0.7
LOW_COMPLEXITY_THRESHOLD: float = 0.3
HIGH_COMPLEXITY_MULTIPLIERS: Mapping[str, float] = MappingProxyType({
    "pattern_validator": 1.1,
    "causal_validator": 1.1,
    "ml_model": 0.9,
})
LOW_COMPLEXITY_MULTIPLIERS: Mapping[str, float] = MappingProxyType({
    "ml_model": 1.2,
    "pattern_validator": 0.9,
})

VALIDATOR_PERFORMANCE_DECAY: float = 0.9
"""EMA decay of each validator's tracked score across scoring calls."""

STRONG_VALIDATOR_THRESHOLD: float = 0.8
WEAK_VALIDATOR_THRESHOLD: float = 0.6
STRONG_VALIDATOR_MULTIPLIER: float = 1.1
WEAK_VALIDATOR_MULTIPLIER: float = 0.9

AGREEMENT_CONFIDENCE_BASE: float = 0.7
AGREEMENT_CONFIDENCE_SPAN: float = 0.3
MIN_ENSEMBLE_CONFIDENCE: float = 0.1
INTERVAL_Z_95: float = 1.96

# Multi-model fallback

NEUTRAL_SCORE: float = 0.5
FALLBACK_CONFIDENCE: float = 0.1
MIN_BASE_LEARNER_WEIGHT: float = 0.1
"""Floor on a base learner's ensemble weight, max(1 - MAE, floor)."""
