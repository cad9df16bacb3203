"""Adaptive ensemble weights.

The controller turns per-validator error into bounded weight deltas and
combines validator signals into one ensemble score.

Weight adaptation is two-phase:
1. ``adjust_weights`` computes deltas from one feedback event and accumulates
   them as pending adjustments.
2. ``apply_pending`` folds pending deltas into the current weights, clamping
   each into its configured bound.

Formula (per validator v with score s_v):
    validator_error = |actual - s_v|
    relative_performance = 1 - validator_error / max(prediction_error, 0.001)
    delta_v = base_learning_rate * relative_performance * sign(actual - s_v)
"""

from __future__ import annotations

import statistics
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ensemblescore.core.categories import Category, EnsembleConfiguration, ValidatorSignal
from ensemblescore.core.config import LearningConfig
from ensemblescore.core.constants import (
    AGREEMENT_CONFIDENCE_BASE,
    AGREEMENT_CONFIDENCE_SPAN,
    AGREEMENT_STD_SCALE,
    COMPLEXITY_CONTEXT_KEY,
    CONFIDENCE_MULTIPLIER_MAX,
    CONFIDENCE_MULTIPLIER_MIN,
    CONFIDENCE_MULTIPLIER_SCALE,
    ERROR_EPSILON,
    FALLBACK_CONFIDENCE,
    HIGH_COMPLEXITY_MULTIPLIERS,
    HIGH_COMPLEXITY_THRESHOLD,
    INTERVAL_Z_95,
    LOW_COMPLEXITY_MULTIPLIERS,
    LOW_COMPLEXITY_THRESHOLD,
    MIN_ENSEMBLE_CONFIDENCE,
    NEUTRAL_SCORE,
    STRONG_VALIDATOR_MULTIPLIER,
    STRONG_VALIDATOR_THRESHOLD,
    VALIDATOR_PERFORMANCE_DECAY,
    WEAK_VALIDATOR_MULTIPLIER,
    WEAK_VALIDATOR_THRESHOLD,
)
from ensemblescore.core.errors import FeedbackValidationError
from ensemblescore.core.logging import get_logger
from ensemblescore.utils.time import utc_now

_logger = get_logger("weights")


@dataclass
class WeightState:
    """Mutable ensemble weights of one category.

    Mutated only by the AdaptiveWeightController and the RetrainingScheduler.

    Attributes:
        category: Owning category.
        current_weights: Weights used for scoring; always within bounds.
        pending_adjustments: Accumulated deltas not yet applied.
        adaptation_count: Adjustments computed since the last retraining.
        last_adaptation: When deltas were last computed, if ever.
        last_retraining: When the model was last retrained (creation time initially).
    """

    category: Category
    current_weights: dict[str, float]
    pending_adjustments: dict[str, float] = field(default_factory=dict)
    adaptation_count: int = 0
    last_adaptation: datetime | None = None
    last_retraining: datetime = field(default_factory=utc_now)

    @classmethod
    def from_configuration(cls, configuration: EnsembleConfiguration) -> WeightState:
        return cls(
            category=configuration.category,
            current_weights=dict(configuration.base_weights),
        )


@dataclass(frozen=True)
class EnsembleScore:
    """Combined score of a set of validator signals.

    Attributes:
        score: Weighted average score in [0, 1].
        confidence: Agreement-adjusted weighted confidence in [0.1, 1].
        uncertainty: Population stddev of the combined validators' scores.
        agreement: max(0, 1 - uncertainty / 0.5).
        interval_low: Lower end of the 95% interval, clipped to [0, 1].
        interval_high: Upper end of the 95% interval, clipped to [0, 1].
        weights: Normalized weights actually used, by validator.
        contributions: weight * score, by validator.
    """

    score: float
    confidence: float
    uncertainty: float = 0.0
    agreement: float = 1.0
    interval_low: float = 0.0
    interval_high: float = 1.0
    weights: dict[str, float] = field(default_factory=dict)
    contributions: dict[str, float] = field(default_factory=dict)

    @classmethod
    def neutral(cls) -> EnsembleScore:
        """Score returned when no configured validator contributed."""
        return cls(score=NEUTRAL_SCORE, confidence=FALLBACK_CONFIDENCE, agreement=0.0)

    def to_dict(self) -> dict[str, object]:
        return {
            "score": self.score,
            "confidence": self.confidence,
            "uncertainty": self.uncertainty,
            "agreement": self.agreement,
            "interval": [self.interval_low, self.interval_high],
            "weights": dict(self.weights),
            "contributions": dict(self.contributions),
        }


@dataclass
class ValidatorPerformance:
    """Running scoring statistics of one category.

    Updated after every ``score`` call. The per-validator EMA feeds the
    historical multiplier of later ``combine`` calls.

    Attributes:
        total_predictions: Scoring calls recorded.
        average_score: Running mean of the ensemble score.
        average_confidence: Running mean of the ensemble confidence.
        validator_scores: EMA of each validator's score (first value seeds it).
        last_update: When a scoring call was last recorded, if ever.
    """

    total_predictions: int = 0
    average_score: float = 0.0
    average_confidence: float = 0.0
    validator_scores: dict[str, float] = field(default_factory=dict)
    last_update: datetime | None = None

    def record(self, ensemble: EnsembleScore, signals: Iterable[ValidatorSignal]) -> None:
        self.total_predictions += 1
        n = self.total_predictions
        self.average_score += (ensemble.score - self.average_score) / n
        self.average_confidence += (ensemble.confidence - self.average_confidence) / n
        for signal in signals:
            previous = self.validator_scores.get(signal.name)
            if previous is None:
                self.validator_scores[signal.name] = signal.score
            else:
                self.validator_scores[signal.name] = (
                    VALIDATOR_PERFORMANCE_DECAY * previous
                    + (1.0 - VALIDATOR_PERFORMANCE_DECAY) * signal.score
                )
        self.last_update = utc_now()

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_predictions": self.total_predictions,
            "average_score": self.average_score,
            "average_confidence": self.average_confidence,
            "validator_scores": dict(self.validator_scores),
            "last_update": self.last_update.isoformat() if self.last_update else None,
        }


def complexity_multipliers(context: Mapping[str, Any] | None) -> Mapping[str, float]:
    """Per-validator multipliers for the context's complexity score.

    High complexity favors the pattern and causal validators; low
    complexity favors the ML model. Missing or non-numeric scores yield none.
    """
    if not context:
        return {}
    value = context.get(COMPLEXITY_CONTEXT_KEY)
    if isinstance(value, bool) or not isinstance(value, int | float):
        return {}
    if value > HIGH_COMPLEXITY_THRESHOLD:
        return HIGH_COMPLEXITY_MULTIPLIERS
    if value < LOW_COMPLEXITY_THRESHOLD:
        return LOW_COMPLEXITY_MULTIPLIERS
    return {}


def performance_multiplier(tracked_score: float | None) -> float:
    if tracked_score is None:
        return 1.0
    if tracked_score > STRONG_VALIDATOR_THRESHOLD:
        return STRONG_VALIDATOR_MULTIPLIER
    if tracked_score < WEAK_VALIDATOR_THRESHOLD:
        return WEAK_VALIDATOR_MULTIPLIER
    return 1.0


def _sign(value: float) -> float:
    if value > 0:
        return 1.0
    if value < 0:
        return -1.0
    return 0.0


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


class AdaptiveWeightController:
    """Computes, applies, and uses adaptive ensemble weights.

    Example:
        controller = AdaptiveWeightController(LearningConfig())
        deltas = controller.adjust_weights(state, 0.2, {"a": 0.8, "b": 0.6}, 0.9)
        # deltas == {"a": 0.005, "b": -0.005}
        controller.apply_pending(state, configuration)
    """

    def __init__(self, config: LearningConfig) -> None:
        self._config = config

    def adjust_weights(
        self,
        state: WeightState,
        prediction_error: float,
        validator_scores: Mapping[str, float],
        actual_score: float,
    ) -> dict[str, float]:
        """Compute weight deltas for one feedback event and mark them pending.

        Args:
            state: Weight state of the feedback's category.
            prediction_error: |actual - predicted| of the ensemble.
            validator_scores: Score of each validator for the suggestion.
            actual_score: Ground-truth score.

        Returns:
            Delta per validator for this event (not the accumulated total).

        Raises:
            FeedbackValidationError: If validator_scores is empty.
        """
        if not validator_scores:
            raise FeedbackValidationError("validator_scores must not be empty")

        denominator = max(prediction_error, ERROR_EPSILON)
        deltas: dict[str, float] = {}
        for name, score in validator_scores.items():
            validator_error = abs(actual_score - score)
            relative_performance = 1.0 - validator_error / denominator
            deltas[name] = (
                self._config.base_learning_rate
                * relative_performance
                * _sign(actual_score - score)
            )

        for name, delta in deltas.items():
            state.pending_adjustments[name] = state.pending_adjustments.get(name, 0.0) + delta
        state.adaptation_count += 1
        state.last_adaptation = utc_now()

        _logger.debug(
            "weights.adjusted",
            category=state.category.value,
            prediction_error=round(prediction_error, 4),
            adaptation_count=state.adaptation_count,
            deltas={k: round(v, 6) for k, v in deltas.items()},
        )
        return deltas

    def apply_pending(
        self, state: WeightState, configuration: EnsembleConfiguration
    ) -> dict[str, float]:
        """Fold pending deltas into the current weights and clear them.

        Each resulting weight is clamped into its configured bound. Deltas
        for validators without a bound are discarded.

        Returns:
            The updated current weights (copy).
        """
        if not state.pending_adjustments:
            return dict(state.current_weights)

        discarded: list[str] = []
        for name, delta in state.pending_adjustments.items():
            if name not in configuration.weight_bounds:
                discarded.append(name)
                continue
            base = state.current_weights.get(name, configuration.base_weights.get(name, 0.0))
            state.current_weights[name] = configuration.clamp(name, base + delta)
        state.pending_adjustments.clear()

        if discarded:
            _logger.debug(
                "weights.unknown_validators_discarded",
                category=state.category.value,
                validators=sorted(discarded),
            )
        return dict(state.current_weights)

    def combine(
        self,
        configuration: EnsembleConfiguration,
        weights: Mapping[str, float],
        signals: Iterable[ValidatorSignal],
        context: Mapping[str, Any] | None = None,
        performance: ValidatorPerformance | None = None,
    ) -> EnsembleScore:
        """Combine validator signals into one ensemble score.

        Only signals with a configured weight participate. With dynamic
        weighting each weight is scaled before normalization by:

        - clamp(confidence * 1.2, 0.5, 1.5)
        - the context complexity multiplier (``complexity_score`` > 0.7 or < 0.3)
        - the historical multiplier: 1.1 when the validator's tracked score
          is above 0.8, 0.9 when below 0.6

        Raises:
            FeedbackValidationError: If two signals share a validator name.
        """
        complexity = complexity_multipliers(context)
        tracked = performance.validator_scores if performance is not None else {}
        seen: set[str] = set()
        known: list[tuple[ValidatorSignal, float]] = []
        for signal in signals:
            if signal.name in seen:
                raise FeedbackValidationError(f"Duplicate validator signal {signal.name!r}")
            seen.add(signal.name)
            if signal.name not in weights:
                continue
            weight = weights[signal.name]
            if configuration.dynamic_weighting_enabled:
                weight *= _clamp(
                    signal.confidence * CONFIDENCE_MULTIPLIER_SCALE,
                    CONFIDENCE_MULTIPLIER_MIN,
                    CONFIDENCE_MULTIPLIER_MAX,
                )
                weight *= complexity.get(signal.name, 1.0)
                weight *= performance_multiplier(tracked.get(signal.name))
            known.append((signal, weight))

        total = sum(weight for _, weight in known)
        if not known or total <= 0:
            return EnsembleScore.neutral()

        normalized = {signal.name: weight / total for signal, weight in known}
        score = sum(normalized[s.name] * s.score for s, _ in known)
        weighted_confidence = sum(normalized[s.name] * s.confidence for s, _ in known)

        scores = [s.score for s, _ in known]
        uncertainty = statistics.pstdev(scores) if len(scores) > 1 else 0.0
        agreement = max(0.0, 1.0 - uncertainty / AGREEMENT_STD_SCALE)
        confidence = _clamp(
            weighted_confidence * (AGREEMENT_CONFIDENCE_BASE + AGREEMENT_CONFIDENCE_SPAN * agreement),
            MIN_ENSEMBLE_CONFIDENCE,
            1.0,
        )
        margin = INTERVAL_Z_95 * uncertainty
        return EnsembleScore(
            score=score,
            confidence=confidence,
            uncertainty=uncertainty,
            agreement=agreement,
            interval_low=max(0.0, score - margin),
            interval_high=min(1.0, score + margin),
            weights=normalized,
            contributions={s.name: normalized[s.name] * s.score for s, _ in known},
        )
