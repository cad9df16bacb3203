"""Multi-model predictor.

Queries every sub-model present in a bundle and merges their outputs:

    score = Σ(score_i · confidence_i) / Σ confidence_i
    confidence = mean(confidence_i)

With no usable sub-model (or zero total confidence) the predictor returns a
neutral fallback of score 0.5 at confidence 0.1 instead of failing.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

import numpy as np

from ensemblescore.core.constants import FALLBACK_CONFIDENCE, NEUTRAL_SCORE
from ensemblescore.core.logging import get_logger
from ensemblescore.features import FeatureSet
from ensemblescore.models.base import ModelBundle, ModelKind, SubPrediction, clip_score
from ensemblescore.models.importance import FeatureImportanceStrategy, NoFeatureImportance

_logger = get_logger("predictor")


@dataclass(frozen=True)
class Prediction:
    """Combined prediction for one suggestion.

    Attributes:
        score: Confidence-weighted score in [0, 1].
        confidence: Mean sub-model confidence.
        breakdown: Merged finer-grained values reported by sub-models.
        contributions: Raw score of each sub-model, by kind value.
        feature_importance: Importance per feature name (empty when disabled).
    """

    score: float
    confidence: float
    breakdown: dict[str, float] = field(default_factory=dict)
    contributions: dict[str, float] = field(default_factory=dict)
    feature_importance: dict[str, float] = field(default_factory=dict)

    @property
    def is_fallback(self) -> bool:
        return not self.contributions

    def to_dict(self) -> dict[str, object]:
        return {
            "score": self.score,
            "confidence": self.confidence,
            "breakdown": dict(self.breakdown),
            "contributions": dict(self.contributions),
            "feature_importance": dict(self.feature_importance),
        }


class MultiModelPredictor:
    """Merges regression, base-learner ensemble, and transfer predictions."""

    def __init__(self, importance: FeatureImportanceStrategy | None = None) -> None:
        self._importance = importance or NoFeatureImportance()

    @staticmethod
    def fallback() -> Prediction:
        return Prediction(score=NEUTRAL_SCORE, confidence=FALLBACK_CONFIDENCE)

    def combine(self, predictions: Mapping[ModelKind, SubPrediction]) -> Prediction:
        """Merge sub-model outputs by confidence weighting."""
        if not predictions:
            return self.fallback()
        total_confidence = sum(p.confidence for p in predictions.values())
        if total_confidence <= 0:
            return self.fallback()

        score = sum(p.score * p.confidence for p in predictions.values()) / total_confidence
        confidence = total_confidence / len(predictions)
        breakdown: dict[str, float] = {}
        for prediction in predictions.values():
            breakdown.update(prediction.breakdown)
        return Prediction(
            score=clip_score(score),
            confidence=confidence,
            breakdown=breakdown,
            contributions={kind.value: p.score for kind, p in predictions.items()},
        )

    def predict_vector(self, bundle: ModelBundle | None, vector: np.ndarray) -> Prediction:
        """Predict from a raw feature vector, skipping sub-models that fail."""
        if bundle is None:
            return self.fallback()
        predictions: dict[ModelKind, SubPrediction] = {}
        for kind in bundle.available_kinds:
            model = bundle.sub_models[kind]
            try:
                predictions[kind] = model.predict(vector)
            except Exception as exc:
                _logger.warning(
                    "predictor.sub_model_failed",
                    kind=kind.value,
                    error=str(exc),
                )
        return self.combine(predictions)

    def predict(self, bundle: ModelBundle | None, features: FeatureSet) -> Prediction:
        """Predict the quality score of one suggestion's features."""
        prediction = self.predict_vector(bundle, features.to_vector())
        if bundle is None or prediction.is_fallback:
            return prediction
        importance = self._importance.compute(bundle, features)
        if not importance:
            return prediction
        return Prediction(
            score=prediction.score,
            confidence=prediction.confidence,
            breakdown=prediction.breakdown,
            contributions=prediction.contributions,
            feature_importance=importance,
        )
