"""Weighted ensemble of base learners.

Each base learner is weighted by max(1 - MAE, 0.1) on the evaluation set,
then weights are normalized. Confidence combines ensemble accuracy with
how closely the base learners agree on the input.
"""

from __future__ import annotations

from typing import Any

import numpy as np
from sklearn.ensemble import GradientBoostingRegressor, RandomForestRegressor
from sklearn.linear_model import Ridge
from sklearn.metrics import mean_absolute_error
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from ensemblescore.core.constants import AGREEMENT_STD_SCALE, MIN_BASE_LEARNER_WEIGHT
from ensemblescore.models.base import SubPrediction, clip_score


def _base_learners(random_state: int | None) -> dict[str, Any]:
    return {
        "ridge": Pipeline([("scaler", StandardScaler()), ("ridge", Ridge(alpha=1.0))]),
        "random_forest": RandomForestRegressor(
            n_estimators=50, max_depth=8, random_state=random_state
        ),
        "gradient_boosting": GradientBoostingRegressor(
            n_estimators=50, max_depth=3, random_state=random_state
        ),
    }


class BaseLearnerEnsemble:
    """Ridge, random forest, and gradient boosting combined by accuracy weight."""

    def __init__(self, learners: dict[str, Any], weights: dict[str, float], accuracy: float) -> None:
        self.learners = learners
        self.weights = weights
        self.accuracy = accuracy

    @classmethod
    def fit(
        cls,
        X: np.ndarray,
        y: np.ndarray,
        X_eval: np.ndarray,
        y_eval: np.ndarray,
        random_state: int | None = None,
    ) -> BaseLearnerEnsemble:
        learners = _base_learners(random_state)
        raw_weights: dict[str, float] = {}
        eval_predictions: dict[str, np.ndarray] = {}
        for name, learner in learners.items():
            learner.fit(X, y)
            predicted = np.clip(learner.predict(X_eval), 0.0, 1.0)
            eval_predictions[name] = predicted
            mae = float(mean_absolute_error(y_eval, predicted))
            raw_weights[name] = max(1.0 - mae, MIN_BASE_LEARNER_WEIGHT)

        total = sum(raw_weights.values())
        weights = {name: w / total for name, w in raw_weights.items()}
        combined = sum(weights[name] * eval_predictions[name] for name in learners)
        accuracy = max(0.0, 1.0 - float(mean_absolute_error(y_eval, combined)))
        return cls(learners, weights, accuracy)

    def predict(self, vector: np.ndarray) -> SubPrediction:
        row = vector.reshape(1, -1)
        scores = {
            name: clip_score(float(learner.predict(row)[0]))
            for name, learner in self.learners.items()
        }
        score = sum(self.weights[name] * s for name, s in scores.items())
        agreement = max(0.0, 1.0 - float(np.std(list(scores.values()))) / AGREEMENT_STD_SCALE)
        return SubPrediction(
            score=clip_score(score),
            confidence=self.accuracy * agreement,
            breakdown={f"ensemble.{name}": s for name, s in scores.items()},
        )
