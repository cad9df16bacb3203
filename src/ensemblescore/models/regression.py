"""Gradient-boosted regression sub-model."""

from __future__ import annotations

import numpy as np
from sklearn.ensemble import GradientBoostingRegressor
from sklearn.metrics import mean_absolute_error
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from ensemblescore.models.base import SubPrediction, clip_score


class RegressionModel:
    """StandardScaler + GradientBoostingRegressor pipeline.

    Confidence is the model's accuracy (1 - MAE) on the data it was
    evaluated against.
    """

    def __init__(self, pipeline: Pipeline, accuracy: float) -> None:
        self.pipeline = pipeline
        self.accuracy = accuracy

    @classmethod
    def fit(
        cls,
        X: np.ndarray,
        y: np.ndarray,
        X_eval: np.ndarray,
        y_eval: np.ndarray,
        random_state: int | None = None,
    ) -> RegressionModel:
        pipeline = Pipeline([
            ("scaler", StandardScaler()),
            (
                "regressor",
                GradientBoostingRegressor(
                    n_estimators=100,
                    max_depth=3,
                    learning_rate=0.1,
                    random_state=random_state,
                ),
            ),
        ])
        pipeline.fit(X, y)
        predictions = np.clip(pipeline.predict(X_eval), 0.0, 1.0)
        accuracy = max(0.0, 1.0 - float(mean_absolute_error(y_eval, predictions)))
        return cls(pipeline, accuracy)

    @property
    def feature_importances(self) -> np.ndarray:
        return self.pipeline.named_steps["regressor"].feature_importances_

    def predict(self, vector: np.ndarray) -> SubPrediction:
        raw = float(self.pipeline.predict(vector.reshape(1, -1))[0])
        return SubPrediction(score=clip_score(raw), confidence=self.accuracy)
