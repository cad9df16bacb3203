"""Transfer-adapted linear sub-model.

A source estimator fitted elsewhere (another category, another deployment)
provides initial linear coefficients. The category's own training points then
fine-tune an SGDRegressor starting from those coefficients.
"""

from __future__ import annotations

import copy
from typing import Any

import numpy as np
from sklearn.linear_model import SGDRegressor
from sklearn.metrics import mean_absolute_error
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from ensemblescore.core.errors import ConfigurationError
from ensemblescore.models.base import SubPrediction, clip_score

# Full passes over the category's buffer after warm-starting
FINE_TUNE_EPOCHS = 5


def source_coefficients(estimator: Any) -> tuple[np.ndarray, float]:
    """Extract (coef, intercept) from a fitted linear estimator or pipeline.

    Raises:
        ConfigurationError: If the estimator exposes no linear coefficients.
    """
    target = estimator[-1] if isinstance(estimator, Pipeline) else estimator
    coef = getattr(target, "coef_", None)
    if coef is None:
        raise ConfigurationError(
            f"Transfer source {type(target).__name__} has no fitted coef_"
        )
    coef_array = np.asarray(coef, dtype=np.float64).ravel()
    intercept = np.asarray(getattr(target, "intercept_", 0.0), dtype=np.float64).ravel()
    return coef_array, float(intercept[0]) if intercept.size else 0.0


class TransferModel:
    """Scaled SGDRegressor warm-started from a source estimator."""

    def __init__(self, scaler: StandardScaler, regressor: SGDRegressor, accuracy: float) -> None:
        self.scaler = scaler
        self.regressor = regressor
        self.accuracy = accuracy

    @classmethod
    def fit(
        cls,
        source: Any,
        X: np.ndarray,
        y: np.ndarray,
        X_eval: np.ndarray,
        y_eval: np.ndarray,
        random_state: int | None = None,
    ) -> TransferModel:
        """Warm-start from ``source`` and fine-tune on (X, y).

        Raises:
            ConfigurationError: If the source has no coefficients or was fitted
                on a different number of features.
        """
        coef, intercept = source_coefficients(source)
        if coef.shape[0] != X.shape[1]:
            raise ConfigurationError(
                f"Transfer source has {coef.shape[0]} coefficients, "
                f"features have {X.shape[1]} columns"
            )
        scaler = StandardScaler().fit(X)
        X_scaled = scaler.transform(X)
        regressor = SGDRegressor(
            max_iter=1,
            tol=None,
            learning_rate="constant",
            eta0=0.01,
            random_state=random_state,
        )
        regressor.fit(X_scaled, y, coef_init=coef, intercept_init=np.array([intercept]))
        for _ in range(FINE_TUNE_EPOCHS - 1):
            regressor.partial_fit(X_scaled, y)

        model = cls(scaler, regressor, accuracy=0.0)
        model.accuracy = model.evaluate(X_eval, y_eval)
        return model

    def evaluate(self, X: np.ndarray, y: np.ndarray) -> float:
        """Return 1 - MAE on (X, y), floored at 0."""
        predictions = np.clip(self.regressor.predict(self.scaler.transform(X)), 0.0, 1.0)
        return max(0.0, 1.0 - float(mean_absolute_error(y, predictions)))

    def partial_fit(self, X: np.ndarray, y: np.ndarray) -> TransferModel:
        """Return a fine-tuned copy; this instance is left untouched."""
        regressor = copy.deepcopy(self.regressor)
        regressor.partial_fit(self.scaler.transform(X), y)
        updated = TransferModel(self.scaler, regressor, self.accuracy)
        updated.accuracy = updated.evaluate(X, y)
        return updated

    def predict(self, vector: np.ndarray) -> SubPrediction:
        raw = float(self.regressor.predict(self.scaler.transform(vector.reshape(1, -1)))[0])
        return SubPrediction(score=clip_score(raw), confidence=self.accuracy)
